"""Prompt templates for media analysis and B-roll suggestions.

Templates are plain strings; the builders below only assemble them with
request data so the analyzer and suggester stay free of prompt wording.
"""

from __future__ import annotations

import json
from typing import Any

ANALYSIS_SYSTEM_INSTRUCTION = (
    "You are analyzing a media file in the context of a marketing project. "
    "You will return a JSON object describing filename, media_type, description, "
    "and relevance. No extra text, only valid JSON."
)

SUGGESTION_SYSTEM_INSTRUCTION = (
    "You are a video editor planning B-roll overlays for a marketing video. "
    "Only reference filenames that appear in the analyzed media list."
)

SUGGESTION_PROMPT_TEMPLATE = """You have a marketing context:
{marketing_context}

You have analyzed media items:
{media_json}

Based on these items, suggest suitable B-roll files to enhance the final video.
For each analyzed media file that needs B-roll, suggest:
- B-roll files to use.
- The timestamp (in seconds) where the B-roll should be overlaid.
- The duration (in seconds) of the B-roll overlay.

Return a JSON object with a "suggestions" array. Each element has:
- filename: The filename of a media file that needs B-roll.
- suggested_broll: A list of objects, each with:
    - broll_filename: The filename or path of the B-roll clip or image.
    - timestamp: The time in the main video (in seconds) where the B-roll starts.
    - duration: The duration of the B-roll overlay (in seconds).

Example:
{{
  "suggestions": [
    {{
      "filename": "video1.mp4",
      "suggested_broll": [
        {{"broll_filename": "broll_image1.png", "timestamp": 10, "duration": 5}},
        {{"broll_filename": "broll_clip2.mp4", "timestamp": 25, "duration": 8}}
      ]
    }}
  ]
}}
"""


def excerpt(text: str, max_chars: int) -> str:
    """Return the first max_chars of text, marked as truncated."""
    return f"{text[:max_chars]}..."


def build_analysis_message(
    marketing_context: str,
    filename: str,
    media_type: str,
    transcript: str | None,
    has_image: bool,
    context_chars: int = 1000,
) -> str:
    """Assemble the per-file analysis message text.

    The image itself travels as a separate inline part; this text only
    notes when no image could be attached.
    """
    lines = [
        f"Marketing Context: {excerpt(marketing_context, context_chars)}",
        f"File: {filename}, Type: {media_type}",
    ]

    if transcript:
        lines.append(f"Transcript: {transcript}")

    if has_image:
        lines.append("Image: attached below.")
    else:
        lines.append("No image available.")

    return "\n".join(lines)


def build_suggestion_prompt(records: list[dict[str, Any]], marketing_context: str) -> str:
    """Assemble the single suggestion request from all analyzed records."""
    return SUGGESTION_PROMPT_TEMPLATE.format(
        marketing_context=marketing_context,
        media_json=json.dumps(records, indent=2, ensure_ascii=False),
    )
