"""B-roll overlay suggestions from the analyzed media set.

One stateless request: the full analyzed set plus the marketing context go
in, a list of per-file overlay suggestions comes out. The response may be a
bare JSON array or an object with a "suggestions" array. Malformed entries
are dropped; any request or parse failure returns an empty list. The
request is sent exactly once: no retries and a single parse attempt.
"""

from __future__ import annotations

import logging
from typing import Any, Sequence

from pydantic import ValidationError

from brollscout.ai.client import AIClient, AIClientError
from brollscout.ai.fallback import fallback_suggestions
from brollscout.ai.prompts import SUGGESTION_SYSTEM_INSTRUCTION, build_suggestion_prompt
from brollscout.models import BrollOverlay, BrollSuggestion, MediaItem

logger = logging.getLogger(__name__)


class BrollSuggester:
    """Requests B-roll overlay suggestions for an analyzed media set.

    Attributes:
        client: Gemini client, or None when AI is unavailable.
    """

    def __init__(self, client: AIClient | None) -> None:
        self.client = client

    def suggest(
        self,
        items: Sequence[MediaItem],
        marketing_context: str,
    ) -> list[BrollSuggestion]:
        """Request suggestions for the given items.

        Args:
            items: Every analyzed item (cached and new).
            marketing_context: Full marketing context text.

        Returns:
            Parsed suggestions; empty on any failure.
        """
        if self.client is None:
            logger.warning("No AI client configured, skipping B-roll suggestions")
            return fallback_suggestions()

        prompt = build_suggestion_prompt([item.to_record() for item in items], marketing_context)

        try:
            data = self.client.generate_json(
                prompt,
                system_instruction=SUGGESTION_SYSTEM_INSTRUCTION,
                max_retries=0,
            )
        except AIClientError as e:
            logger.error(f"Error generating B-roll suggestions: {e}")
            return fallback_suggestions()

        suggestions = parse_suggestions(data)
        logger.info(f"Received {len(suggestions)} B-roll suggestions")
        return suggestions


def parse_suggestions(data: Any) -> list[BrollSuggestion]:
    """Coerce a decoded suggestion response into BrollSuggestion objects.

    Entries without a filename and overlays that fail validation (missing
    fields, negative timestamp, non-positive duration) are skipped.
    """
    if isinstance(data, dict):
        data = data.get("suggestions")
    if not isinstance(data, list):
        logger.warning("Suggestion response has no suggestions list")
        return []

    suggestions: list[BrollSuggestion] = []

    for entry in data:
        if not isinstance(entry, dict) or not entry.get("filename"):
            logger.debug("Skipping suggestion without filename")
            continue

        overlays: list[BrollOverlay] = []
        raw_overlays = entry.get("suggested_broll") or []
        if not isinstance(raw_overlays, list):
            raw_overlays = []

        for raw in raw_overlays:
            try:
                overlays.append(BrollOverlay.model_validate(raw))
            except ValidationError:
                logger.debug(f"Skipping invalid overlay for {entry['filename']}")

        suggestions.append(BrollSuggestion(filename=str(entry["filename"]), suggested_broll=overlays))

    return suggestions
