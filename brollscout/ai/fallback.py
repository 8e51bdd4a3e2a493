"""Fallback values used when Gemini is unavailable.

The fallback item is deterministic: it depends only on the file's base name
and detected kind, so a failed analysis still advances the cache and the
file is not retried within the same run. Fallback suggestions are always
empty.

What fallback provides:
- The filename and detected media kind
- Sentinel description and relevance values

What fallback does NOT provide:
- Any content description
- Any B-roll placement
"""

from __future__ import annotations

from pathlib import Path

from brollscout.models import (
    FALLBACK_DESCRIPTION,
    FALLBACK_RELEVANCE,
    BrollSuggestion,
    MediaItem,
    MediaKind,
)


def fallback_media_item(path: str | Path, kind: MediaKind) -> MediaItem:
    """Build the degraded record for a file whose analysis failed.

    Args:
        path: The media file path (only the base name is kept).
        kind: The locally detected media kind.

    Returns:
        MediaItem carrying the fallback sentinels.
    """
    return MediaItem(
        filename=Path(path).name,
        media_type=kind,
        description=FALLBACK_DESCRIPTION,
        relevance=FALLBACK_RELEVANCE,
    )


def fallback_suggestions() -> list[BrollSuggestion]:
    """Suggestions returned when the suggestion request fails."""
    return []
