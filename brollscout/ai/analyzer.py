"""Per-file media analysis with Gemini.

ItemAnalyzer turns one media file into one MediaItem. It classifies the
file, gathers a still image and transcript through the ContentExtractor,
sends a single multimodal request, and coerces the JSON answer into a
MediaItem. Any failure along the way yields the deterministic fallback
item instead of an exception.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from brollscout.ai.client import AIClient, AIClientError, APIKeyMissingError, image_part
from brollscout.ai.fallback import fallback_media_item
from brollscout.ai.prompts import ANALYSIS_SYSTEM_INSTRUCTION, build_analysis_message
from brollscout.config import PipelineSettings
from brollscout.discovery import classify_media
from brollscout.extraction import ContentExtractor
from brollscout.models import (
    FALLBACK_DESCRIPTION,
    FALLBACK_RELEVANCE,
    MediaItem,
    MediaKind,
)

logger = logging.getLogger(__name__)


class ItemAnalyzer:
    """Produces one MediaItem per media file.

    Attributes:
        client: Gemini client, or None when AI is unavailable.
        extractor: Source of still images and transcripts.
        settings: Pipeline settings (context excerpt length).

    Example:
        ```python
        analyzer = ItemAnalyzer(client, extractor, settings)
        item = analyzer.analyze(Path("media/intro.mp4"), marketing_text)
        ```
    """

    def __init__(
        self,
        client: AIClient | None,
        extractor: ContentExtractor,
        settings: PipelineSettings | None = None,
    ) -> None:
        self.client = client
        self.extractor = extractor
        self.settings = settings or PipelineSettings()

    def analyze(self, path: str | Path, marketing_context: str) -> MediaItem:
        """Analyze a single file.

        Args:
            path: Media file path.
            marketing_context: Full marketing context text.

        Returns:
            The analyzed MediaItem, or the fallback item on any failure.
        """
        path = Path(path)
        kind = classify_media(path)

        try:
            return self._analyze(path, kind, marketing_context)
        except (AIClientError, ValidationError, ValueError) as e:
            logger.warning(f"Analysis failed for {path.name}, using fallback: {e}")
            return fallback_media_item(path, kind)

    def _analyze(self, path: Path, kind: MediaKind, marketing_context: str) -> MediaItem:
        if self.client is None:
            raise APIKeyMissingError("no AI client configured")

        content = self.extractor.extract(path, kind)
        if content.is_empty:
            logger.debug(f"No image or transcript for {path.name}, sending metadata only")

        message = build_analysis_message(
            marketing_context=marketing_context,
            filename=path.name,
            media_type=kind.value,
            transcript=content.transcript,
            has_image=content.image is not None,
            context_chars=self.settings.context_excerpt_chars,
        )

        parts: list[Any] = [message]
        if content.image is not None:
            parts.append(image_part(content.image))

        data = self.client.generate_json(parts, system_instruction=ANALYSIS_SYSTEM_INSTRUCTION)
        item = coerce_media_item(data, path.name, kind)

        logger.info(f"Analyzed {path.name}")
        return item


def coerce_media_item(data: Any, filename: str, kind: MediaKind) -> MediaItem:
    """Shape a decoded analysis response into a MediaItem.

    The local base name and detected kind always win over whatever the
    model echoed back. Missing description/relevance take the fallback
    sentinels; other scalar values are stringified. Unknown keys are kept.

    Raises:
        ValueError: If the response is not a JSON object.
    """
    if not isinstance(data, dict):
        raise ValueError(f"expected a JSON object, got {type(data).__name__}")

    record = dict(data)
    record["filename"] = filename
    record["media_type"] = kind.value
    record["description"] = _as_text(record.get("description"), FALLBACK_DESCRIPTION)
    record["relevance"] = _as_text(record.get("relevance"), FALLBACK_RELEVANCE)

    return MediaItem.model_validate(record)


def _as_text(value: Any, default: str) -> str:
    if value is None:
        return default
    if isinstance(value, str):
        return value if value.strip() else default
    return str(value)
