"""Core data models for B-Roll Scout.

This module defines the records the analyzer produces and the cache stores,
and the structures returned by the B-roll suggestion request. All models use
Pydantic v2 for validation and serialization.
"""

import copy
import json
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, ValidationInfo, field_validator


# =============================================================================
# Constants
# =============================================================================

# Sentinels used when analysis falls back
FALLBACK_DESCRIPTION = "No description found"
FALLBACK_RELEVANCE = "unknown"


# =============================================================================
# Enums
# =============================================================================


class MediaKind(str, Enum):
    """Kinds of media the analyzer distinguishes.

    Attributes:
        IMAGE: Still images (jpg, png, gif, ...)
        VIDEO: Video clips (mp4, mov, ...)
        OTHER: Any file with an unrecognized extension
        UNKNOWN: Kind could not be determined (or came back unrecognized)
    """

    IMAGE = "image"
    VIDEO = "video"
    OTHER = "other"
    UNKNOWN = "unknown"


# =============================================================================
# Media Records
# =============================================================================


class MediaItem(BaseModel):
    """One analyzed media file.

    The analysis output is not strictly schema-constrained, so any field
    beyond the four named ones is kept as a pydantic extra. Items read from
    the cache with from_record() remember their stored record and write it
    back verbatim; the typed fields are only a normalized view of it.

    Attributes:
        filename: Base name of the file; the cache identity key.
        media_type: Detected media kind.
        description: Free-text summary of the content.
        relevance: Free-text relevance judgment for the marketing context.
    """

    model_config = ConfigDict(extra="allow")

    filename: str
    media_type: MediaKind = MediaKind.UNKNOWN
    description: str = FALLBACK_DESCRIPTION
    relevance: str = FALLBACK_RELEVANCE

    _record: dict[str, Any] | None = PrivateAttr(default=None)

    @field_validator("media_type", mode="before")
    @classmethod
    def coerce_media_type(cls, v: Any) -> MediaKind:
        """Map unrecognized media type strings to UNKNOWN."""
        if isinstance(v, MediaKind):
            return v
        try:
            return MediaKind(str(v).lower())
        except ValueError:
            return MediaKind.UNKNOWN

    @field_validator("description", "relevance", mode="before")
    @classmethod
    def coerce_text(cls, v: Any, info: ValidationInfo) -> str:
        """Accept any JSON value for the free-text fields."""
        if v is None:
            return FALLBACK_DESCRIPTION if info.field_name == "description" else FALLBACK_RELEVANCE
        if isinstance(v, str):
            return v
        return json.dumps(v, ensure_ascii=False) if isinstance(v, (dict, list)) else str(v)

    @property
    def is_fallback(self) -> bool:
        """Whether this item carries the fallback sentinels."""
        return (
            self.description == FALLBACK_DESCRIPTION
            and self.relevance == FALLBACK_RELEVANCE
        )

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "MediaItem":
        """Build an item from a stored cache record, keeping the record as-is."""
        item = cls.model_validate(record)
        item._record = copy.deepcopy(record)
        return item

    def to_record(self) -> dict[str, Any]:
        """Serialize to a plain JSON-compatible dict, extras included.

        Cached items return their original record unchanged.
        """
        if self._record is not None:
            return copy.deepcopy(self._record)
        return self.model_dump(mode="json")


# =============================================================================
# B-Roll Suggestions
# =============================================================================


class BrollOverlay(BaseModel):
    """A single overlay placed on top of a main video.

    Attributes:
        broll_filename: Filename or path of the B-roll clip or image.
        timestamp: Second in the main video where the overlay starts.
        duration: Length of the overlay in seconds.
    """

    broll_filename: str
    timestamp: float = Field(ge=0)
    duration: float = Field(gt=0)


class BrollSuggestion(BaseModel):
    """Overlay suggestions for one analyzed file."""

    filename: str
    suggested_broll: list[BrollOverlay] = Field(default_factory=list)


class BrollSuggestions(BaseModel):
    """Envelope for the suggestion response."""

    suggestions: list[BrollSuggestion] = Field(default_factory=list)
