"""Media file discovery and classification for B-Roll Scout.

Discovery walks a media directory and returns candidate files; the
classifier maps a single path onto a MediaKind by extension. Neither
function raises for a missing directory or an odd filename.
"""

from __future__ import annotations

import logging
from pathlib import Path

from brollscout.models import MediaKind

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

IMAGE_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png", ".gif", ".bmp", ".webp"})

VIDEO_EXTENSIONS = frozenset({".mp4", ".mov", ".mkv", ".webm", ".m4v"})

# Extensions picked up when scanning the media directory
DISCOVERY_EXTENSIONS = frozenset({".mp4", ".mov", ".jpg", ".jpeg", ".png"})


# =============================================================================
# Classification
# =============================================================================


def classify_media(path: str | Path) -> MediaKind:
    """Classify a file by its extension (case-insensitive).

    Args:
        path: File path or bare filename.

    Returns:
        IMAGE or VIDEO for known extensions, OTHER for everything else.
    """
    ext = Path(path).suffix.lower()

    if ext in IMAGE_EXTENSIONS:
        return MediaKind.IMAGE
    if ext in VIDEO_EXTENSIONS:
        return MediaKind.VIDEO
    return MediaKind.OTHER


# =============================================================================
# Discovery
# =============================================================================


def gather_media_files(
    media_dir: str | Path,
    extensions: frozenset[str] = DISCOVERY_EXTENSIONS,
) -> list[Path]:
    """Recursively collect media files under a directory.

    Args:
        media_dir: Root directory to scan.
        extensions: Lowercase extensions (with leading dot) to keep.

    Returns:
        Sorted list of matching file paths; empty if the directory is missing.
    """
    root = Path(media_dir)

    if not root.exists() or not root.is_dir():
        logger.warning(f"Media directory not found: {root}")
        return []

    files = [
        p for p in root.rglob("*")
        if p.is_file() and p.suffix.lower() in extensions
    ]
    files.sort()

    logger.debug(f"Discovered {len(files)} media files under {root}")
    return files
