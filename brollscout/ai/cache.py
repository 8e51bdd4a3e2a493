"""Incremental media-analysis cache for B-Roll Scout.

The cache is a JSON array of MediaItem records and is the only authority on
whether a file has already been analyzed. Identity is the file's base name:

- Files are never re-analyzed once their base name is cached, even if the
  content changed since.
- Two different files sharing a base name (in different subdirectories)
  count as the same file; only the first one seen is ever analyzed.

Every operation degrades instead of raising. A missing, unreadable or
malformed cache file loads as empty, and a failed write is logged and
reported through the return value.

Cached records are written back exactly as they were read; only newly
analyzed items are serialized from their fields.

Example:
    >>> cache = AnalysisCache(Path("media_cache.json"))
    >>> cached = cache.load()
    >>> todo = cache.unseen(discovered_paths, cached)
    >>> new_items = [analyzer.analyze(p, context) for p in todo]
    >>> items = cache.merge(cached, new_items)
    >>> cache.persist(items)
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Iterable, Sequence, TypeVar

from pydantic import ValidationError

from brollscout.models import MediaItem

logger = logging.getLogger(__name__)

PathT = TypeVar("PathT", str, Path)


class AnalysisCache:
    """File-backed ledger of analyzed media items, keyed by filename.

    Attributes:
        path: Location of the JSON cache file.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return self._path.is_file()

    # =========================================================================
    # Core Operations
    # =========================================================================

    def load(self) -> list[MediaItem]:
        """Read previously analyzed items.

        Returns:
            Cached items in stored order; empty if the file is absent,
            unreadable, not a JSON array, or holds a record without a
            usable filename. Loosely typed fields (a numeric relevance, an
            odd media_type) are normalized in the typed view only.

        Note:
            This method never raises.
        """
        if not self._path.exists():
            self._logger.debug(f"No cache at {self._path}, starting empty")
            return []

        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError) as e:
            self._logger.warning(f"Cache unreadable, starting empty: {type(e).__name__}: {e}")
            return []
        except json.JSONDecodeError as e:
            self._logger.warning(f"Cache corrupted (JSON error), starting empty: {e}")
            return []

        if not isinstance(data, list):
            self._logger.warning(
                f"Cache malformed (expected a list, got {type(data).__name__}), starting empty"
            )
            return []

        unusable = [
            i for i, record in enumerate(data)
            if not isinstance(record, dict)
            or not isinstance(record.get("filename"), str)
            or not record["filename"]
        ]
        if unusable:
            self._logger.warning(
                f"Cache malformed ({len(unusable)} records without a filename, "
                f"first at index {unusable[0]}), starting empty"
            )
            return []

        try:
            items = [MediaItem.from_record(record) for record in data]
        except ValidationError as e:
            self._logger.warning(
                f"Cache malformed ({e.error_count()} invalid fields), starting empty"
            )
            return []

        self._logger.debug(f"Loaded {len(items)} cached items from {self._path}")
        return items

    @staticmethod
    def unseen(paths: Iterable[PathT], cached_items: Iterable[MediaItem]) -> list[PathT]:
        """Return the discovered paths whose base name is not cached yet.

        Args:
            paths: Discovered file paths, in discovery order.
            cached_items: Items already analyzed.

        Returns:
            Paths not yet analyzed, in their input order.
        """
        seen = AnalysisCache.filenames(cached_items)
        return [p for p in paths if Path(p).name not in seen]

    @staticmethod
    def merge(
        cached_items: Sequence[MediaItem],
        new_items: Sequence[MediaItem],
    ) -> list[MediaItem]:
        """Append newly analyzed items after the cached ones.

        No de-duplication happens here; callers filter with unseen() first.
        """
        return [*cached_items, *new_items]

    def persist(self, items: Sequence[MediaItem]) -> bool:
        """Write the full item sequence, replacing any previous content.

        The JSON is written to a temp file next to the cache and renamed
        over it, so readers never see a half-written file.

        Returns:
            True if the cache was written, False otherwise.

        Note:
            This method never raises.
        """
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            payload = json.dumps(
                [item.to_record() for item in items],
                indent=2,
                ensure_ascii=False,
            )

            fd, temp_path = tempfile.mkstemp(
                dir=self._path.parent,
                prefix=".media_cache_",
                suffix=".tmp",
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(payload)
                Path(temp_path).replace(self._path)
            except Exception:
                Path(temp_path).unlink(missing_ok=True)
                raise

        except Exception as e:
            self._logger.error(f"Error saving cache to {self._path}: {type(e).__name__}: {e}")
            return False

        self._logger.debug(f"Persisted {len(items)} items to {self._path}")
        return True

    # =========================================================================
    # Maintenance
    # =========================================================================

    @staticmethod
    def filenames(items: Iterable[MediaItem]) -> set[str]:
        """Identity keys of the given items."""
        return {item.filename for item in items}

    def clear(self) -> bool:
        """Delete the cache file.

        Returns:
            True if a file was deleted, False if there was none or it failed.
        """
        try:
            if self._path.exists():
                self._path.unlink()
                self._logger.info(f"Cleared cache at {self._path}")
                return True
            return False
        except OSError as e:
            self._logger.warning(f"Cache clear failed: {type(e).__name__}")
            return False
