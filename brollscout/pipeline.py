"""Workflow orchestration for a B-roll planning run.

A run gathers media files, analyzes only the ones the cache has not seen,
persists the merged cache, and then asks for B-roll suggestions over the
full analyzed set. The cache is written before the suggestion phase starts.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Sequence

from brollscout.ai.analyzer import ItemAnalyzer
from brollscout.ai.cache import AnalysisCache
from brollscout.ai.client import AIClient, get_client
from brollscout.ai.suggester import BrollSuggester
from brollscout.config import AppConfig
from brollscout.discovery import gather_media_files
from brollscout.extraction import (
    ContentExtractor,
    FFmpegFrameExtractor,
    FrameExtractor,
    NullFrameExtractor,
)
from brollscout.models import BrollSuggestion, MediaItem
from brollscout.utils.logging import timed_phase

logger = logging.getLogger(__name__)


# =============================================================================
# Functions
# =============================================================================


def read_marketing_context(path: Path) -> str:
    """Read the marketing context document.

    Returns:
        The document text, or an empty string if it cannot be read.
    """
    try:
        return Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.warning(f"Marketing context unavailable ({path}): {type(e).__name__}")
        return ""


@dataclass
class CacheUpdate:
    """Result of one incremental analysis pass.

    Attributes:
        items: Cached items followed by the newly analyzed ones.
        new_items: Items analyzed in this pass.
        persisted: Whether the merged set was written to disk.
    """

    items: list[MediaItem] = field(default_factory=list)
    new_items: list[MediaItem] = field(default_factory=list)
    persisted: bool = False

    @property
    def fallback_count(self) -> int:
        return sum(1 for item in self.new_items if item.is_fallback)


def update_analysis_cache(
    paths: Sequence[str | Path],
    marketing_context: str,
    analyzer: ItemAnalyzer,
    cache: AnalysisCache,
    transcript_dir: Path | None = None,
) -> CacheUpdate:
    """Analyze files the cache has not seen and persist the merged result.

    Args:
        paths: Discovered media paths.
        marketing_context: Full marketing context text.
        analyzer: Per-file analyzer.
        cache: Analysis cache to load from and persist to.
        transcript_dir: Created if missing, when given.

    Returns:
        CacheUpdate; its items are returned even if the write failed.
    """
    if transcript_dir is not None:
        try:
            Path(transcript_dir).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.warning(f"Could not create transcript directory {transcript_dir}: {e}")

    cached = cache.load()
    todo = cache.unseen(paths, cached)
    logger.info(f"{len(cached)} cached items, {len(todo)} new files to analyze")

    new_items = [analyzer.analyze(path, marketing_context) for path in todo]
    items = cache.merge(cached, new_items)

    persisted = cache.persist(items)
    if not persisted:
        logger.warning("Cache not saved; results from this run will be re-analyzed next time")

    return CacheUpdate(items=items, new_items=new_items, persisted=persisted)


def analyze_media_files(
    paths: Sequence[str | Path],
    marketing_context: str,
    analyzer: ItemAnalyzer,
    cache: AnalysisCache,
    transcript_dir: Path | None = None,
) -> list[MediaItem]:
    """Like update_analysis_cache, returning only the merged items."""
    return update_analysis_cache(
        paths, marketing_context, analyzer, cache, transcript_dir=transcript_dir
    ).items


# =============================================================================
# Pipeline
# =============================================================================


@dataclass
class PipelineResult:
    """Outcome of a full run.

    Attributes:
        items: Every analyzed item after the run (cached + new).
        new_items: Items analyzed in this run.
        suggestions: B-roll suggestions (empty on failure).
        cache_saved: Whether the cache write succeeded.
    """

    items: list[MediaItem] = field(default_factory=list)
    new_items: list[MediaItem] = field(default_factory=list)
    suggestions: list[BrollSuggestion] = field(default_factory=list)
    cache_saved: bool = False

    @property
    def fallback_count(self) -> int:
        return sum(1 for item in self.new_items if item.is_fallback)


class BrollPipeline:
    """Wires the configured components together for one run.

    Attributes:
        config: Application configuration.
        cache: Analysis cache.
        analyzer: Per-file analyzer.
        suggester: Suggestion requester.
    """

    def __init__(
        self,
        config: AppConfig,
        client: AIClient | None,
        frame_extractor: FrameExtractor | None = None,
    ) -> None:
        settings = config.pipeline
        self.config = config
        self.cache = AnalysisCache(settings.cache_path)

        extractor = ContentExtractor(
            frame_extractor or FFmpegFrameExtractor(offset_seconds=settings.frame_offset_seconds),
            transcript_dir=settings.transcript_dir,
            max_image_dimension=settings.max_image_dimension,
        )
        self.analyzer = ItemAnalyzer(client, extractor, settings)
        self.suggester = BrollSuggester(client)

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        api_key: str | None,
        use_ai: bool = True,
        extract_frames: bool = True,
    ) -> "BrollPipeline":
        """Build a pipeline, creating the Gemini client when possible."""
        client = get_client(api_key, config.ai) if use_ai else None
        frame_extractor = None if extract_frames else NullFrameExtractor()
        return cls(config, client, frame_extractor)

    def analyze(self, marketing_context: str) -> CacheUpdate:
        """Run discovery and incremental analysis."""
        settings = self.config.pipeline

        with timed_phase("Analysis", logger) as phase:
            paths = gather_media_files(settings.media_dir)
            update = update_analysis_cache(
                paths,
                marketing_context,
                self.analyzer,
                self.cache,
                transcript_dir=settings.transcript_dir,
            )
            phase.detail = (
                f"{len(update.new_items)} new, {len(update.items)} total, "
                f"{update.fallback_count} fallback"
            )
        return update

    def suggest(self, items: Sequence[MediaItem], marketing_context: str) -> list[BrollSuggestion]:
        with timed_phase("Suggestions", logger) as phase:
            suggestions = self.suggester.suggest(items, marketing_context)
            phase.detail = f"{len(suggestions)} files with overlays"
        return suggestions

    def run(self, marketing_context: str | None = None) -> PipelineResult:
        """Analyze new media, persist the cache, then request suggestions.

        Args:
            marketing_context: Context text; read from the configured
                marketing path when None.
        """
        if marketing_context is None:
            marketing_context = read_marketing_context(self.config.pipeline.marketing_path)
        update = self.analyze(marketing_context)
        suggestions = self.suggest(update.items, marketing_context)
        return PipelineResult(
            items=update.items,
            new_items=update.new_items,
            suggestions=suggestions,
            cache_saved=update.persisted,
        )
