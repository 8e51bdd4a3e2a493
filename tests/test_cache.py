"""Tests for the incremental analysis cache in brollscout/ai/cache.py."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from brollscout.ai.cache import AnalysisCache
from brollscout.models import MediaItem, MediaKind

from conftest import write_cache

# =============================================================================
# Load Tests
# =============================================================================


class TestLoad:
    """Tests for AnalysisCache.load()."""

    def test_load_missing_file_returns_empty(self, cache_file: Path) -> None:
        """A cache that was never written loads as empty."""
        assert AnalysisCache(cache_file).load() == []

    def test_load_valid_cache_preserves_order(self, cache_file: Path) -> None:
        """Records load in stored order."""
        write_cache(cache_file, [
            {"filename": "z.mp4", "media_type": "video", "description": "d1", "relevance": "r1"},
            {"filename": "a.png", "media_type": "image", "description": "d2", "relevance": "r2"},
        ])

        items = AnalysisCache(cache_file).load()

        assert [i.filename for i in items] == ["z.mp4", "a.png"]
        assert items[0].media_type == MediaKind.VIDEO

    @pytest.mark.parametrize(
        "content",
        [
            "{not json",
            "",
            '{"filename": "a.mp4"}',
            '"just a string"',
            '[{"media_type": "video"}]',
            '[{"filename": ""}]',
            '[{"filename": 3, "description": "d"}]',
            "[1, 2, 3]",
        ],
    )
    def test_load_malformed_returns_empty(self, cache_file: Path, content: str) -> None:
        """Corrupt or wrongly shaped caches load as empty without raising."""
        cache_file.write_text(content, encoding="utf-8")

        assert AnalysisCache(cache_file).load() == []

    def test_load_undecodable_bytes_returns_empty(self, cache_file: Path) -> None:
        """Binary garbage is treated like a corrupt cache."""
        cache_file.write_bytes(b"\xff\xfe\x00\x80garbage")

        assert AnalysisCache(cache_file).load() == []

    def test_load_directory_returns_empty(self, tmp_path: Path) -> None:
        """A directory in place of the cache file loads as empty."""
        directory = tmp_path / "media_cache.json"
        directory.mkdir()

        assert AnalysisCache(directory).load() == []

    def test_load_logs_warning_on_corruption(
        self, cache_file: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Corruption is reported as a warning."""
        cache_file.write_text("{not json", encoding="utf-8")

        with caplog.at_level("WARNING", logger="brollscout"):
            AnalysisCache(cache_file).load()

        assert any("corrupted" in r.getMessage() for r in caplog.records)

    def test_load_keeps_extra_fields(self, cache_file: Path) -> None:
        """Fields outside the named ones survive loading."""
        write_cache(cache_file, [
            {
                "filename": "a.mp4",
                "media_type": "video",
                "description": "d",
                "relevance": "r",
                "mood": "upbeat",
                "scores": {"energy": 0.8},
            },
        ])

        item = AnalysisCache(cache_file).load()[0]

        assert item.model_extra == {"mood": "upbeat", "scores": {"energy": 0.8}}


class TestLooseRecords:
    """Cached records with loosely typed or missing fields."""

    def test_numeric_relevance_keeps_whole_cache(self, cache_file: Path) -> None:
        """One non-string field does not discard the other entries."""
        write_cache(cache_file, [
            {"filename": "a.mp4", "media_type": "video", "description": "d", "relevance": "high"},
            {"filename": "b.png", "media_type": "image", "description": "d", "relevance": 8},
        ])

        items = AnalysisCache(cache_file).load()

        assert [i.filename for i in items] == ["a.mp4", "b.png"]
        assert items[1].relevance == "8"

    def test_null_and_structured_text_fields(self, cache_file: Path) -> None:
        write_cache(cache_file, [
            {"filename": "a.mp4", "description": None, "relevance": {"score": 3}},
        ])

        item = AnalysisCache(cache_file).load()[0]

        assert item.description == "No description found"
        assert item.relevance == '{"score": 3}'

    def test_sparse_record_is_persisted_verbatim(self, cache_file: Path) -> None:
        """load -> merge -> persist leaves cached records byte-for-byte equal."""
        original = [
            {"filename": "a.mp4", "media_type": "Video", "note": 1},
            {"filename": "b.png", "relevance": 8},
        ]
        write_cache(cache_file, original)
        cache = AnalysisCache(cache_file)

        loaded = cache.load()
        cache.persist(cache.merge(loaded, [MediaItem(filename="c.jpg", media_type=MediaKind.IMAGE)]))
        stored = json.loads(cache_file.read_text(encoding="utf-8"))

        assert loaded[0].media_type == MediaKind.VIDEO
        assert stored[:2] == original
        assert stored[2] == {
            "filename": "c.jpg",
            "media_type": "image",
            "description": "No description found",
            "relevance": "unknown",
        }

    def test_stored_record_is_not_shared(self, cache_file: Path) -> None:
        """Mutating a returned record does not change what is persisted."""
        write_cache(cache_file, [{"filename": "a.mp4", "tags": ["x"]}])
        item = AnalysisCache(cache_file).load()[0]

        item.to_record()["tags"].append("y")

        assert item.to_record() == {"filename": "a.mp4", "tags": ["x"]}


# =============================================================================
# Unseen Tests
# =============================================================================


class TestUnseen:
    """Tests for AnalysisCache.unseen()."""

    def test_unseen_filters_by_basename(self, sample_items: list[MediaItem]) -> None:
        """Paths whose base name is cached are excluded regardless of directory."""
        paths = ["/media/a.mp4", "/media/d.mov", "/other/dir/b.png", "e.jpg"]

        assert AnalysisCache.unseen(paths, sample_items) == ["/media/d.mov", "e.jpg"]

    def test_unseen_preserves_input_order(self) -> None:
        """Output order follows the input order."""
        paths = ["z.mp4", "m.png", "a.jpg"]

        assert AnalysisCache.unseen(paths, []) == paths

    def test_unseen_keeps_path_objects(self, sample_items: list[MediaItem]) -> None:
        """Path inputs come back as the same Path objects."""
        paths = [Path("x/a.mp4"), Path("x/new.mp4")]

        assert AnalysisCache.unseen(paths, sample_items) == [Path("x/new.mp4")]

    def test_unseen_same_basename_different_dirs_counts_as_seen(self) -> None:
        """Two files sharing a base name are one identity."""
        cached = [MediaItem(filename="intro.mp4", media_type=MediaKind.VIDEO)]
        paths = ["day1/intro.mp4", "day2/intro.mp4"]

        assert AnalysisCache.unseen(paths, cached) == []

    def test_unseen_matches_set_difference(self, sample_items: list[MediaItem]) -> None:
        """unseen(P, C) == [p in P : basename(p) not in filenames(C)]."""
        paths = [f"dir{i}/{name}" for i, name in enumerate(
            ["a.mp4", "b.png", "q.png", "c.jpg", "r.mov", "a.mp4.bak"]
        )]
        cached_names = {i.filename for i in sample_items}

        expected = [p for p in paths if Path(p).name not in cached_names]

        assert AnalysisCache.unseen(paths, sample_items) == expected

    def test_unseen_is_case_sensitive(self) -> None:
        """Identity is the exact base name."""
        cached = [MediaItem(filename="A.mp4")]

        assert AnalysisCache.unseen(["a.mp4"], cached) == ["a.mp4"]


# =============================================================================
# Merge Tests
# =============================================================================


class TestMerge:
    """Tests for AnalysisCache.merge()."""

    def test_merge_appends_new_after_cached(self, sample_items: list[MediaItem]) -> None:
        """Cached items form a prefix of the merged sequence."""
        cached = sample_items[:2]
        new = [sample_items[2]]

        merged = AnalysisCache.merge(cached, new)

        assert merged[: len(cached)] == cached
        assert merged == [*cached, *new]

    def test_merge_keeps_duplicates(self) -> None:
        """Duplicate filenames in new items are not removed."""
        dup = [MediaItem(filename="x.png"), MediaItem(filename="x.png")]

        assert len(AnalysisCache.merge([], dup)) == 2

    def test_merge_does_not_mutate_inputs(self, sample_items: list[MediaItem]) -> None:
        """Inputs are left untouched."""
        cached = list(sample_items)
        AnalysisCache.merge(cached, [MediaItem(filename="n.png")])

        assert cached == sample_items


# =============================================================================
# Persist Tests
# =============================================================================


class TestPersist:
    """Tests for AnalysisCache.persist()."""

    def test_persist_writes_json_list(
        self, cache_file: Path, sample_items: list[MediaItem]
    ) -> None:
        """The cache file holds a JSON array of records."""
        assert AnalysisCache(cache_file).persist(sample_items) is True

        data = json.loads(cache_file.read_text(encoding="utf-8"))
        assert isinstance(data, list)
        assert [r["filename"] for r in data] == ["a.mp4", "b.png", "c.jpg"]
        assert data[0]["media_type"] == "video"

    def test_persist_round_trips_extra_fields(
        self, cache_file: Path, sample_items: list[MediaItem]
    ) -> None:
        """Extra fields are written back verbatim."""
        cache = AnalysisCache(cache_file)
        cache.persist(sample_items)

        reloaded = cache.load()
        cache.persist(reloaded)
        data = json.loads(cache_file.read_text(encoding="utf-8"))

        assert data[1]["tags"] == ["product", "close-up"]
        assert [i.to_record() for i in reloaded] == [i.to_record() for i in sample_items]

    def test_persist_overwrites_previous_content(
        self, cache_file: Path, sample_items: list[MediaItem]
    ) -> None:
        """Persist replaces rather than appends."""
        cache = AnalysisCache(cache_file)
        cache.persist(sample_items)
        cache.persist(sample_items[:1])

        assert [i.filename for i in cache.load()] == ["a.mp4"]

    def test_persist_creates_parent_directories(
        self, tmp_path: Path, sample_items: list[MediaItem]
    ) -> None:
        """Missing parent directories are created."""
        path = tmp_path / "state" / "nested" / "cache.json"

        assert AnalysisCache(path).persist(sample_items) is True
        assert path.exists()

    def test_persist_leaves_no_temp_files(
        self, cache_file: Path, sample_items: list[MediaItem]
    ) -> None:
        """Only the cache file remains after a write."""
        AnalysisCache(cache_file).persist(sample_items)

        assert sorted(p.name for p in cache_file.parent.iterdir()) == ["media_cache.json"]

    def test_persist_failure_returns_false(
        self, tmp_path: Path, sample_items: list[MediaItem]
    ) -> None:
        """An unwritable destination is reported, not raised."""
        blocker = tmp_path / "blocker"
        blocker.write_text("a file, not a directory", encoding="utf-8")

        assert AnalysisCache(blocker / "cache.json").persist(sample_items) is False

    def test_persist_onto_directory_returns_false(
        self, tmp_path: Path, sample_items: list[MediaItem]
    ) -> None:
        """Renaming over a directory fails softly and cleans up the temp file."""
        target = tmp_path / "media_cache.json"
        target.mkdir()

        assert AnalysisCache(target).persist(sample_items) is False
        assert not list(tmp_path.glob(".media_cache_*.tmp"))

    def test_persist_empty_sequence(self, cache_file: Path) -> None:
        """An empty run still writes a valid, empty cache."""
        assert AnalysisCache(cache_file).persist([]) is True
        assert json.loads(cache_file.read_text(encoding="utf-8")) == []


# =============================================================================
# Property Tests
# =============================================================================


class TestCacheProperties:
    """Cross-operation properties of the cache."""

    def _run(self, cache: AnalysisCache, paths: list[str]) -> list[MediaItem]:
        cached = cache.load()
        new = [
            MediaItem(filename=Path(p).name, description=f"analyzed {p}")
            for p in cache.unseen(paths, cached)
        ]
        merged = cache.merge(cached, new)
        cache.persist(merged)
        return merged

    def test_second_run_adds_nothing(self, cache_file: Path) -> None:
        """Running twice over the same files leaves the filename set unchanged."""
        cache = AnalysisCache(cache_file)
        paths = ["m/a.mp4", "m/b.png", "m/c.jpg"]

        first = self._run(cache, paths)
        second = self._run(cache, paths)

        assert AnalysisCache.filenames(first) == AnalysisCache.filenames(second)
        assert len(second) == len(first) == 3

    def test_growth_is_monotonic_and_prefix_ordered(self, cache_file: Path) -> None:
        """after == before + new, with before as a prefix."""
        cache = AnalysisCache(cache_file)
        self._run(cache, ["a.mp4", "b.png"])
        before = cache.load()

        after_run = self._run(cache, ["a.mp4", "b.png", "c.jpg", "d.mov"])
        after = cache.load()

        assert [i.to_record() for i in after] == [i.to_record() for i in after_run]
        assert len(after) == len(before) + 2
        assert after[: len(before)] == before

    def test_corrupt_cache_is_replaced_on_next_persist(self, cache_file: Path) -> None:
        """A run over a corrupt cache completes and writes a valid one."""
        cache_file.write_text("[{broken", encoding="utf-8")
        cache = AnalysisCache(cache_file)

        merged = self._run(cache, ["a.mp4"])

        assert [i.filename for i in merged] == ["a.mp4"]
        assert [i.filename for i in cache.load()] == ["a.mp4"]


# =============================================================================
# Maintenance Tests
# =============================================================================


class TestMaintenance:
    """Tests for clear() and helpers."""

    def test_clear_deletes_file(self, cache_file: Path, sample_items: list[MediaItem]) -> None:
        cache = AnalysisCache(cache_file)
        cache.persist(sample_items)

        assert cache.clear() is True
        assert not cache.exists()

    def test_clear_without_file(self, cache_file: Path) -> None:
        assert AnalysisCache(cache_file).clear() is False

    def test_filenames(self, sample_items: list[MediaItem]) -> None:
        assert AnalysisCache.filenames(sample_items) == {"a.mp4", "b.png", "c.jpg"}
