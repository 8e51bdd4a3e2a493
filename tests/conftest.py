"""Central Pytest Fixtures for B-Roll Scout.

Reusable media files, cached items, mock AI clients, and frame extractors
shared by the test modules. No fixture touches the network or ffmpeg.

Fixtures included:
- Media: media_dir, sample_image, sample_video, transcript_dir
- Cache data: sample_items, cache_file
- AI mocks: mock_ai_client, failing_ai_client
- Components: fake_frame_extractor, extractor, settings, app_config
- Logging: reset_package_logger (autouse)
"""

import json
import logging
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from PIL import Image

from brollscout.ai.client import AIClient, AIRequestError
from brollscout.config import AppConfig, PipelineSettings
from brollscout.extraction import ContentExtractor
from brollscout.models import MediaItem, MediaKind

# =============================================================================
# Helper Functions
# =============================================================================

FAKE_JPEG = b"\xff\xd8\xff\xe0fake-frame\xff\xd9"


def create_test_image(path: Path, width: int = 64, height: int = 48, color: str = "red") -> Path:
    """Write a solid-color image to path (format from the suffix)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGB", (width, height), color=color).save(path)
    return path


def create_fake_video(path: Path) -> Path:
    """Write placeholder bytes under a video filename."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"\x00\x00\x00\x18ftypmp42")
    return path


def write_cache(path: Path, records: list[dict]) -> Path:
    path.write_text(json.dumps(records, indent=2), encoding="utf-8")
    return path


def analysis_response(filename: str = "ignored.png", **extra: object) -> dict:
    """JSON body a successful analysis call would return."""
    return {
        "filename": filename,
        "media_type": "image",
        "description": "Founder demoing the product on a laptop",
        "relevance": "high - shows the product in use",
        **extra,
    }


class FakeFrameExtractor:
    """Frame extractor that records calls and returns fixed bytes."""

    def __init__(self, frame: bytes | None = FAKE_JPEG) -> None:
        self.frame = frame
        self.calls: list[Path] = []

    def extract_frame(self, video_path: Path) -> bytes | None:
        self.calls.append(Path(video_path))
        return self.frame


# =============================================================================
# Logging Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Undo setup_logging() so caplog sees package records in every test."""
    yield
    package_logger = logging.getLogger("brollscout")
    package_logger.handlers = []
    package_logger.propagate = True
    package_logger.setLevel(logging.NOTSET)


# =============================================================================
# Media Fixtures
# =============================================================================


@pytest.fixture
def media_dir(tmp_path: Path) -> Path:
    """Media folder with one video, two images, and a non-media file."""
    root = tmp_path / "media"
    create_fake_video(root / "a.mp4")
    create_test_image(root / "b.png")
    create_test_image(root / "shots" / "c.JPG")
    (root / "notes.txt").write_text("not media", encoding="utf-8")
    return root


@pytest.fixture
def sample_image(tmp_path: Path) -> Path:
    return create_test_image(tmp_path / "photo.png")


@pytest.fixture
def sample_video(tmp_path: Path) -> Path:
    return create_fake_video(tmp_path / "clip.mp4")


@pytest.fixture
def transcript_dir(tmp_path: Path) -> Path:
    path = tmp_path / "transcripts"
    path.mkdir()
    return path


# =============================================================================
# Cache Fixtures
# =============================================================================


@pytest.fixture
def sample_items() -> list[MediaItem]:
    """Three analyzed items, one with an extra field."""
    return [
        MediaItem(
            filename="a.mp4",
            media_type=MediaKind.VIDEO,
            description="Talking head intro",
            relevance="high",
        ),
        MediaItem(
            filename="b.png",
            media_type=MediaKind.IMAGE,
            description="Product close-up",
            relevance="medium",
            tags=["product", "close-up"],
        ),
        MediaItem(
            filename="c.jpg",
            media_type=MediaKind.IMAGE,
            description="Team photo",
            relevance="low",
        ),
    ]


@pytest.fixture
def cache_file(tmp_path: Path) -> Path:
    """Path for a cache file that does not exist yet."""
    return tmp_path / "media_cache.json"


# =============================================================================
# AI Mock Fixtures
# =============================================================================


@pytest.fixture
def mock_ai_client() -> MagicMock:
    """AIClient mock whose generate_json returns a valid analysis."""
    client = MagicMock(spec=AIClient)
    client.generate_json.return_value = analysis_response()
    return client


@pytest.fixture
def failing_ai_client() -> MagicMock:
    """AIClient mock whose every request fails."""
    client = MagicMock(spec=AIClient)
    client.generate_json.side_effect = AIRequestError("service unreachable")
    return client


# =============================================================================
# Component Fixtures
# =============================================================================


@pytest.fixture
def fake_frame_extractor() -> FakeFrameExtractor:
    return FakeFrameExtractor()


@pytest.fixture
def extractor(fake_frame_extractor: FakeFrameExtractor, transcript_dir: Path) -> ContentExtractor:
    return ContentExtractor(fake_frame_extractor, transcript_dir=transcript_dir)


@pytest.fixture
def settings() -> PipelineSettings:
    return PipelineSettings(context_excerpt_chars=40)


@pytest.fixture
def app_config(tmp_path: Path, media_dir: Path, transcript_dir: Path) -> AppConfig:
    """AppConfig pointing every path into tmp_path."""
    marketing = tmp_path / "marketing.md"
    marketing.write_text("Launch campaign for a note-taking app aimed at students.", encoding="utf-8")
    return AppConfig(
        pipeline=PipelineSettings(
            media_dir=media_dir,
            transcript_dir=transcript_dir,
            cache_path=tmp_path / "media_cache.json",
            marketing_path=marketing,
        )
    )
