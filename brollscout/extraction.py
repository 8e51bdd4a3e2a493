"""Content extraction for media analysis.

Produces at most one still image per file (the image itself, or a frame
grabbed from a video) and, for videos, the transcript text stored in the
transcripts directory under the same stem. Nothing here is an error:
a missing transcript, a missing ffmpeg, or an unreadable image simply
yields less content.
"""

from __future__ import annotations

import io
import logging
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from PIL import Image

from brollscout.models import MediaKind

logger = logging.getLogger(__name__)


# =============================================================================
# Data Classes
# =============================================================================


@dataclass
class ExtractedContent:
    """Content pulled from a media file for analysis.

    Attributes:
        image: JPEG bytes of a representative still, if any.
        transcript: Transcript text for videos, if any.
    """

    image: bytes | None = None
    transcript: str | None = None

    @property
    def is_empty(self) -> bool:
        return self.image is None and not self.transcript


# =============================================================================
# Frame Extraction
# =============================================================================


class FrameExtractor(Protocol):
    """Extracts a representative still image from a video."""

    def extract_frame(self, video_path: Path) -> bytes | None:
        """Return JPEG bytes, or None when no frame could be produced."""
        ...


class FFmpegFrameExtractor:
    """Grabs a single JPEG frame from a video with the ffmpeg executable.

    Attributes:
        offset_seconds: Seek position of the frame.
        ffmpeg_path: Explicit ffmpeg binary; looked up on PATH when None.
        timeout_seconds: Upper bound for one ffmpeg invocation.
    """

    def __init__(
        self,
        offset_seconds: float = 5.0,
        ffmpeg_path: str | None = None,
        timeout_seconds: int = 60,
    ) -> None:
        self.offset_seconds = offset_seconds
        self.ffmpeg_path = ffmpeg_path
        self.timeout_seconds = timeout_seconds

    def build_command(self, ffmpeg: str, video_path: Path) -> list[str]:
        return [
            ffmpeg,
            "-hide_banner",
            "-loglevel", "error",
            "-ss", f"{self.offset_seconds:g}",
            "-i", str(video_path),
            "-frames:v", "1",
            "-f", "image2pipe",
            "-c:v", "mjpeg",
            "-",
        ]

    def extract_frame(self, video_path: Path) -> bytes | None:
        ffmpeg = self.ffmpeg_path or shutil.which("ffmpeg")
        if not ffmpeg:
            logger.debug("ffmpeg not found on PATH, skipping frame extraction")
            return None

        try:
            result = subprocess.run(
                self.build_command(ffmpeg, video_path),
                capture_output=True,
                timeout=self.timeout_seconds,
                check=False,
            )
        except (FileNotFoundError, subprocess.TimeoutExpired) as e:
            logger.warning(f"Frame extraction failed for {video_path.name}: {type(e).__name__}")
            return None

        if result.returncode != 0 or not result.stdout:
            stderr = result.stderr.decode("utf-8", errors="replace").strip()
            logger.debug(f"ffmpeg produced no frame for {video_path.name}: {stderr or 'no output'}")
            return None

        return result.stdout


class NullFrameExtractor:
    """Frame extractor that never produces a frame."""

    def extract_frame(self, video_path: Path) -> bytes | None:
        return None


# =============================================================================
# Content Extractor
# =============================================================================


class ContentExtractor:
    """Collects the still image and transcript for one media file.

    Attributes:
        frame_extractor: Capability used for video frames.
        transcript_dir: Directory holding <stem>.txt transcripts.
        max_image_dimension: Longest side of the JPEG sent for analysis.
    """

    def __init__(
        self,
        frame_extractor: FrameExtractor,
        transcript_dir: Path,
        max_image_dimension: int = 1600,
    ) -> None:
        self.frame_extractor = frame_extractor
        self.transcript_dir = Path(transcript_dir)
        self.max_image_dimension = max_image_dimension

    def extract(self, path: Path, kind: MediaKind) -> ExtractedContent:
        """Extract whatever content is available for a file.

        Args:
            path: Media file path.
            kind: Classified media kind.

        Returns:
            ExtractedContent, possibly empty.
        """
        path = Path(path)

        if kind == MediaKind.IMAGE:
            return ExtractedContent(image=self.load_image(path))

        if kind == MediaKind.VIDEO:
            frame = None
            try:
                frame = self.frame_extractor.extract_frame(path)
            except Exception as e:
                logger.warning(f"Failed to extract frame from {path.name}: {e}")

            return ExtractedContent(image=frame, transcript=self.load_transcript(path))

        return ExtractedContent()

    def load_image(self, path: Path) -> bytes | None:
        """Read an image and re-encode it as an RGB JPEG.

        Returns:
            JPEG bytes, or None if the file cannot be decoded.
        """
        try:
            with Image.open(path) as img:
                if img.mode != "RGB":
                    img = img.convert("RGB")

                max_dim = self.max_image_dimension
                if max(img.width, img.height) > max_dim:
                    img.thumbnail((max_dim, max_dim), Image.Resampling.LANCZOS)
                    logger.debug(f"Resized {path.name} to {img.size}")

                buf = io.BytesIO()
                img.save(buf, format="JPEG", quality=85)
                return buf.getvalue()

        except Exception as e:
            logger.warning(f"Failed to read image {path.name}: {e}")
            return None

    def transcript_path_for(self, video_path: Path) -> Path:
        return self.transcript_dir / f"{Path(video_path).stem}.txt"

    def load_transcript(self, video_path: Path) -> str | None:
        """Load the sibling transcript for a video, if one exists."""
        transcript_path = self.transcript_path_for(video_path)

        if not transcript_path.is_file():
            return None

        try:
            text = transcript_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Error loading transcript {transcript_path.name}: {e}")
            return None

        return text if text.strip() else None
