from __future__ import annotations

import logging
import os
import subprocess
import tempfile
from pathlib import Path

from services.media_worker.application.interfaces import FrameExtractor
from services.media_worker.config import WorkerConfig
from services.media_worker.domain.errors import (
    FrameExtractionError,
    VideoTooShortError,
)
from services.media_worker.domain.media import redact_url

logger = logging.getLogger(__name__)

MAX_WIDTH = 1280
MAX_HEIGHT = 720
MIN_OFFSET_SECONDS = 0.5
MAX_OFFSET_SECONDS = 3.0
END_MARGIN_SECONDS = 0.5
MIN_EXTRACTABLE_DURATION = MIN_OFFSET_SECONDS + END_MARGIN_SECONDS


def compute_extraction_time(duration: float | None) -> float:
    """Pick the instant to grab: early, past any black lead-in, never past the end."""
    if duration is None or duration < MIN_EXTRACTABLE_DURATION:
        raise VideoTooShortError(
            f"Video duration {duration!r}s is too short to extract a thumbnail "
            f"(minimum {MIN_EXTRACTABLE_DURATION}s)"
        )
    return max(
        MIN_OFFSET_SECONDS,
        min(MAX_OFFSET_SECONDS, duration * 0.1, duration - END_MARGIN_SECONDS),
    )


class FFmpegFrameExtractor(FrameExtractor):
    def __init__(
        self,
        *,
        ffmpeg_path: str = "ffmpeg",
        timeout_seconds: float | None = 120.0,
        output_dir: Path | None = None,
        log_level: str = "error",
    ) -> None:
        self._ffmpeg_path = ffmpeg_path
        self._timeout = timeout_seconds
        self._output_dir = output_dir
        self._log_level = log_level

    def extract(
        self, video_url: str, duration: float, *, timeout: float | None = None
    ) -> Path:
        offset = compute_extraction_time(duration)
        destination = self._build_destination_path()
        logger.info(
            "Extracting thumbnail at %ss from %s", offset, redact_url(video_url)
        )
        effective_timeout = self._effective_timeout(timeout)
        try:
            self._run_ffmpeg(video_url, offset, destination, effective_timeout)
        except BaseException:
            destination.unlink(missing_ok=True)
            raise
        logger.info("Thumbnail extracted to %s", destination)
        return destination

    def _effective_timeout(self, timeout: float | None) -> float | None:
        candidates = [t for t in (self._timeout, timeout) if t is not None]
        return min(candidates) if candidates else None

    def _build_destination_path(self) -> Path:
        fd, name = tempfile.mkstemp(
            prefix="thumbnail_", suffix=".jpg", dir=self._output_dir
        )
        os.close(fd)
        path = Path(name)
        # ffmpeg must create the file itself so its existence proves success.
        path.unlink()
        return path

    def _build_command(
        self, video_url: str, offset: float, destination: Path
    ) -> list[str]:
        return [
            self._ffmpeg_path,
            "-y",
            "-hide_banner",
            "-loglevel",
            self._log_level,
            "-ss",
            f"{offset:g}",
            "-i",
            video_url,
            "-vframes",
            "1",
            "-vf",
            f"scale={MAX_WIDTH}:{MAX_HEIGHT}:force_original_aspect_ratio=decrease",
            "-q:v",
            "2",
            destination.as_posix(),
        ]

    def _run_ffmpeg(
        self, video_url: str, offset: float, destination: Path, timeout: float | None
    ) -> None:
        cmd = self._build_command(video_url, offset, destination)
        try:
            result = subprocess.run(cmd, capture_output=True, timeout=timeout)
        except FileNotFoundError as exc:
            raise FrameExtractionError(
                f"ffmpeg executable not found: {self._ffmpeg_path}"
            ) from exc
        except subprocess.TimeoutExpired as exc:
            raise FrameExtractionError(
                f"ffmpeg timed out after {timeout}s", stderr=_decode(exc.stderr)
            ) from exc

        stderr = _decode(result.stderr)
        if result.returncode != 0:
            raise FrameExtractionError(
                f"ffmpeg failed with code {result.returncode}: "
                f"{stderr.strip() or 'unknown error'}",
                stderr=stderr,
            )
        if not destination.exists():
            raise FrameExtractionError(
                "ffmpeg did not create thumbnail file", stderr=stderr
            )


def _decode(output: bytes | str | None) -> str:
    if output is None:
        return ""
    if isinstance(output, str):
        return output
    return output.decode("utf-8", errors="ignore")


def create_frame_extractor(config: WorkerConfig) -> FrameExtractor:
    return FFmpegFrameExtractor(
        ffmpeg_path=config.ffmpeg_path,
        timeout_seconds=config.ffmpeg_timeout_seconds,
    )
