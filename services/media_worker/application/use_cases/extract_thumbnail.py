from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Callable

from tenacity import (
    RetryCallState,
    RetryError,
    Retrying,
    retry_if_result,
    stop_after_attempt,
    wait_fixed,
)

from services.media_worker.application.interfaces import (
    BroadcastPublisher,
    FrameExtractor,
    MediaRepository,
    StorageGateway,
    UrlSigner,
)
from services.media_worker.application.job_runner import JobContext
from services.media_worker.domain.errors import (
    DurationNotAvailableError,
    MediaNotFoundError,
)
from services.media_worker.domain.job import Job
from services.media_worker.domain.media import (
    MediaFile,
    ThumbnailResult,
    is_private_reference,
    redact_url,
)

logger = logging.getLogger(__name__)


def thumbnail_file_name(video_id: str) -> str:
    return f"{video_id}_thumbnail.jpg"


class ExtractThumbnailUseCase:
    """
    Produces a thumbnail for one video:
    1. Load the media record, waiting once for its duration if needed
    2. Resolve a fetchable (signed) video URL
    3. Grab a frame with ffmpeg and upload it to object storage
    4. Store the reference on the record and broadcast the change
    """

    def __init__(
        self,
        *,
        media_repository: MediaRepository,
        url_signer: UrlSigner,
        frame_extractor: FrameExtractor,
        storage: StorageGateway,
        publisher: BroadcastPublisher,
        duration_max_attempts: int = 2,
        duration_retry_delay_seconds: float = 5.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._media_repository = media_repository
        self._url_signer = url_signer
        self._frame_extractor = frame_extractor
        self._storage = storage
        self._publisher = publisher
        self._duration_max_attempts = duration_max_attempts
        self._duration_retry_delay = duration_retry_delay_seconds
        self._sleep = sleep

    def execute(self, job: Job, context: JobContext) -> ThumbnailResult:
        if not job.video_id:
            raise MediaNotFoundError(f"Job {job.id} has no target video")
        video_id = job.video_id
        logger.info("Extracting thumbnail for video %s", video_id)

        media = self._load_media_with_duration(video_id)
        video_url = self._resolve_video_url(media)

        context.report_progress(25)
        frame_path = self._frame_extractor.extract(
            video_url, media.duration_seconds, timeout=context.remaining_seconds()
        )
        try:
            context.report_progress(50)
            thumbnail_url = self._storage.upload(
                frame_path.read_bytes(), thumbnail_file_name(video_id)
            )
            logger.info("Thumbnail uploaded: %s", thumbnail_url)

            context.report_progress(75)
            self._media_repository.update_thumbnail(video_id, thumbnail_url)
            logger.info("Thumbnail URL updated for video %s", video_id)

            self._publisher.publish_thumbnail_updated(
                video_id=video_id,
                thumbnail_url=thumbnail_url,
                user_id=media.uploaded_by,
            )
        finally:
            _remove_frame(frame_path)

        return ThumbnailResult(
            video_id=video_id,
            thumbnail_url=thumbnail_url,
            user_id=media.uploaded_by,
        )

    def _load_media_with_duration(self, video_id: str) -> MediaFile:
        fetches = 0

        def fetch() -> MediaFile:
            nonlocal fetches
            fetches += 1
            media = self._media_repository.get(video_id)
            if media is None:
                suffix = " on retry" if fetches > 1 else ""
                raise MediaNotFoundError(f"Media file not found{suffix}: {video_id}")
            if fetches == 1:
                logger.info("Media file found: %s", media.name)
            return media

        def log_wait(retry_state: RetryCallState) -> None:
            logger.info(
                "Duration not available yet for %s, retrying in %ss",
                video_id,
                retry_state.next_action.sleep,
            )

        retrying = Retrying(
            stop=stop_after_attempt(self._duration_max_attempts),
            wait=wait_fixed(self._duration_retry_delay),
            retry=retry_if_result(lambda media: not media.has_duration),
            before_sleep=log_wait,
            sleep=self._sleep,
        )
        try:
            return retrying(fetch)
        except RetryError:
            raise DurationNotAvailableError(
                "Video duration still not available after retry. "
                "Duration worker may have failed."
            ) from None

    def _resolve_video_url(self, media: MediaFile) -> str:
        storage_url = media.storage_url
        if not storage_url:
            raise MediaNotFoundError("No storage URL available")
        if not is_private_reference(storage_url):
            logger.info("Using public URL directly")
            return storage_url
        signed_url = self._url_signer.sign_reference(storage_url)
        logger.info("Signed CDN URL generated: %s", redact_url(signed_url))
        return signed_url


def _remove_frame(frame_path: Path) -> None:
    try:
        frame_path.unlink(missing_ok=True)
        logger.debug("Cleaned up temp file %s", frame_path)
    except OSError as exc:
        logger.warning("Failed to clean up temp file %s: %s", frame_path, exc)
