from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from services.media_worker.application.job_runner import JobContext
    from services.media_worker.domain.job import Job, JobUpdate
    from services.media_worker.domain.media import MediaFile


class DispatcherClient(Protocol):
    def request_job(self, worker_id: str, worker_type: str) -> "Job" | None: ...

    def update_job(self, update: "JobUpdate") -> None: ...


class MediaRepository(Protocol):
    def get(self, media_id: str) -> "MediaFile" | None: ...

    def update_thumbnail(self, media_id: str, thumbnail_url: str) -> None: ...


class StorageGateway(Protocol):
    def upload(self, data: bytes, file_name: str) -> str:
        """Store ``data`` and return its private reference."""
        ...


class FrameExtractor(Protocol):
    def extract(
        self, video_url: str, duration: float, *, timeout: float | None = None
    ) -> Path: ...


class UrlSigner(Protocol):
    def sign_reference(self, reference: str) -> str: ...


class BroadcastPublisher(Protocol):
    def publish_thumbnail_updated(
        self, *, video_id: str, thumbnail_url: str, user_id: str | None
    ) -> bool: ...


class JobHandler(Protocol):
    def execute(self, job: "Job", context: "JobContext") -> object: ...
