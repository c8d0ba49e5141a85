from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from services.media_worker.domain.errors import InvalidPrivateReferenceError

PRIVATE_PREFIX = "private"


@dataclass(frozen=True)
class MediaFile:
    id: str
    name: str
    original_name: Optional[str] = None
    backblaze_url: Optional[str] = None
    cdn_url: Optional[str] = None
    duration_seconds: Optional[float] = None
    thumbnail_url: Optional[str] = None
    uploaded_by: Optional[str] = None
    updated_at: Optional[datetime] = None

    @property
    def storage_url(self) -> str | None:
        return self.cdn_url or self.backblaze_url

    @property
    def has_duration(self) -> bool:
        return self.duration_seconds is not None and self.duration_seconds > 0


@dataclass(frozen=True)
class PrivateReference:
    """Opaque pointer to a stored object: ``private:<file-id>:<path>``."""

    file_id: str
    path: str

    @classmethod
    def parse(cls, reference: str) -> "PrivateReference":
        parts = reference.split(":")
        if len(parts) != 3 or parts[0] != PRIVATE_PREFIX:
            raise InvalidPrivateReferenceError(
                f"Invalid private reference format: {reference[:50]!r}"
            )
        _, file_id, path = parts
        return cls(file_id=file_id, path=normalize_path(path))

    def __str__(self) -> str:
        return f"{PRIVATE_PREFIX}:{self.file_id}:{self.path}"


def is_private_reference(reference: str) -> bool:
    return reference.startswith(f"{PRIVATE_PREFIX}:")


def redact_url(url: str) -> str:
    """Drop the query string so signed tokens never reach the logs."""
    return url.split("?", 1)[0]


def normalize_path(path: str) -> str:
    return path if path.startswith("/") else f"/{path}"


@dataclass(frozen=True)
class ThumbnailResult:
    video_id: str
    thumbnail_url: str
    user_id: Optional[str] = None
