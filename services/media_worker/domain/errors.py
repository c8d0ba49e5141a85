from __future__ import annotations


class MediaWorkerError(Exception):
    """Base class for errors raised by the media worker."""


class ConfigurationError(MediaWorkerError, ValueError):
    """Raised when a required setting or secret is missing."""


class DispatcherError(MediaWorkerError):
    """Raised when the job dispatcher is unreachable or answers badly."""


class MediaNotFoundError(MediaWorkerError):
    """Raised when the media record for a job cannot be loaded."""


class DurationNotAvailableError(MediaWorkerError):
    """Raised when a video still has no duration after waiting for it."""


class InvalidPrivateReferenceError(MediaWorkerError, ValueError):
    """Raised when a storage reference is not ``private:<file-id>:<path>``."""


class VideoTooShortError(MediaWorkerError, ValueError):
    """Raised when a video is too short to pick a frame from."""


class FrameExtractionError(MediaWorkerError):
    """Raised when ffmpeg fails to produce a frame."""

    def __init__(self, message: str, *, stderr: str = "") -> None:
        super().__init__(message)
        self.stderr = stderr


class StorageError(MediaWorkerError):
    """Raised when a single object-storage call fails."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class UploadError(MediaWorkerError):
    """Raised when an upload still fails after the allowed retries."""


class PersistenceError(MediaWorkerError):
    """Raised when the media record cannot be updated."""


class BroadcastError(MediaWorkerError):
    """Raised when the broadcast relay rejects a notification."""


class JobTimeoutError(MediaWorkerError):
    """Raised when a job runs past its deadline."""


class UnknownJobTypeError(MediaWorkerError):
    """Raised when no handler is registered for a job type."""
