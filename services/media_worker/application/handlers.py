from __future__ import annotations

from typing import Iterator, Mapping

from services.media_worker.application.interfaces import JobHandler
from services.media_worker.domain.errors import UnknownJobTypeError


class JobHandlerRegistry:
    """Dispatch table from job type to the handler that executes it."""

    def __init__(self, handlers: Mapping[str, JobHandler] | None = None) -> None:
        self._handlers: dict[str, JobHandler] = {}
        for job_type, handler in (handlers or {}).items():
            self.register(job_type, handler)

    def register(self, job_type: str, handler: JobHandler) -> None:
        if not job_type:
            raise ValueError("job_type must be a non-empty string")
        if job_type in self._handlers:
            raise ValueError(f"A handler is already registered for {job_type!r}")
        self._handlers[job_type] = handler

    def get(self, job_type: str) -> JobHandler:
        try:
            return self._handlers[job_type]
        except KeyError:
            raise UnknownJobTypeError(
                f"No handler registered for job type {job_type!r}"
            ) from None

    def __iter__(self) -> Iterator[str]:
        return iter(self._handlers)
