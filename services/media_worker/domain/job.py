from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping


class JobStatus(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class Job:
    id: str
    job_type: str | None
    video_id: str | None
    worker_id: str | None = None
    status: JobStatus = JobStatus.QUEUED
    progress: int = 0
    error: str | None = None
    timestamp: int | str | None = None
    operation_id: str | None = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Job":
        """Build a job from the dispatcher's camelCase JSON."""
        job_id = payload.get("id")
        if not job_id:
            raise ValueError("Job payload is missing an id")
        raw_status = payload.get("status") or JobStatus.QUEUED.value
        try:
            status = JobStatus(raw_status)
        except ValueError as exc:
            raise ValueError(f"Unknown job status {raw_status!r}") from exc
        return cls(
            id=str(job_id),
            job_type=payload.get("jobType") or payload.get("type"),
            video_id=_optional_str(payload.get("videoId")),
            worker_id=_optional_str(payload.get("workerId")),
            status=status,
            progress=int(payload.get("progress") or 0),
            error=payload.get("error"),
            timestamp=payload.get("updatedAt") or payload.get("createdAt"),
            operation_id=_optional_str(payload.get("operationId")),
        )


@dataclass(frozen=True)
class JobUpdate:
    job_id: str
    progress: int
    status: JobStatus
    worker_id: str
    worker_type: str
    timestamp: int
    error: str | None = None

    def to_payload(self) -> dict[str, Any]:
        return {
            "jobId": self.job_id,
            "progress": self.progress,
            "status": self.status.value,
            "error": self.error,
            "workerId": self.worker_id,
            "workerType": self.worker_type,
            "timestamp": self.timestamp,
        }


def _optional_str(value: object) -> str | None:
    if value is None:
        return None
    return str(value)
