from __future__ import annotations

import logging
from typing import Any

import httpx

from ..application.interfaces import DispatcherClient
from ..config import WorkerConfig
from ..domain.errors import DispatcherError
from ..domain.job import Job, JobUpdate

logger = logging.getLogger(__name__)


class HttpDispatcherClient(DispatcherClient):
    def __init__(self, http: httpx.Client, *, base_url: str) -> None:
        self._http = http
        self._base_url = base_url.rstrip("/")

    def request_job(self, worker_id: str, worker_type: str) -> Job | None:
        response = self._post(
            "/get-job", {"workerId": worker_id, "workerType": worker_type}
        )
        if response.is_error:
            raise DispatcherError(
                f"Job request failed: {response.status_code} {response.text[:200]}"
            )
        if not response.content.strip():
            return None
        try:
            payload = response.json()
        except ValueError as exc:
            raise DispatcherError(
                f"Invalid JSON response: {response.text[:200]}"
            ) from exc
        if not payload:
            return None
        if not isinstance(payload, dict):
            raise DispatcherError(f"Unexpected job payload: {payload!r}")
        try:
            return Job.from_payload(payload)
        except (TypeError, ValueError) as exc:
            raise DispatcherError(f"Malformed job payload: {exc}") from exc

    def update_job(self, update: JobUpdate) -> None:
        response = self._post("/job-update", update.to_payload())
        if response.status_code != 200:
            raise DispatcherError(
                f"Update failed: {response.status_code} {response.text[:200]}"
            )
        logger.debug(
            "Reported job %s: %s %s%%",
            update.job_id,
            update.status.value,
            update.progress,
        )

    def _post(self, path: str, payload: dict[str, Any]) -> httpx.Response:
        try:
            return self._http.post(f"{self._base_url}{path}", json=payload)
        except httpx.HTTPError as exc:
            raise DispatcherError(f"{path} request error: {exc}") from exc


def create_dispatcher_client(
    config: WorkerConfig, http: httpx.Client
) -> DispatcherClient:
    return HttpDispatcherClient(http, base_url=config.dispatcher_url)
