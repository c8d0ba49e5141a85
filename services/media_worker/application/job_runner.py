"""Polling loop and status lifecycle shared by every worker type."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from services.media_worker.application.handlers import JobHandlerRegistry
from services.media_worker.application.interfaces import DispatcherClient
from services.media_worker.domain.errors import (
    DispatcherError,
    JobTimeoutError,
    MediaWorkerError,
)
from services.media_worker.domain.job import Job, JobStatus, JobUpdate

logger = logging.getLogger(__name__)

StatusReporter = Callable[[str, float, JobStatus], None]


class JobContext:
    """Per-job handle given to handlers for progress reports and the deadline."""

    def __init__(
        self,
        job: Job,
        *,
        reporter: StatusReporter,
        deadline: float | None = None,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self.job = job
        self._reporter = reporter
        self._deadline = deadline
        self._monotonic = monotonic

    def report_progress(self, progress: float) -> None:
        self._reporter(self.job.id, progress, JobStatus.PROCESSING)
        self.check_deadline()

    def remaining_seconds(self) -> float | None:
        if self._deadline is None:
            return None
        return max(self._deadline - self._monotonic(), 0.0)

    def check_deadline(self) -> None:
        remaining = self.remaining_seconds()
        if remaining is not None and remaining <= 0:
            raise JobTimeoutError(f"Job {self.job.id} exceeded its deadline")


class JobRunner:
    """Requests jobs from the dispatcher and drives them to a terminal status.

    A runner holds at most one job at a time. Job-type specifics live in the
    handlers registered on ``handlers``; the runner only owns polling,
    the in-flight guard and status reporting.
    """

    def __init__(
        self,
        *,
        dispatcher: DispatcherClient,
        handlers: JobHandlerRegistry,
        worker_id: str,
        worker_type: str,
        poll_interval_seconds: float = 5.0,
        job_timeout_seconds: float | None = None,
        status_max_attempts: int = 1,
        status_retry_delay_seconds: float = 0.0,
        clock: Callable[[], float] = time.time,
        monotonic: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._dispatcher = dispatcher
        self._handlers = handlers
        self.worker_id = worker_id
        self.worker_type = worker_type
        self._poll_interval = poll_interval_seconds
        self._job_timeout = job_timeout_seconds
        self._status_max_attempts = status_max_attempts
        self._status_retry_delay = status_retry_delay_seconds
        self._clock = clock
        self._monotonic = monotonic
        self._sleep = sleep
        self._current_job: Optional[Job] = None
        self._is_processing = False

    @property
    def current_job(self) -> Optional[Job]:
        return self._current_job

    @property
    def is_processing(self) -> bool:
        return self._is_processing

    def run(self, stop_event: threading.Event | None = None) -> None:
        stop_event = stop_event or threading.Event()
        logger.info(
            "%s worker %s polling every %ss for job types: %s",
            self.worker_type,
            self.worker_id,
            self._poll_interval,
            ", ".join(self._handlers),
        )
        while not stop_event.is_set():
            try:
                self.poll_once()
            except Exception:
                logger.exception("Unexpected error while polling for jobs")
            stop_event.wait(self._poll_interval)
        logger.info("%s worker %s stopped", self.worker_type, self.worker_id)

    def poll_once(self) -> JobStatus | None:
        """Run one tick: fetch a job if idle and process it."""
        if self.is_processing:
            return None
        job = self.request_job()
        if job is None:
            return None
        logger.info("Received %s job %s", job.job_type or self.worker_type, job.id)
        return self.process_job(job)

    def request_job(self) -> Job | None:
        try:
            return self._dispatcher.request_job(self.worker_id, self.worker_type)
        except DispatcherError as exc:
            logger.error("Job request failed: %s", exc)
            return None

    def process_job(self, job: Job) -> JobStatus:
        if self.is_processing:
            current = self.current_job
            raise RuntimeError(
                f"Worker {self.worker_id} is already processing job "
                f"{current.id if current else '?'}"
            )
        self._is_processing = True
        self._current_job = job
        logger.info("Processing %s job %s", self.worker_type, job.id)
        try:
            try:
                self.update_job_status(job.id, 0, JobStatus.PROCESSING)
                handler = self._handlers.get(job.job_type or self.worker_type)
                handler.execute(job, self._build_context(job))
            except Exception as exc:
                if isinstance(exc, MediaWorkerError):
                    logger.error("%s job %s failed: %s", self.worker_type, job.id, exc)
                else:
                    logger.exception("%s job %s failed", self.worker_type, job.id)
                self._report_terminal(job, 0, JobStatus.FAILED, str(exc))
                return JobStatus.FAILED

            self._report_terminal(job, 100, JobStatus.COMPLETED)
            logger.info("%s job %s completed", self.worker_type, job.id)
            return JobStatus.COMPLETED
        finally:
            self._is_processing = False
            self._current_job = None

    def update_job_status(
        self,
        job_id: str,
        progress: float,
        status: JobStatus,
        error: str | None = None,
    ) -> None:
        update = JobUpdate(
            job_id=job_id,
            progress=round(progress),
            status=status,
            error=error,
            worker_id=self.worker_id,
            worker_type=self.worker_type,
            timestamp=int(self._clock() * 1000),
        )
        retrying = Retrying(
            stop=stop_after_attempt(self._status_max_attempts),
            wait=wait_fixed(self._status_retry_delay),
            retry=retry_if_exception_type(DispatcherError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            sleep=self._sleep,
            reraise=True,
        )
        retrying(self._dispatcher.update_job, update)

    def _build_context(self, job: Job) -> JobContext:
        deadline = None
        if self._job_timeout:
            deadline = self._monotonic() + self._job_timeout
        return JobContext(
            job,
            reporter=self.update_job_status,
            deadline=deadline,
            monotonic=self._monotonic,
        )

    def _report_terminal(
        self, job: Job, progress: int, status: JobStatus, error: str | None = None
    ) -> None:
        try:
            self.update_job_status(job.id, progress, status, error)
        except DispatcherError as exc:
            logger.error(
                "Could not report %s for job %s: %s", status.value, job.id, exc
            )
