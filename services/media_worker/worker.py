import logging
import signal
import threading
from typing import Optional

import httpx

from .application.handlers import JobHandlerRegistry
from .application.job_runner import JobRunner
from .application.use_cases.extract_thumbnail import ExtractThumbnailUseCase
from .config import WORKER_TYPE, WorkerConfig, load_config
from .infrastructure.db import create_session_factory
from .infrastructure.dispatcher import create_dispatcher_client
from .infrastructure.frame_extractor import create_frame_extractor
from .infrastructure.media_files import PostgresMediaFileRepository
from .infrastructure.signing import CdnUrlSigner
from .infrastructure.status_publisher import create_broadcast_publisher
from .infrastructure.storage import create_storage_gateway

logger = logging.getLogger(__name__)

_CONFIG: WorkerConfig | None = None


def get_config() -> WorkerConfig:
    global _CONFIG
    if _CONFIG is None:
        _CONFIG = load_config()
    return _CONFIG


def create_http_client(cfg: WorkerConfig) -> httpx.Client:
    return httpx.Client(timeout=cfg.http_timeout_seconds)


def get_thumbnail_use_case(
    cfg: WorkerConfig, http: httpx.Client
) -> ExtractThumbnailUseCase:
    session_factory = create_session_factory(cfg.sqlalchemy_dsn)
    return ExtractThumbnailUseCase(
        media_repository=PostgresMediaFileRepository(session_factory),
        url_signer=CdnUrlSigner(cfg.cdn_base_url, cfg.hmac_secret),
        frame_extractor=create_frame_extractor(cfg),
        storage=create_storage_gateway(cfg, http),
        publisher=create_broadcast_publisher(cfg, http),
        duration_max_attempts=cfg.duration_max_attempts,
        duration_retry_delay_seconds=cfg.duration_retry_delay_seconds,
    )


def build_runner(
    cfg: WorkerConfig,
    http: httpx.Client,
    *,
    handlers: Optional[JobHandlerRegistry] = None,
) -> JobRunner:
    if handlers is None:
        handlers = JobHandlerRegistry({WORKER_TYPE: get_thumbnail_use_case(cfg, http)})
    return JobRunner(
        dispatcher=create_dispatcher_client(cfg, http),
        handlers=handlers,
        worker_id=cfg.worker_id,
        worker_type=cfg.worker_type,
        poll_interval_seconds=cfg.poll_interval_seconds,
        job_timeout_seconds=cfg.job_timeout_seconds,
        status_max_attempts=cfg.dispatcher_max_attempts,
        status_retry_delay_seconds=cfg.dispatcher_retry_delay_seconds,
    )


def install_signal_handlers(stop_event: threading.Event) -> None:
    def _handle(signum, _frame):
        logger.info(
            "Received %s, finishing current job before shutdown",
            signal.Signals(signum).name,
        )
        stop_event.set()

    signal.signal(signal.SIGINT, _handle)
    signal.signal(signal.SIGTERM, _handle)


def run_worker_service(stop_event: Optional[threading.Event] = None) -> None:
    cfg = get_config()
    stop_event = stop_event or threading.Event()
    http = create_http_client(cfg)
    try:
        runner = build_runner(cfg, http)
        install_signal_handlers(stop_event)
        logger.info(
            "Starting %s worker %s (dispatcher %s)",
            cfg.worker_type,
            cfg.worker_id,
            cfg.dispatcher_url,
        )
        runner.run(stop_event)
    finally:
        http.close()
        logger.info("Worker %s shut down", cfg.worker_id)
