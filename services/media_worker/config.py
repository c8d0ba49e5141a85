from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from services.media_worker.domain.errors import ConfigurationError

WORKER_TYPE = "thumbnail"


def _load_repo_env() -> None:
    """Load the nearest .env starting from this file upward."""
    current = Path(__file__).resolve()
    for candidate in [current.parent, *current.parents]:
        env_file = candidate / ".env"
        if env_file.exists():
            load_dotenv(env_file)
            return


_load_repo_env()


def _require_env(name: str) -> str:
    value = os.getenv(name)
    if value is None or value == "":
        raise ConfigurationError(f"Environment variable {name} is required")
    return value


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(
            f"Environment variable {name} must be an integer"
        ) from exc


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationError(
            f"Environment variable {name} must be a number"
        ) from exc


@dataclass(frozen=True)
class WorkerConfig:
    worker_id: str
    worker_type: str
    dispatcher_url: str
    broadcast_url: str
    ffmpeg_path: str
    cdn_base_url: str
    hmac_secret: str
    b2_key_id: str
    b2_application_key: str
    b2_bucket_id: str
    b2_auth_url: str
    database_url: str
    poll_interval_seconds: float
    job_timeout_seconds: float
    ffmpeg_timeout_seconds: float
    http_timeout_seconds: float
    upload_max_attempts: int
    duration_max_attempts: int
    duration_retry_delay_seconds: float
    dispatcher_max_attempts: int
    dispatcher_retry_delay_seconds: float
    log_level: str

    @property
    def sqlalchemy_dsn(self) -> str:
        dsn = self.database_url
        if dsn.startswith("postgres://"):
            dsn = dsn.replace("postgres://", "postgresql://", 1)
        if dsn.startswith("postgresql://"):
            return dsn.replace("postgresql://", "postgresql+psycopg://", 1)
        return dsn


def load_config() -> WorkerConfig:
    return WorkerConfig(
        worker_id=os.getenv("WORKER_ID") or f"{WORKER_TYPE}-{os.getpid()}",
        worker_type=WORKER_TYPE,
        dispatcher_url=os.getenv("DISPATCHER_URL", "http://localhost:8080"),
        broadcast_url=os.getenv("WEBSOCKET_SERVER_URL", "http://localhost:8080"),
        ffmpeg_path=os.getenv("FFMPEG_PATH", "ffmpeg"),
        cdn_base_url=os.getenv("CDN_BASE_URL", "https://cdn.unpuzzle.co"),
        hmac_secret=_require_env("HMAC_SECRET"),
        b2_key_id=_require_env("BACKBLAZE_APPLICATION_KEY_ID"),
        b2_application_key=_require_env("BACKBLAZE_APPLICATION_KEY"),
        b2_bucket_id=_require_env("BACKBLAZE_BUCKET_ID"),
        b2_auth_url=os.getenv("BACKBLAZE_AUTH_URL", "https://api.backblazeb2.com"),
        database_url=_require_env("DATABASE_URL"),
        poll_interval_seconds=_env_float("POLL_INTERVAL_SECONDS", 5.0),
        job_timeout_seconds=_env_float("JOB_TIMEOUT_SECONDS", 600.0),
        ffmpeg_timeout_seconds=_env_float("FFMPEG_TIMEOUT_SECONDS", 120.0),
        http_timeout_seconds=_env_float("HTTP_TIMEOUT_SECONDS", 30.0),
        upload_max_attempts=_env_int("UPLOAD_MAX_ATTEMPTS", 2),
        duration_max_attempts=_env_int("DURATION_MAX_ATTEMPTS", 2),
        duration_retry_delay_seconds=_env_float("DURATION_RETRY_DELAY_SECONDS", 5.0),
        dispatcher_max_attempts=_env_int("DISPATCHER_MAX_ATTEMPTS", 2),
        dispatcher_retry_delay_seconds=_env_float(
            "DISPATCHER_RETRY_DELAY_SECONDS", 1.0
        ),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
