import pytest

from services.media_worker import config
from services.media_worker.domain.errors import ConfigurationError

REQUIRED = {
    "HMAC_SECRET": "secret",
    "BACKBLAZE_APPLICATION_KEY_ID": "key-id",
    "BACKBLAZE_APPLICATION_KEY": "app-key",
    "BACKBLAZE_BUCKET_ID": "bucket-1",
    "DATABASE_URL": "postgresql://user:pw@db:5432/app",
}

OPTIONAL = [
    "WORKER_ID",
    "DISPATCHER_URL",
    "WEBSOCKET_SERVER_URL",
    "FFMPEG_PATH",
    "CDN_BASE_URL",
    "BACKBLAZE_AUTH_URL",
    "POLL_INTERVAL_SECONDS",
    "JOB_TIMEOUT_SECONDS",
    "FFMPEG_TIMEOUT_SECONDS",
    "HTTP_TIMEOUT_SECONDS",
    "UPLOAD_MAX_ATTEMPTS",
    "DURATION_MAX_ATTEMPTS",
    "DURATION_RETRY_DELAY_SECONDS",
    "DISPATCHER_MAX_ATTEMPTS",
    "DISPATCHER_RETRY_DELAY_SECONDS",
    "LOG_LEVEL",
]


@pytest.fixture
def env(monkeypatch):
    for name in OPTIONAL:
        monkeypatch.delenv(name, raising=False)
    for name, value in REQUIRED.items():
        monkeypatch.setenv(name, value)
    return monkeypatch


def test_defaults(env):
    cfg = config.load_config()

    assert cfg.worker_type == "thumbnail"
    assert cfg.worker_id.startswith("thumbnail-")
    assert cfg.dispatcher_url == "http://localhost:8080"
    assert cfg.broadcast_url == "http://localhost:8080"
    assert cfg.ffmpeg_path == "ffmpeg"
    assert cfg.cdn_base_url == "https://cdn.unpuzzle.co"
    assert cfg.b2_auth_url == "https://api.backblazeb2.com"
    assert cfg.poll_interval_seconds == 5.0
    assert cfg.job_timeout_seconds == 600.0
    assert cfg.upload_max_attempts == 2
    assert cfg.duration_max_attempts == 2
    assert cfg.duration_retry_delay_seconds == 5.0
    assert cfg.dispatcher_max_attempts == 2
    assert cfg.dispatcher_retry_delay_seconds == 1.0
    assert cfg.log_level == "INFO"


def test_overrides(env):
    env.setenv("WORKER_ID", "thumb-a")
    env.setenv("DISPATCHER_URL", "http://dispatcher:9000")
    env.setenv("POLL_INTERVAL_SECONDS", "2.5")
    env.setenv("UPLOAD_MAX_ATTEMPTS", "3")
    env.setenv("LOG_LEVEL", "debug")

    cfg = config.load_config()

    assert cfg.worker_id == "thumb-a"
    assert cfg.dispatcher_url == "http://dispatcher:9000"
    assert cfg.poll_interval_seconds == 2.5
    assert cfg.upload_max_attempts == 3
    assert cfg.log_level == "DEBUG"


@pytest.mark.parametrize("name", sorted(REQUIRED))
def test_missing_required_value_is_fatal(env, name):
    env.delenv(name)

    with pytest.raises(ConfigurationError, match=name):
        config.load_config()


def test_invalid_number_is_rejected(env):
    env.setenv("UPLOAD_MAX_ATTEMPTS", "two")

    with pytest.raises(ConfigurationError, match="UPLOAD_MAX_ATTEMPTS"):
        config.load_config()


@pytest.mark.parametrize(
    "url, expected",
    [
        ("postgresql://u:p@db/app", "postgresql+psycopg://u:p@db/app"),
        ("postgres://u:p@db/app", "postgresql+psycopg://u:p@db/app"),
        ("postgresql+psycopg://u:p@db/app", "postgresql+psycopg://u:p@db/app"),
        ("sqlite:///media.db", "sqlite:///media.db"),
    ],
)
def test_sqlalchemy_dsn(env, url, expected):
    env.setenv("DATABASE_URL", url)

    assert config.load_config().sqlalchemy_dsn == expected
