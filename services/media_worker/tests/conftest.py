import pytest

from services.media_worker.config import WorkerConfig


def make_config(**overrides) -> WorkerConfig:
    values = dict(
        worker_id="thumbnail-1",
        worker_type="thumbnail",
        dispatcher_url="http://dispatcher.test",
        broadcast_url="http://relay.test",
        ffmpeg_path="ffmpeg",
        cdn_base_url="https://cdn.example.com",
        hmac_secret="secret",
        b2_key_id="key-id",
        b2_application_key="app-key",
        b2_bucket_id="bucket-1",
        b2_auth_url="https://auth.b2.test",
        database_url="sqlite://",
        poll_interval_seconds=5.0,
        job_timeout_seconds=600.0,
        ffmpeg_timeout_seconds=120.0,
        http_timeout_seconds=30.0,
        upload_max_attempts=2,
        duration_max_attempts=2,
        duration_retry_delay_seconds=5.0,
        dispatcher_max_attempts=3,
        dispatcher_retry_delay_seconds=1.0,
        log_level="INFO",
    )
    values.update(overrides)
    return WorkerConfig(**values)


@pytest.fixture
def worker_config():
    """Factory for a fully populated ``WorkerConfig`` with overrides."""
    return make_config
