from __future__ import annotations

import hashlib
import json

import httpx
import pytest

from services.media_worker.domain.errors import StorageError, UploadError
from services.media_worker.infrastructure.storage import (
    B2Authorization,
    B2StorageGateway,
    BackblazeB2Client,
    UploadSession,
)

AUTH_URL = "https://auth.b2.test"
API_URL = "https://api.b2.test"


class FakeB2:
    """Scripted B2 endpoints; ``upload_failures`` upload calls answer 503."""

    def __init__(self, *, upload_failures: int = 0, upload_url_401: int = 0) -> None:
        self.upload_failures = upload_failures
        self.upload_url_401 = upload_url_401
        self.calls: list[str] = []
        self.upload_requests: list[httpx.Request] = []
        self._sessions = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.calls.append(path.rsplit("/", 1)[-1] if "b2_" in path else "upload")
        if path.endswith("/b2_authorize_account"):
            return httpx.Response(
                200, json={"apiUrl": API_URL, "authorizationToken": "account-token"}
            )
        if path.endswith("/b2_get_upload_url"):
            if self.upload_url_401:
                self.upload_url_401 -= 1
                return httpx.Response(401, json={"code": "expired_auth_token"})
            self._sessions += 1
            return httpx.Response(
                200,
                json={
                    "uploadUrl": f"https://pod.b2.test/upload/{self._sessions}",
                    "authorizationToken": f"upload-token-{self._sessions}",
                },
            )
        self.upload_requests.append(request)
        if self.upload_failures:
            self.upload_failures -= 1
            return httpx.Response(503, json={"code": "service_unavailable"})
        name = request.headers["X-Bz-File-Name"]
        return httpx.Response(200, json={"fileId": "4_zfile", "fileName": name})


def make_gateway(fake: FakeB2, *, max_attempts: int = 2) -> B2StorageGateway:
    http = httpx.Client(transport=httpx.MockTransport(fake))
    client = BackblazeB2Client(
        http, key_id="key-id", application_key="app-key", auth_url=AUTH_URL
    )
    return B2StorageGateway(
        client,
        bucket_id="bucket-1",
        max_attempts=max_attempts,
        sleep=lambda _: None,
    )


def test_upload_returns_private_reference():
    fake = FakeB2()
    gateway = make_gateway(fake)

    reference = gateway.upload(b"jpeg-bytes", "video-1_thumbnail.jpg")

    assert reference == "private:4_zfile:/video-1_thumbnail.jpg"
    assert fake.calls == ["b2_authorize_account", "b2_get_upload_url", "upload"]
    request = fake.upload_requests[0]
    assert request.headers["Authorization"] == "upload-token-1"
    assert request.headers["Content-Type"] == "image/jpeg"
    assert request.headers["Content-Length"] == str(len(b"jpeg-bytes"))
    assert (
        request.headers["X-Bz-Content-Sha1"]
        == hashlib.sha1(b"jpeg-bytes").hexdigest()
    )
    assert request.content == b"jpeg-bytes"


def test_authorize_uses_basic_auth():
    fake = FakeB2()
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["authorization"] = request.headers["Authorization"]
        return fake(request)

    http = httpx.Client(transport=httpx.MockTransport(handler))
    client = BackblazeB2Client(
        http, key_id="key-id", application_key="app-key", auth_url=AUTH_URL
    )

    authorization = client.authorize()

    assert seen["authorization"].startswith("Basic ")
    assert authorization == B2Authorization(API_URL, "account-token")


def test_upload_session_is_reused_between_uploads():
    fake = FakeB2()
    gateway = make_gateway(fake)

    gateway.upload(b"one", "a.jpg")
    gateway.upload(b"two", "b.jpg")

    assert fake.calls.count("b2_authorize_account") == 1
    assert fake.calls.count("b2_get_upload_url") == 1
    assert fake.calls.count("upload") == 2


def test_single_failure_refreshes_session_once_and_retries_once():
    fake = FakeB2(upload_failures=1)
    gateway = make_gateway(fake)

    reference = gateway.upload(b"jpeg", "video-1_thumbnail.jpg")

    assert reference == "private:4_zfile:/video-1_thumbnail.jpg"
    assert fake.calls.count("b2_get_upload_url") == 2
    assert fake.calls.count("upload") == 2
    assert fake.upload_requests[1].headers["Authorization"] == "upload-token-2"
    assert gateway.session == UploadSession(
        "https://pod.b2.test/upload/2", "upload-token-2"
    )


def test_two_failures_raise_upload_error():
    fake = FakeB2(upload_failures=2)
    gateway = make_gateway(fake)

    with pytest.raises(UploadError) as excinfo:
        gateway.upload(b"jpeg", "video-1_thumbnail.jpg")

    assert isinstance(excinfo.value.__cause__, StorageError)
    assert excinfo.value.__cause__.status_code == 503
    assert fake.calls.count("upload") == 2


def test_expired_account_token_is_reauthorized():
    fake = FakeB2(upload_url_401=1)
    gateway = make_gateway(fake, max_attempts=1)

    gateway.upload(b"jpeg", "a.jpg")

    assert fake.calls == [
        "b2_authorize_account",
        "b2_get_upload_url",
        "b2_authorize_account",
        "b2_get_upload_url",
        "upload",
    ]


def test_network_errors_become_storage_errors():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    http = httpx.Client(transport=httpx.MockTransport(handler))
    client = BackblazeB2Client(
        http, key_id="key-id", application_key="app-key", auth_url=AUTH_URL
    )

    with pytest.raises(StorageError, match="B2 authentication error"):
        client.authorize()


def test_missing_fields_are_reported():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=json.dumps({"apiUrl": API_URL}))

    http = httpx.Client(transport=httpx.MockTransport(handler))
    client = BackblazeB2Client(
        http, key_id="key-id", application_key="app-key", auth_url=AUTH_URL
    )

    with pytest.raises(StorageError, match="authorizationToken"):
        client.authorize()
