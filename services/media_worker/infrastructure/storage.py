from __future__ import annotations

import hashlib
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional
from urllib.parse import quote

import httpx
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from ..application.interfaces import StorageGateway
from ..config import WorkerConfig
from ..domain.errors import StorageError, UploadError
from ..domain.media import PrivateReference, normalize_path

logger = logging.getLogger(__name__)

B2_API_VERSION = "b2api/v2"


@dataclass(frozen=True)
class B2Authorization:
    api_url: str
    authorization_token: str


@dataclass(frozen=True)
class UploadSession:
    upload_url: str
    authorization_token: str


@dataclass(frozen=True)
class UploadedFile:
    file_id: str
    file_name: str


class BackblazeB2Client:
    """Thin wrapper over the B2 native API. Holds no session state."""

    def __init__(
        self,
        http: httpx.Client,
        *,
        key_id: str,
        application_key: str,
        auth_url: str = "https://api.backblazeb2.com",
    ) -> None:
        self._http = http
        self._key_id = key_id
        self._application_key = application_key
        self._auth_url = auth_url.rstrip("/")

    def authorize(self) -> B2Authorization:
        data = self._send(
            "B2 authentication",
            "GET",
            f"{self._auth_url}/{B2_API_VERSION}/b2_authorize_account",
            auth=(self._key_id, self._application_key),
        )
        logger.info("Authenticated with Backblaze B2")
        return B2Authorization(
            api_url=_field(data, "apiUrl"),
            authorization_token=_field(data, "authorizationToken"),
        )

    def get_upload_session(
        self, authorization: B2Authorization, bucket_id: str
    ) -> UploadSession:
        data = self._send(
            "B2 get upload URL",
            "POST",
            f"{authorization.api_url}/{B2_API_VERSION}/b2_get_upload_url",
            headers={"Authorization": authorization.authorization_token},
            json={"bucketId": bucket_id},
        )
        return UploadSession(
            upload_url=_field(data, "uploadUrl"),
            authorization_token=_field(data, "authorizationToken"),
        )

    def upload_file(
        self,
        session: UploadSession,
        data: bytes,
        file_name: str,
        *,
        content_type: str = "image/jpeg",
    ) -> UploadedFile:
        headers = {
            "Authorization": session.authorization_token,
            "X-Bz-File-Name": quote(file_name, safe=""),
            "Content-Type": content_type,
            "Content-Length": str(len(data)),
            "X-Bz-Content-Sha1": hashlib.sha1(data).hexdigest(),
        }
        body = self._send(
            "B2 upload", "POST", session.upload_url, headers=headers, content=data
        )
        return UploadedFile(
            file_id=_field(body, "fileId"),
            file_name=body.get("fileName", file_name),
        )

    def _send(self, label: str, method: str, url: str, **kwargs: Any) -> dict:
        try:
            response = self._http.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise StorageError(f"{label} error: {exc}") from exc
        if response.is_error:
            raise StorageError(
                f"{label} failed: {response.status_code} - {response.text[:200]}",
                status_code=response.status_code,
            )
        try:
            data = response.json()
        except ValueError as exc:
            raise StorageError(f"{label} returned invalid JSON") from exc
        if not isinstance(data, dict):
            raise StorageError(f"{label} returned an unexpected body")
        return data


class B2StorageGateway(StorageGateway):
    """Owns the cached B2 authorization and upload session for one process."""

    def __init__(
        self,
        client: BackblazeB2Client,
        *,
        bucket_id: str,
        max_attempts: int = 2,
        retry_delay_seconds: float = 0.0,
        content_type: str = "image/jpeg",
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._client = client
        self._bucket_id = bucket_id
        self._max_attempts = max_attempts
        self._retry_delay = retry_delay_seconds
        self._content_type = content_type
        self._sleep = sleep
        self._authorization: Optional[B2Authorization] = None
        self._session: Optional[UploadSession] = None

    @property
    def session(self) -> Optional[UploadSession]:
        return self._session

    def upload(self, data: bytes, file_name: str) -> str:
        def attempt() -> UploadedFile:
            session = self._ensure_session()
            return self._client.upload_file(
                session, data, file_name, content_type=self._content_type
            )

        retrying = Retrying(
            stop=stop_after_attempt(self._max_attempts),
            wait=wait_fixed(self._retry_delay),
            retry=retry_if_exception_type(StorageError),
            before_sleep=self._refresh_before_retry,
            sleep=self._sleep,
            reraise=True,
        )
        try:
            uploaded = retrying(attempt)
        except StorageError as exc:
            raise UploadError(
                f"B2 upload failed after {self._max_attempts} attempt(s): {exc}"
            ) from exc

        logger.info(
            "Uploaded thumbnail to B2: %s (file id %s)",
            uploaded.file_name,
            uploaded.file_id,
        )
        return str(PrivateReference(uploaded.file_id, normalize_path(file_name)))

    def _refresh_before_retry(self, retry_state: RetryCallState) -> None:
        logger.warning(
            "B2 upload attempt %d/%d failed, refreshing upload session: %s",
            retry_state.attempt_number,
            self._max_attempts,
            retry_state.outcome.exception(),
        )
        self.invalidate_session()

    def invalidate_session(self) -> None:
        self._session = None

    def _ensure_session(self) -> UploadSession:
        if self._session is None:
            self._session = self._acquire_session()
        return self._session

    def _acquire_session(self) -> UploadSession:
        if self._authorization is None:
            self._authorization = self._client.authorize()
        try:
            return self._client.get_upload_session(
                self._authorization, self._bucket_id
            )
        except StorageError as exc:
            if exc.status_code != 401:
                raise
            # Account tokens expire after a day; re-authorize once.
            self._authorization = self._client.authorize()
            return self._client.get_upload_session(
                self._authorization, self._bucket_id
            )


def _field(data: dict, name: str) -> str:
    value = data.get(name)
    if not value:
        raise StorageError(f"B2 response is missing {name!r}")
    return str(value)


def create_storage_gateway(
    config: WorkerConfig, http: httpx.Client
) -> StorageGateway:
    client = BackblazeB2Client(
        http,
        key_id=config.b2_key_id,
        application_key=config.b2_application_key,
        auth_url=config.b2_auth_url,
    )
    return B2StorageGateway(
        client,
        bucket_id=config.b2_bucket_id,
        max_attempts=config.upload_max_attempts,
    )
