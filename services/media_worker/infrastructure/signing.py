"""HMAC tokens for reading private media through the CDN edge."""

from __future__ import annotations

import base64
import hashlib
import hmac
import time
from urllib.parse import quote

from services.media_worker.domain.errors import ConfigurationError
from services.media_worker.domain.media import PrivateReference, normalize_path


def _now_ms() -> int:
    return int(time.time() * 1000)


def generate_token(path: str, secret: str, issued_at_ms: int | None = None) -> str:
    """Return ``<issued-at>.<signature>`` for ``path``.

    The signature is the unpadded URL-safe base64 of
    HMAC-SHA256(secret, "<issued-at>.<path>"). The edge rejects tokens
    older than its own window, so nothing here expires them.
    """
    issued_at = _now_ms() if issued_at_ms is None else issued_at_ms
    message = f"{issued_at}.{path}".encode("utf-8")
    digest = hmac.new(secret.encode("utf-8"), message, hashlib.sha256).digest()
    signature = base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")
    return f"{issued_at}.{signature}"


def encode_path(path: str) -> str:
    normalized = normalize_path(path)
    return "/".join(quote(segment, safe="") for segment in normalized.split("/"))


def build_signed_url(
    base_url: str, path: str, secret: str, issued_at_ms: int | None = None
) -> str:
    encoded_path = encode_path(path)
    token = generate_token(encoded_path, secret, issued_at_ms)
    return f"{base_url.rstrip('/')}{encoded_path}?token={token}"


class CdnUrlSigner:
    def __init__(self, base_url: str, secret: str) -> None:
        if not secret:
            raise ConfigurationError("An HMAC secret is required for CDN signing")
        self._base_url = base_url
        self._secret = secret

    def sign_path(self, path: str) -> str:
        return build_signed_url(self._base_url, path, self._secret)

    def sign_reference(self, reference: str) -> str:
        """Mint a fresh signed URL for a ``private:<file-id>:<path>`` reference."""
        return self.sign_path(PrivateReference.parse(reference).path)
