"""Utilities for pushing media updates to the live-update relay."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Literal

import httpx

from ..application.interfaces import BroadcastPublisher
from ..config import WorkerConfig
from ..domain.errors import BroadcastError

logger = logging.getLogger(__name__)

BroadcastType = Literal["media-thumbnail-updated"]


class HttpBroadcastPublisher(BroadcastPublisher):
    """Posts notifications to the relay's ``/broadcast`` endpoint."""

    def __init__(
        self,
        http: httpx.Client,
        *,
        base_url: str,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._http = http
        self._base_url = base_url.rstrip("/")
        self._clock = clock

    def send(self, message_type: BroadcastType, data: dict[str, Any]) -> None:
        """Deliver one message, raising ``BroadcastError`` on any failure."""
        try:
            response = self._http.post(
                f"{self._base_url}/broadcast",
                json={"type": message_type, "data": data},
            )
        except httpx.HTTPError as exc:
            raise BroadcastError(f"Broadcast error: {exc}") from exc
        if response.is_error:
            raise BroadcastError(
                f"Broadcast rejected with status {response.status_code}"
            )

    def publish_thumbnail_updated(
        self, *, video_id: str, thumbnail_url: str, user_id: str | None
    ) -> bool:
        """Fire-and-forget: failures are logged, never raised."""
        data = {
            "userId": user_id,
            "videoId": video_id,
            "thumbnailUrl": thumbnail_url,
            "timestamp": int(self._clock() * 1000),
        }
        try:
            self.send("media-thumbnail-updated", data)
        except BroadcastError as exc:
            logger.warning("Failed to broadcast thumbnail update: %s", exc)
            return False
        logger.info(
            "Thumbnail update broadcast for video %s (user %s)", video_id, user_id
        )
        return True


def create_broadcast_publisher(
    config: WorkerConfig, http: httpx.Client
) -> BroadcastPublisher:
    return HttpBroadcastPublisher(http, base_url=config.broadcast_url)
