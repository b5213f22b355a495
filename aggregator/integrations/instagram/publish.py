"""Publish staged clips as Reels through the Instagram Graph API."""

from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Any, Callable, Literal, Optional
from urllib.parse import urlparse

import requests
from pydantic import Field

from ... import config
from ...common.exceptions import ComponentError
from ...common.http import build_session
from ...interfaces.media import MediaArtifact, PublishReceipt
from ...schema import NamedComponentSettings, NonBlank
from .caption import build_caption

logger = logging.getLogger(__name__)


class ContainerStatus(str, Enum):
    """Terminal outcomes of waiting on an uploaded media container."""

    READY = "ready"
    ERROR = "error"
    TIMEOUT = "timeout"


class GraphSettings(NamedComponentSettings):
    type: Literal["instagram"] = "instagram"
    account_id: NonBlank
    access_token: NonBlank
    caption_text: Optional[str] = None
    poll_interval: float = Field(default=config.CONTAINER_POLL_INTERVAL_SECONDS, gt=0)
    poll_timeout: float = Field(default=config.CONTAINER_POLL_TIMEOUT_SECONDS, gt=0)


class InstagramGraphPublisher:
    """Create a REELS container from a public video URL and publish it.

    Instagram fetches the video itself, so the artifact must already be
    staged at an http(s) URI. Container processing is polled at a fixed
    interval up to an overall ceiling before ``media_publish`` is called.
    """

    settings_model = GraphSettings

    def __init__(
        self,
        name: str,
        *,
        account_id: str,
        access_token: str,
        caption_text: Optional[str] = None,
        session: Optional[requests.Session] = None,
        poll_interval: float = config.CONTAINER_POLL_INTERVAL_SECONDS,
        poll_timeout: float = config.CONTAINER_POLL_TIMEOUT_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.name = name
        self.account_id = account_id
        self.access_token = access_token
        self.caption_text = caption_text
        self.session = session or build_session()
        self.poll_interval = poll_interval
        self.poll_timeout = poll_timeout
        self._sleep = sleep
        self._clock = clock
        self.base_url = f"{config.GRAPH_API_URL.rstrip('/')}/{config.GRAPH_API_VERSION}"

    @classmethod
    def from_settings(cls, settings: GraphSettings) -> "InstagramGraphPublisher":
        return cls(settings.name, **settings.options())

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------
    def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        url = f"{self.base_url}/{path}"
        headers = {"Authorization": f"Bearer {self.access_token}"}
        try:
            response = self.session.request(
                method, url, headers=headers, timeout=config.HTTP_TIMEOUT_SECONDS, **kwargs
            )
        except requests.RequestException as exc:
            raise ComponentError(self.name, "graph request failed", {"path": path, "error": exc}) from exc
        if not 200 <= response.status_code < 300:
            raise ComponentError(
                self.name,
                "graph request rejected",
                {"path": path, "status": response.status_code, "body": response.text[:300]},
            )
        try:
            return response.json()
        except ValueError as exc:
            raise ComponentError(self.name, "graph response is not JSON", {"path": path}) from exc

    def _require_id(self, payload: dict[str, Any], path: str) -> str:
        value = payload.get("id")
        if not value:
            raise ComponentError(self.name, "graph response has no id", {"path": path})
        return str(value)

    # ------------------------------------------------------------------
    # Publish flow
    # ------------------------------------------------------------------
    def create_container(self, video_url: str, caption: str) -> str:
        path = f"{self.account_id}/media"
        payload = self._request(
            "POST",
            path,
            json={"video_url": video_url, "media_type": "REELS", "caption": caption},
        )
        return self._require_id(payload, path)

    def container_status(self, container_id: str) -> str:
        payload = self._request("GET", container_id, params={"fields": "status_code"})
        return str(payload.get("status_code") or "")

    def await_container(self, container_id: str) -> ContainerStatus:
        """Poll ``container_id`` until it is ready, fails, or the ceiling passes."""

        deadline = self._clock() + self.poll_timeout
        while True:
            status = self.container_status(container_id)
            logger.debug("instagram container=%s status=%s", container_id, status)
            if status == "FINISHED":
                return ContainerStatus.READY
            if status in ("ERROR", "EXPIRED"):
                return ContainerStatus.ERROR
            if self._clock() + self.poll_interval > deadline:
                return ContainerStatus.TIMEOUT
            self._sleep(self.poll_interval)

    def publish_container(self, container_id: str) -> str:
        path = f"{self.account_id}/media_publish"
        payload = self._request("POST", path, json={"creation_id": container_id})
        return self._require_id(payload, path)

    def permalink(self, media_id: str) -> Optional[str]:
        try:
            payload = self._request("GET", media_id, params={"fields": "permalink"})
        except ComponentError as exc:
            logger.warning("instagram media=%s permalink lookup failed: %s", media_id, exc)
            return None
        return payload.get("permalink")

    def publish(self, artifact: MediaArtifact) -> PublishReceipt:
        uri = artifact.uri
        if not uri or urlparse(uri).scheme not in ("http", "https"):
            raise ComponentError(self.name, "artifact needs a public http(s) URI", {"id": artifact.id, "uri": uri})

        container_id = self.create_container(uri, build_caption(artifact, self.caption_text))
        logger.info("instagram publisher=%s clip=%s container=%s", self.name, artifact.id, container_id)
        outcome = self.await_container(container_id)
        if outcome is ContainerStatus.ERROR:
            raise ComponentError(self.name, "container processing failed", {"container": container_id})
        if outcome is ContainerStatus.TIMEOUT:
            raise ComponentError(
                self.name,
                "container not ready in time",
                {"container": container_id, "timeout": f"{self.poll_timeout:g}s"},
            )

        media_id = self.publish_container(container_id)
        logger.info("instagram publisher=%s clip=%s media=%s", self.name, artifact.id, media_id)
        return PublishReceipt(id=artifact.id, uri=self.permalink(media_id))


__all__ = ["ContainerStatus", "GraphSettings", "InstagramGraphPublisher"]
