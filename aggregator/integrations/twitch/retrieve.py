"""Retrieve popular clips from the Twitch Helix API."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Literal, Optional

import requests
from pydantic import Field, model_validator

from ... import config
from ...common.exceptions import ComponentError
from ...common.http import build_session
from ...interfaces.media import ClipReference
from ...schema import NamedComponentSettings, NonBlank

logger = logging.getLogger(__name__)


def _timestamp(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class TwitchSettings(NamedComponentSettings):
    type: Literal["twitch"] = "twitch"
    client_id: NonBlank
    token: NonBlank
    game_id: Optional[NonBlank] = None
    broadcaster_id: Optional[NonBlank] = None
    language: Optional[NonBlank] = None
    window_hours: int = Field(default=24, gt=0)
    limit: int = Field(default=20, gt=0)
    tags: tuple[str, ...] = ()
    pipeline: Optional[NonBlank] = None

    @model_validator(mode="after")
    def _one_selector(self) -> "TwitchSettings":
        if (self.game_id is None) == (self.broadcaster_id is None):
            raise ValueError("exactly one of game_id or broadcaster_id is required")
        if self.language is not None and self.game_id is None:
            raise ValueError("language is only supported with game_id")
        return self


class TwitchSource:
    """Clips for one game or one broadcaster within a trailing time window.

    Pages through ``/helix/clips`` until ``limit`` clips are collected or the
    cursor runs out, then orders them by view count (most viewed first).
    """

    settings_model = TwitchSettings

    def __init__(
        self,
        name: str,
        *,
        client_id: str,
        token: str,
        game_id: Optional[str] = None,
        broadcaster_id: Optional[str] = None,
        language: Optional[str] = None,
        window_hours: int = 24,
        limit: int = 20,
        tags: tuple[str, ...] = (),
        pipeline: Optional[str] = None,
        session: Optional[requests.Session] = None,
        api_url: str = config.TWITCH_API_URL,
    ) -> None:
        if (game_id is None) == (broadcaster_id is None):
            raise ValueError("exactly one of game_id or broadcaster_id is required")
        if language is not None and game_id is None:
            raise ValueError("language filtering requires game_id")
        self.name = name
        self.pipeline = pipeline
        self.client_id = client_id
        self.token = token
        self.game_id = game_id
        self.broadcaster_id = broadcaster_id
        self.language = language
        self.window_hours = window_hours
        self.limit = limit
        self.tags = tuple(tags)
        self.api_url = api_url.rstrip("/")
        self.session = session or build_session()

    @classmethod
    def from_settings(cls, settings: TwitchSettings) -> "TwitchSource":
        return cls(settings.name, **settings.options())

    def _query(self, ended_at: datetime) -> dict[str, Any]:
        started_at = ended_at - timedelta(hours=self.window_hours)
        query: dict[str, Any] = {
            "first": config.TWITCH_PAGE_SIZE,
            "started_at": _timestamp(started_at),
            "ended_at": _timestamp(ended_at),
        }
        if self.game_id is not None:
            query["game_id"] = self.game_id
        else:
            query["broadcaster_id"] = self.broadcaster_id
        return query

    def _get_page(self, query: dict[str, Any]) -> dict[str, Any]:
        try:
            response = self.session.get(
                f"{self.api_url}/clips",
                params=query,
                headers={
                    "Client-Id": self.client_id,
                    "Authorization": f"Bearer {self.token}",
                },
                timeout=config.HTTP_TIMEOUT_SECONDS,
            )
        except requests.RequestException as exc:
            raise ComponentError(self.name, "clip request failed", {"error": exc}) from exc
        if not response.ok:
            raise ComponentError(
                self.name,
                "clip request rejected",
                {"status": response.status_code, "body": response.text[:300]},
            )
        try:
            return response.json()
        except ValueError as exc:
            raise ComponentError(self.name, "clip response is not JSON") from exc

    def _to_clip(self, item: dict[str, Any]) -> Optional[ClipReference]:
        clip_id = item.get("id")
        url = item.get("url")
        if not clip_id or not url:
            return None
        return ClipReference(
            id=str(clip_id),
            url=str(url),
            title=item.get("title"),
            broadcaster=item.get("broadcaster_name"),
            language=item.get("language"),
            popularity=int(item.get("view_count") or 0),
            tags=self.tags,
        )

    def fetch(self) -> list[ClipReference]:
        query = self._query(datetime.now(timezone.utc))
        clips: list[ClipReference] = []
        while len(clips) < self.limit:
            page = self._get_page(query)
            for item in page.get("data") or []:
                clip = self._to_clip(item)
                if clip is not None:
                    clips.append(clip)
            cursor = (page.get("pagination") or {}).get("cursor")
            if not cursor:
                break
            query = {**query, "after": cursor}

        clips.sort(key=lambda clip: clip.popularity, reverse=True)
        if self.language is not None:
            wanted = self.language.lower()
            clips = [clip for clip in clips if (clip.language or "").lower() == wanted]
        selected = clips[: self.limit]
        logger.info(
            "twitch source=%s fetched=%d selected=%d", self.name, len(clips), len(selected)
        )
        return selected


__all__ = ["TwitchSettings", "TwitchSource"]
