"""Upload local clips as Reels with the instagrapi private API client."""

from __future__ import annotations

import logging
import time
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Literal, Optional

from instagrapi import Client
from instagrapi.exceptions import ChallengeRequired, LoginRequired, PleaseWaitFewMinutes

from ...common.exceptions import ComponentError
from ...helpers.media import media_duration
from ...interfaces.media import MediaArtifact, PublishReceipt
from ...schema import NamedComponentSettings, NonBlank
from .caption import build_caption

logger = logging.getLogger(__name__)

# Upload tuning
MAX_RETRIES = 3
RETRY_BACKOFF_SEC = 5
RECENT_DUPLICATE_WINDOW = timedelta(minutes=10)
DURATION_TOLERANCE = 1.5


def build_client(session_path: Path | None = None) -> Client:
    """Return an instagrapi client using ``session_path`` if provided."""

    cl = Client()
    # load saved device/session if present to reduce challenges
    if session_path is not None and session_path.exists():
        try:
            cl.load_settings(str(session_path))
        except (OSError, ValueError) as exc:
            logger.warning("instagram session=%s unreadable: %s", session_path, exc)
    cl.request_timeout = 30
    return cl


def login_or_resume(
    cl: Client,
    username: str,
    password: str,
    session_path: Path | None = None,
) -> None:
    try:
        cl.login(username, password)
    except ChallengeRequired as exc:
        raise ComponentError(
            "instagram_private", "login challenge required; log in interactively once", {"user": username}
        ) from exc
    except PleaseWaitFewMinutes as exc:
        logger.warning("instagram handle=%s attempt=login status=throttled error=%s", username, exc)
        time.sleep(RETRY_BACKOFF_SEC * MAX_RETRIES)
        cl.login(username, password)
    except LoginRequired:
        # stale device settings; retry with a clean session
        cl.set_settings({})
        cl.login(username, password)
    if session_path is not None:
        try:
            cl.dump_settings(str(session_path))
        except OSError as exc:
            logger.warning("instagram session=%s not saved: %s", session_path, exc)


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def detect_recent_duplicate(
    cl: Client,
    *,
    username: str,
    caption: str,
    video_duration: float | None,
) -> Optional[dict[str, Any]]:
    """Return upload metadata if a matching clip already exists recently."""

    normalized_caption = (caption or "").strip()
    try:
        user_id = getattr(cl, "user_id", None) or cl.user_id_from_username(username)
        recent_clips = cl.user_clips(user_id, amount=10)
    except Exception as exc:
        logger.warning("instagram handle=%s attempt=duplicate_check error=%s", username, exc)
        return None

    now = datetime.now(timezone.utc)
    for media in recent_clips:
        taken_at = getattr(media, "taken_at", None)
        if isinstance(taken_at, datetime) and now - _as_utc(taken_at) > RECENT_DUPLICATE_WINDOW:
            continue

        remote_caption = (getattr(media, "caption_text", "") or "").strip()
        if remote_caption != normalized_caption:
            continue

        remote_duration = getattr(media, "video_duration", None)
        if (
            remote_duration is not None
            and video_duration is not None
            and abs(remote_duration - video_duration) > DURATION_TOLERANCE
        ):
            continue

        return {"pk": getattr(media, "pk", None), "code": getattr(media, "code", None), "duplicate": True}

    return None


class InstagrapiSettings(NamedComponentSettings):
    type: Literal["instagram_private"] = "instagram_private"
    username: NonBlank
    password: NonBlank
    session_path: Optional[Path] = None
    caption_text: Optional[str] = None


class InstagrapiPublisher:
    """Publish the artifact's local file, so it must run without a stager."""

    requires_local_file = True
    settings_model = InstagrapiSettings

    def __init__(
        self,
        name: str,
        *,
        username: str,
        password: str,
        session_path: Optional[Path] = None,
        caption_text: Optional[str] = None,
        client: Optional[Client] = None,
    ) -> None:
        self.name = name
        self.username = username
        self.password = password
        self.session_path = session_path
        self.caption_text = caption_text
        self._client = client
        self._logged_in = client is not None

    @classmethod
    def from_settings(cls, settings: InstagrapiSettings) -> "InstagrapiPublisher":
        options = settings.options()
        if settings.session_path is not None:
            options["session_path"] = settings.session_path.expanduser()
        return cls(settings.name, **options)

    def client(self) -> Client:
        if self._client is None:
            self._client = build_client(self.session_path)
        if not self._logged_in:
            login_or_resume(self._client, self.username, self.password, self.session_path)
            self._logged_in = True
        return self._client

    def _receipt(self, artifact: MediaArtifact, code: Optional[str]) -> PublishReceipt:
        uri = f"https://www.instagram.com/reel/{code}/" if code else None
        return PublishReceipt(id=artifact.id, uri=uri)

    def publish(self, artifact: MediaArtifact) -> PublishReceipt:
        video_path = artifact.file
        if video_path is None or not video_path.is_file():
            raise ComponentError(self.name, "artifact needs a local file", {"id": artifact.id, "file": video_path})

        caption = build_caption(artifact, self.caption_text)
        cl = self.client()
        video_duration = media_duration(video_path)
        last_exc: Optional[Exception] = None
        for attempt in range(1, MAX_RETRIES + 1):
            try:
                media = cl.clip_upload(str(video_path), caption)
                logger.info(
                    "instagram handle=%s attempt=%d status=ok clip=%s", self.username, attempt, artifact.id
                )
                return self._receipt(artifact, getattr(media, "code", None))
            except LoginRequired:
                logger.info("instagram handle=%s attempt=%d status=relogin", self.username, attempt)
                login_or_resume(cl, self.username, self.password, self.session_path)
            except PleaseWaitFewMinutes as exc:
                last_exc = exc
                logger.warning("instagram handle=%s attempt=%d status=throttled", self.username, attempt)
                time.sleep(RETRY_BACKOFF_SEC * attempt)
            except Exception as exc:
                last_exc = exc
                logger.warning(
                    "instagram handle=%s attempt=%d status=error error=%s", self.username, attempt, exc
                )
                duplicate = detect_recent_duplicate(
                    cl, username=self.username, caption=caption, video_duration=video_duration
                )
                if duplicate:
                    logger.info("instagram handle=%s existing reel detected after failure", self.username)
                    return self._receipt(artifact, duplicate.get("code"))
                time.sleep(RETRY_BACKOFF_SEC * attempt)

        raise ComponentError(
            self.name, "upload failed", {"clip": artifact.id, "attempts": MAX_RETRIES, "error": last_exc}
        ) from last_exc


__all__ = [
    "InstagrapiPublisher",
    "InstagrapiSettings",
    "build_client",
    "detect_recent_duplicate",
    "login_or_resume",
]
