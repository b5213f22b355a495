"""Download clips to the working directory with yt-dlp."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Literal

import yt_dlp
from pydantic import Field
from yt_dlp.utils import DownloadError

from ...common.exceptions import ComponentError
from ...helpers.cleanup import remove_partial
from ...interfaces.media import ClipReference, MediaArtifact
from ...schema import ComponentSettings, NonBlank

logger = logging.getLogger(__name__)

DEFAULT_FORMAT = "bestvideo+bestaudio/best"


class YtDlpSettings(ComponentSettings):
    type: Literal["yt_dlp"] = "yt_dlp"
    format: NonBlank = DEFAULT_FORMAT
    socket_timeout: float = Field(default=30.0, gt=0)


class YtDlpDownloader:
    name = "yt_dlp"
    settings_model = YtDlpSettings

    def __init__(self, *, format: str = DEFAULT_FORMAT, socket_timeout: float = 30.0) -> None:
        self.format = format
        self.socket_timeout = socket_timeout

    @classmethod
    def from_settings(cls, settings: YtDlpSettings) -> "YtDlpDownloader":
        return cls(**settings.options())

    def _options(self, target: Path) -> dict[str, Any]:
        return {
            "format": self.format,
            "outtmpl": str(target),
            "merge_output_format": target.suffix.lstrip(".") or "mp4",
            "quiet": True,
            "no_warnings": True,
            "noprogress": True,
            "noplaylist": True,
            "socket_timeout": self.socket_timeout,
        }

    def download(self, clip: ClipReference, target: Path) -> MediaArtifact:
        target.parent.mkdir(parents=True, exist_ok=True)
        if target.exists():
            raise ComponentError(self.name, "download target already exists", {"target": target})
        remove_partial(target)

        logger.info("download clip=%s url=%s target=%s", clip.id, clip.url, target)
        try:
            with yt_dlp.YoutubeDL(self._options(target)) as ydl:
                ydl.download([clip.url])
        except DownloadError as exc:
            remove_partial(target)
            raise ComponentError(
                self.name, "download failed", {"clip": clip.id, "url": clip.url, "error": exc}
            ) from exc

        if not target.is_file() or target.stat().st_size == 0:
            remove_partial(target)
            raise ComponentError(self.name, "download produced no file", {"clip": clip.id, "target": target})
        return MediaArtifact.from_clip(clip, target)


__all__ = ["YtDlpDownloader", "YtDlpSettings"]
