"""Tests for the yt-dlp downloader."""

from __future__ import annotations

from pathlib import Path

import pytest
from yt_dlp.utils import DownloadError

from aggregator.common.exceptions import ComponentError
from aggregator.integrations.ytdlp import download as download_module
from aggregator.integrations.ytdlp import YtDlpDownloader
from aggregator.interfaces.media import ClipReference

CLIP = ClipReference(
    id="abc",
    url="https://clips.twitch.tv/abc",
    title="Big play",
    broadcaster="streamer",
    language="en",
    tags=("valorant",),
)


def _fake_youtube_dl(payload: bytes | None = b"video", error: Exception | None = None):
    class FakeYoutubeDL:
        instances: list["FakeYoutubeDL"] = []

        def __init__(self, options: dict) -> None:
            self.options = options
            FakeYoutubeDL.instances.append(self)

        def __enter__(self) -> "FakeYoutubeDL":
            return self

        def __exit__(self, *exc) -> None:
            return None

        def download(self, urls: list[str]) -> int:
            self.urls = urls
            if error is not None:
                Path(self.options["outtmpl"] + ".part").write_bytes(b"partial")
                raise error
            if payload is not None:
                Path(self.options["outtmpl"]).write_bytes(payload)
            return 0

    return FakeYoutubeDL


def test_download_returns_artifact_with_clip_metadata(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    fake = _fake_youtube_dl()
    monkeypatch.setattr(download_module.yt_dlp, "YoutubeDL", fake)
    target = tmp_path / "work" / "abc.mp4"

    artifact = YtDlpDownloader().download(CLIP, target)

    assert artifact.file == target
    assert artifact.uri is None
    assert artifact.title == "Big play"
    assert artifact.broadcaster == "streamer"
    assert artifact.tags == ("valorant",)
    assert fake.instances[0].options["outtmpl"] == str(target)
    assert fake.instances[0].urls == [CLIP.url]


def test_existing_target_is_rejected(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    fake = _fake_youtube_dl()
    monkeypatch.setattr(download_module.yt_dlp, "YoutubeDL", fake)
    target = tmp_path / "abc.mp4"
    target.write_bytes(b"old")

    with pytest.raises(ComponentError):
        YtDlpDownloader().download(CLIP, target)
    assert fake.instances == []
    assert target.read_bytes() == b"old"


def test_download_error_cleans_partial_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        download_module.yt_dlp, "YoutubeDL", _fake_youtube_dl(error=DownloadError("gone"))
    )
    target = tmp_path / "abc.mp4"

    with pytest.raises(ComponentError) as excinfo:
        YtDlpDownloader().download(CLIP, target)

    assert "download failed" in str(excinfo.value)
    assert list(tmp_path.iterdir()) == []


def test_empty_download_is_rejected(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(download_module.yt_dlp, "YoutubeDL", _fake_youtube_dl(payload=b""))
    target = tmp_path / "abc.mp4"

    with pytest.raises(ComponentError):
        YtDlpDownloader().download(CLIP, target)
    assert not target.exists()
