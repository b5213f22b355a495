"""Protocols implemented by the run collaborators."""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Protocol

from .media import ClipReference, MediaArtifact, PublishReceipt


class Source(Protocol):
    """A named retrieval source, optionally bound to a pipeline by name."""

    name: str
    pipeline: Optional[str]

    def fetch(self) -> list[ClipReference]:
        """Return candidate clips in priority order."""
        raise NotImplementedError


class Downloader(Protocol):
    def download(self, clip: ClipReference, target: Path) -> MediaArtifact:
        """Materialise ``clip`` at ``target``; fail if ``target`` already exists."""
        raise NotImplementedError


class Ledger(Protocol):
    def start(self) -> None:
        raise NotImplementedError

    def stop(self) -> None:
        raise NotImplementedError

    def claim(self, clip_id: str, run_name: str) -> bool:
        """Return ``True`` when ``clip_id`` was newly claimed for ``run_name``."""
        raise NotImplementedError


class Stager(Protocol):
    def start(self) -> None:
        raise NotImplementedError

    def stop(self) -> None:
        raise NotImplementedError

    def stage(self, artifact: MediaArtifact) -> MediaArtifact:
        """Upload ``artifact`` and return it with an http(s) URI and no local file."""
        raise NotImplementedError

    def clean(self, artifact: MediaArtifact) -> None:
        """Delete the remote object behind ``artifact``."""
        raise NotImplementedError


class Publisher(Protocol):
    name: str

    def publish(self, artifact: MediaArtifact) -> PublishReceipt:
        raise NotImplementedError


__all__ = ["Source", "Downloader", "Ledger", "Stager", "Publisher"]
