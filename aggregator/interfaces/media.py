"""Immutable value types passed between pipeline stages."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Optional


@dataclass(frozen=True)
class ClipReference:
    """A candidate clip returned by a retrieval source."""

    id: str
    url: str
    title: Optional[str] = None
    broadcaster: Optional[str] = None
    language: Optional[str] = None
    popularity: int = 0
    tags: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class MediaArtifact:
    """The evolving media file or remote object plus its metadata.

    Every stage returns a new artifact; ``file`` is the single live local
    copy and ``uri`` is set once the artifact has been staged remotely.
    """

    id: str
    file: Optional[Path] = None
    uri: Optional[str] = None
    title: Optional[str] = None
    broadcaster: Optional[str] = None
    language: Optional[str] = None
    tags: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def from_clip(cls, clip: ClipReference, file: Path) -> "MediaArtifact":
        return cls(
            id=clip.id,
            file=file,
            title=clip.title,
            broadcaster=clip.broadcaster,
            language=clip.language,
            tags=tuple(clip.tags),
        )

    def with_file(self, file: Optional[Path]) -> "MediaArtifact":
        return replace(self, file=file)

    def with_uri(self, uri: Optional[str]) -> "MediaArtifact":
        return replace(self, uri=uri)


@dataclass(frozen=True)
class PublishReceipt:
    """Informational result of a publish call."""

    id: str
    uri: Optional[str] = None


__all__ = ["ClipReference", "MediaArtifact", "PublishReceipt"]
