"""The resolved, immutable set of components for one run."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, Optional

from .. import config
from ..common.exceptions import ConfigError
from ..interfaces.components import Downloader, Ledger, Publisher, Source, Stager
from .sequence import Pipeline


def _duplicates(names: list[str]) -> list[str]:
    return sorted(name for name, count in Counter(names).items() if count > 1)


@dataclass(frozen=True)
class RunContext:
    """Validated run wiring.

    Construction fails with :class:`ConfigError` when the wiring is
    incomplete: a blank run name, a non-positive target, no sources or
    publishers, duplicate component names, or a source naming a pipeline
    that does not exist.
    """

    name: str
    posts: int
    sources: tuple[Source, ...]
    downloader: Downloader
    publishers: tuple[Publisher, ...]
    pipelines: Mapping[str, Pipeline] = field(default_factory=dict)
    ledger: Optional[Ledger] = None
    stager: Optional[Stager] = None
    work_dir: Path = config.WORK_DIR

    def __post_init__(self) -> None:
        object.__setattr__(self, "sources", tuple(self.sources))
        object.__setattr__(self, "publishers", tuple(self.publishers))
        object.__setattr__(self, "pipelines", MappingProxyType(dict(self.pipelines)))
        object.__setattr__(self, "work_dir", Path(self.work_dir))

        if not isinstance(self.name, str) or not self.name.strip():
            raise ConfigError("run", "run name must not be blank", {"key": "name"})
        if isinstance(self.posts, bool) or not isinstance(self.posts, int) or self.posts <= 0:
            raise ConfigError(self.name, "posts must be a positive integer", {"posts": self.posts})
        if not self.sources:
            raise ConfigError(self.name, "at least one source is required")
        if self.downloader is None:
            raise ConfigError(self.name, "a downloader is required")
        if not self.publishers:
            raise ConfigError(self.name, "at least one publisher is required")

        for kind, names in (
            ("source", [source.name for source in self.sources]),
            ("publisher", [publisher.name for publisher in self.publishers]),
        ):
            duplicated = _duplicates(names)
            if duplicated:
                raise ConfigError(self.name, f"duplicate {kind} names", {"names": ",".join(duplicated)})

        for source in self.sources:
            if source.pipeline is not None and source.pipeline not in self.pipelines:
                raise ConfigError(
                    self.name,
                    "source references an unknown pipeline",
                    {"source": source.name, "pipeline": source.pipeline},
                )

        if self.stager is not None:
            local_only = [p.name for p in self.publishers if getattr(p, "requires_local_file", False)]
            if local_only:
                raise ConfigError(
                    self.name,
                    "publishers need a local file but a stager is configured",
                    {"publishers": ",".join(local_only)},
                )

    def pipeline_for(self, source: Source) -> Optional[Pipeline]:
        if source.pipeline is None:
            return None
        return self.pipelines[source.pipeline]


__all__ = ["RunContext"]
