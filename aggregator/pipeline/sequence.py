"""Named, ordered sequences of transform steps."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

from ..helpers.cleanup import remove_file
from ..helpers.logging import run_step
from ..interfaces.media import MediaArtifact
from ..steps import TransformStep

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Pipeline:
    """Apply ``steps`` left to right, each consuming the previous output."""

    name: str
    steps: tuple[TransformStep, ...] = ()

    @classmethod
    def of(cls, name: str, steps: Sequence[TransformStep]) -> "Pipeline":
        return cls(name=name, steps=tuple(steps))

    def run(self, artifact: MediaArtifact) -> MediaArtifact:
        """Return the artifact produced by the last step.

        An empty pipeline returns ``artifact`` unchanged. When a step fails,
        the file it was given is removed before the error propagates since
        no later stage will ever own it.
        """
        current = artifact
        total = len(self.steps)
        for index, step in enumerate(self.steps, start=1):
            try:
                current = run_step(
                    f"STEP {index}/{total} [{self.name}]: {step.name} -> {current.file}",
                    step.apply,
                    current,
                )
            except Exception:
                try:
                    remove_file(current.file)
                except OSError as exc:
                    logger.warning("pipeline=%s cleanup file=%s error=%s", self.name, current.file, exc)
                raise
        return current


__all__ = ["Pipeline"]
