"""Constant frame-rate conversion."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field

from ..interfaces.media import MediaArtifact
from .base import ENCODE_ARGS, FFmpegStep, StepSettings

DEFAULT_FPS = 30.0


class FpsSettings(StepSettings):
    type: Literal["fps"] = "fps"
    target_fps: float = Field(default=DEFAULT_FPS, gt=0)


class FpsStep(FFmpegStep):
    """Re-encode at a constant frame rate to avoid VFR issues on Reels."""

    kind = "fps"
    suffix = "-fps"
    settings_model = FpsSettings

    def __init__(self, name: str, *, target_fps: float = DEFAULT_FPS, **options) -> None:
        super().__init__(name, **options)
        if target_fps <= 0:
            raise ValueError("target_fps must be positive")
        self.target_fps = target_fps

    def build_command(self, artifact: MediaArtifact, source: Path, target: Path) -> list[str]:
        return [
            *self.command_head(source),
            "-r",
            f"{self.target_fps:g}",
            *ENCODE_ARGS,
            str(target),
        ]
