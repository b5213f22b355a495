"""Letterbox a landscape clip into a vertical frame over a blurred backdrop."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field

from ..interfaces.media import MediaArtifact
from .base import ENCODE_ARGS, FFmpegStep, StepSettings


class VerticalBlurSettings(StepSettings):
    type: Literal["vertical_blur"] = "vertical_blur"
    target_width: int = Field(default=1080, gt=0)
    target_height: int = Field(default=1920, gt=0)
    blur_sigma: float = Field(default=40.0, gt=0)
    blur_steps: int = Field(default=2, gt=0)


class VerticalBlurStep(FFmpegStep):
    kind = "vertical_blur"
    suffix = "-vertical-blur"
    settings_model = VerticalBlurSettings

    def __init__(
        self,
        name: str,
        *,
        target_width: int = 1080,
        target_height: int = 1920,
        blur_sigma: float = 40.0,
        blur_steps: int = 2,
        **options,
    ) -> None:
        super().__init__(name, **options)
        if min(target_width, target_height, blur_sigma, blur_steps) <= 0:
            raise ValueError("dimensions and blur settings must be positive")
        self.target_width = target_width
        self.target_height = target_height
        self.blur_sigma = blur_sigma
        self.blur_steps = blur_steps

    def filter_graph(self) -> str:
        width, height = self.target_width, self.target_height
        # backdrop fills the frame and is blurred; the sharp copy is fit to width
        return (
            f"[0:v]scale={width}:{height}:force_original_aspect_ratio=increase,"
            f"crop={width}:{height},"
            f"gblur=sigma={self.blur_sigma:.2f}:steps={self.blur_steps}[bg];"
            f"[0:v]scale={width}:-2[fg];"
            f"[bg][fg]overlay=(W-w)/2:(H-h)/2,format=yuv420p[v]"
        )

    def build_command(self, artifact: MediaArtifact, source: Path, target: Path) -> list[str]:
        return [
            *self.command_head(source),
            "-filter_complex",
            self.filter_graph(),
            "-map",
            "[v]",
            "-map",
            "0:a?",
            *ENCODE_ARGS,
            str(target),
        ]
