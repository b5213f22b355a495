"""Burn the broadcaster's name, and optionally a logo, into the clip."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Literal, Optional

from pydantic import Field

from ..common.exceptions import ComponentError
from ..helpers.formatting import escape_filter_path
from ..interfaces.media import MediaArtifact
from .base import ENCODE_ARGS, FFmpegStep, StepSettings, add_offset

# (drawtext y, overlay y) per anchor; x is always centred
POSITIONS = {
    "upper_center": ("h/4-text_h/2", "H/4-overlay_h/2"),
    "lower_center": ("3*h/4-text_h/2", "3*H/4-overlay_h/2"),
    "center": ("(h-text_h)/2", "(H-overlay_h)/2"),
}


class WatermarkSettings(StepSettings):
    type: Literal["watermark"] = "watermark"
    font_path: Path
    logo_path: Optional[Path] = None
    position: Literal["upper_center", "lower_center", "center"] = "lower_center"
    font_size: int = Field(default=70, gt=0)
    text_opacity: float = Field(default=0.75, ge=0, le=1)
    text_border_width: int = Field(default=3, ge=0)
    text_offset_x: int = 0
    text_offset_y: int = 0
    logo_offset_x: int = 0
    logo_offset_y: int = 0
    logo_height: int = Field(default=200, gt=0)
    logo_opacity: float = Field(default=0.3, ge=0, le=1)


class WatermarkStep(FFmpegStep):
    kind = "watermark"
    suffix = "-watermark"
    settings_model = WatermarkSettings

    def __init__(
        self,
        name: str,
        *,
        font_path: Path,
        logo_path: Optional[Path] = None,
        position: str = "lower_center",
        font_size: int = 70,
        text_opacity: float = 0.75,
        text_border_width: int = 3,
        text_offset_x: int = 0,
        text_offset_y: int = 0,
        logo_offset_x: int = 0,
        logo_offset_y: int = 0,
        logo_height: int = 200,
        logo_opacity: float = 0.3,
        **options,
    ) -> None:
        super().__init__(name, **options)
        if position not in POSITIONS:
            raise ValueError(f"unsupported position {position!r}")
        if not 0.0 <= text_opacity <= 1.0 or not 0.0 <= logo_opacity <= 1.0:
            raise ValueError("opacity must be within [0, 1]")
        self.font_path = Path(font_path)
        self.logo_path = Path(logo_path) if logo_path is not None else None
        self.position = position
        self.font_size = font_size
        self.text_opacity = text_opacity
        self.text_border_width = text_border_width
        self.text_offset_x = text_offset_x
        self.text_offset_y = text_offset_y
        self.logo_offset_x = logo_offset_x
        self.logo_offset_y = logo_offset_y
        self.logo_height = logo_height
        self.logo_opacity = logo_opacity

    def auxiliary_files(self) -> Iterable[tuple[str, Optional[Path]]]:
        return (("font_path", self.font_path), ("logo_path", self.logo_path))

    def drawtext(self, text_file: Path) -> str:
        text_y, _ = POSITIONS[self.position]
        x = add_offset("(w-text_w)/2", self.text_offset_x)
        y = add_offset(text_y, self.text_offset_y)
        return (
            f"drawtext=fontfile='{escape_filter_path(str(self.font_path))}'"
            f":textfile='{escape_filter_path(str(text_file))}'"
            ":expansion=none"
            f":fontsize={self.font_size}"
            f":fontcolor=white@{self.text_opacity:.2f}"
            f":borderw={self.text_border_width}:bordercolor=black"
            f":x={x}:y={y}"
        )

    def filter_graph(self, text_file: Path) -> str:
        if self.logo_path is None:
            return f"[0:v]{self.drawtext(text_file)}[v]"
        _, logo_y = POSITIONS[self.position]
        x = add_offset("(W-overlay_w)/2", self.logo_offset_x)
        y = add_offset(logo_y, self.logo_offset_y)
        return (
            f"[1:v]format=rgba,scale=-1:{self.logo_height},"
            f"colorchannelmixer=aa={self.logo_opacity:.2f}[logo];"
            f"[0:v][logo]overlay={x}:{y}:format=auto[v1];"
            f"[v1]{self.drawtext(text_file)}[v]"
        )

    def broadcaster_for(self, artifact: MediaArtifact) -> str:
        broadcaster = (artifact.broadcaster or "").strip()
        if not broadcaster:
            raise ComponentError(self.name, "artifact has no broadcaster", {"id": artifact.id})
        return broadcaster

    def build_command(
        self,
        artifact: MediaArtifact,
        source: Path,
        target: Path,
        text_file: Optional[Path] = None,
    ) -> list[str]:
        if text_file is None:
            raise ValueError("watermark commands read their text from a file")
        extra = ["-i", str(self.logo_path)] if self.logo_path is not None else []
        return [
            *self.command_head(source, *extra),
            "-filter_complex",
            self.filter_graph(text_file),
            "-map",
            "[v]",
            "-map",
            "0:a?",
            *ENCODE_ARGS,
            str(target),
        ]

    def encode(self, artifact: MediaArtifact, source: Path, target: Path) -> None:
        broadcaster = self.broadcaster_for(artifact)
        with self.text_file(broadcaster, target.parent) as text_file:
            self.execute(self.build_command(artifact, source, target, text_file), target)
