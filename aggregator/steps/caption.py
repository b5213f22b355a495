"""Overlay wrapped caption text (a literal string or the clip title)."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Literal, Optional

from pydantic import Field, model_validator

from ..common.caption_utils import filter_characters
from ..common.exceptions import ComponentError
from ..helpers.formatting import escape_filter_path
from ..helpers.text_layout import FontSpec, wrap
from ..interfaces.media import MediaArtifact
from ..schema import NonBlank
from .base import ENCODE_ARGS, FFmpegStep, StepSettings, add_offset

POSITIONS = {
    "top_left": ("0", "0"),
    "top_right": ("w-text_w", "0"),
    "bottom_left": ("0", "h-text_h"),
    "bottom_right": ("w-text_w", "h-text_h"),
    "top_center": ("(w-text_w)/2", "0"),
    "bottom_center": ("(w-text_w)/2", "h-text_h"),
    "center": ("(w-text_w)/2", "(h-text_h)/2"),
}
ALIGNMENTS = {"left": "L", "center": "C", "right": "R"}
SOURCES = ("text", "title")


class CaptionSettings(StepSettings):
    type: Literal["caption"] = "caption"
    font_path: Path
    target_width: int = Field(..., gt=0)
    source: Literal["text", "title"] = "title"
    text: Optional[str] = None
    position: Literal[
        "top_left",
        "top_right",
        "bottom_left",
        "bottom_right",
        "top_center",
        "bottom_center",
        "center",
    ] = "top_center"
    text_align: Literal["left", "center", "right"] = "center"
    font_color: NonBlank = "white"
    border_color: NonBlank = "black"
    box_color: NonBlank = "black"
    font_size: int = Field(default=70, gt=0)
    text_opacity: float = Field(default=0.75, ge=0, le=1)
    text_border_width: int = Field(default=3, ge=0)
    text_offset_x: int = 0
    text_offset_y: int = 0
    line_spacing: int = Field(default=10, ge=0)
    max_lines: int = Field(default=4, gt=0)
    box_opacity: float = Field(default=0.0, ge=0, le=1)
    box_border_width: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _text_for_text_source(self) -> "CaptionSettings":
        if self.source == "text" and not (self.text or "").strip():
            raise ValueError("text is required when source is 'text'")
        return self


class CaptionStep(FFmpegStep):
    """Draw caption text with configurable font, colours, border and box.

    The text is wrapped to ``target_width`` pixels with the overlay font's
    real glyph metrics and handed to ``drawtext`` through a temporary text
    file, which sidesteps filter-graph escaping of arbitrary titles.
    """

    kind = "caption"
    suffix = "-caption"
    settings_model = CaptionSettings

    def __init__(
        self,
        name: str,
        *,
        font_path: Path,
        target_width: int,
        source: str = "title",
        text: Optional[str] = None,
        position: str = "top_center",
        text_align: str = "center",
        font_color: str = "white",
        border_color: str = "black",
        box_color: str = "black",
        font_size: int = 70,
        text_opacity: float = 0.75,
        text_border_width: int = 3,
        text_offset_x: int = 0,
        text_offset_y: int = 0,
        line_spacing: int = 10,
        max_lines: int = 4,
        box_opacity: float = 0.0,
        box_border_width: int = 0,
        **options,
    ) -> None:
        super().__init__(name, **options)
        if source not in SOURCES:
            raise ValueError(f"unsupported source {source!r}")
        if source == "text" and not (text or "").strip():
            raise ValueError("text is required when source is 'text'")
        if position not in POSITIONS:
            raise ValueError(f"unsupported position {position!r}")
        if text_align not in ALIGNMENTS:
            raise ValueError(f"unsupported text_align {text_align!r}")
        if target_width <= 0 or max_lines <= 0 or font_size <= 0:
            raise ValueError("target_width, max_lines and font_size must be positive")
        self.font_path = Path(font_path)
        self.target_width = target_width
        self.source = source
        self.text = text
        self.position = position
        self.text_align = text_align
        self.font_color = font_color
        self.border_color = border_color
        self.box_color = box_color
        self.font_size = font_size
        self.text_opacity = text_opacity
        self.text_border_width = text_border_width
        self.text_offset_x = text_offset_x
        self.text_offset_y = text_offset_y
        self.line_spacing = line_spacing
        self.max_lines = max_lines
        self.box_opacity = box_opacity
        self.box_border_width = box_border_width

    def auxiliary_files(self) -> Iterable[tuple[str, Optional[Path]]]:
        return (("font_path", self.font_path),)

    def caption_for(self, artifact: MediaArtifact) -> str:
        """Return the wrapped caption for ``artifact``."""

        raw = self.text if self.source == "text" else artifact.title
        if not (raw or "").strip():
            raise ComponentError(self.name, "no caption text", {"id": artifact.id, "source": self.source})
        wrapped = wrap(
            filter_characters(raw or ""),
            FontSpec(self.font_path, self.font_size),
            self.target_width,
            self.max_lines,
        )
        if not wrapped:
            raise ComponentError(self.name, "caption is empty after layout", {"id": artifact.id})
        return wrapped

    def drawtext(self, text_file: Path) -> str:
        x_expr, y_expr = POSITIONS[self.position]
        parts = [
            f"drawtext=fontfile='{escape_filter_path(str(self.font_path))}'",
            f"textfile='{escape_filter_path(str(text_file))}'",
            "reload=0",
            "expansion=none",
            f"text_align=M+{ALIGNMENTS[self.text_align]}",
            f"line_spacing={self.line_spacing}",
            f"fontsize={self.font_size}",
            f"fontcolor={self.font_color}@{self.text_opacity:.2f}",
            f"borderw={self.text_border_width}",
            f"bordercolor={self.border_color}",
        ]
        if self.box_opacity > 0:
            parts.extend(
                [
                    "box=1",
                    f"boxcolor={self.box_color}@{self.box_opacity:.2f}",
                    f"boxborderw={self.box_border_width}",
                ]
            )
        parts.extend(
            [
                f"x={add_offset(x_expr, self.text_offset_x)}",
                f"y={add_offset(y_expr, self.text_offset_y)}",
                "fix_bounds=1",
            ]
        )
        return ":".join(parts)

    def build_command(
        self,
        artifact: MediaArtifact,
        source: Path,
        target: Path,
        text_file: Optional[Path] = None,
    ) -> list[str]:
        if text_file is None:
            raise ValueError("caption commands read their text from a file")
        return [
            *self.command_head(source),
            "-filter_complex",
            f"[0:v]{self.drawtext(text_file)}[v]",
            "-map",
            "[v]",
            "-map",
            "0:a?",
            *ENCODE_ARGS,
            str(target),
        ]

    def encode(self, artifact: MediaArtifact, source: Path, target: Path) -> None:
        caption = self.caption_for(artifact)
        with self.text_file(caption, target.parent) as text_file:
            self.execute(self.build_command(artifact, source, target, text_file), target)
