"""Layer a music track under (or in place of) the clip's audio."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Literal, Optional

from pydantic import Field

from .. import config
from ..interfaces.media import MediaArtifact
from .base import ENCODE_ARGS, FFmpegStep, StepSettings

MODES = ("mix", "replace")

AUDIO_FORMAT = (
    f"aformat=sample_fmts=fltp:sample_rates={config.AUDIO_SAMPLE_RATE}:channel_layouts=stereo"
)


class MusicSettings(StepSettings):
    type: Literal["music"] = "music"
    music_path: Path
    mode: Literal["mix", "replace"] = "mix"
    volume: float = Field(default=0.3, ge=0)
    loop: bool = True


class MusicStep(FFmpegStep):
    kind = "music"
    suffix = "-music"
    settings_model = MusicSettings

    def __init__(
        self,
        name: str,
        *,
        music_path: Path,
        mode: str = "mix",
        volume: float = 0.3,
        loop: bool = True,
        **options,
    ) -> None:
        super().__init__(name, **options)
        if mode not in MODES:
            raise ValueError(f"unsupported mode {mode!r}")
        if volume < 0:
            raise ValueError("volume must not be negative")
        self.music_path = Path(music_path)
        self.mode = mode
        self.volume = volume
        self.loop = loop

    def auxiliary_files(self) -> Iterable[tuple[str, Optional[Path]]]:
        return (("music_path", self.music_path),)

    def filter_graph(self) -> str:
        music = f"[1:a]volume={self.volume:.4f},{AUDIO_FORMAT}[music];"
        if self.mode == "replace":
            return music + "[music]anull[aout]"
        return (
            music
            + f"[0:a]{AUDIO_FORMAT}[orig];"
            + "[orig][music]amix=inputs=2:duration=first:dropout_transition=2[aout]"
        )

    def build_command(self, artifact: MediaArtifact, source: Path, target: Path) -> list[str]:
        music_input = ["-stream_loop", "-1"] if self.loop else []
        music_input += ["-i", str(self.music_path)]
        return [
            *self.command_head(source, *music_input),
            "-filter_complex",
            self.filter_graph(),
            "-map",
            "0:v:0",
            "-map",
            "[aout]",
            *ENCODE_ARGS,
            "-shortest",
            str(target),
        ]
