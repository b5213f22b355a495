"""Transform step contract and the shared ffmpeg invocation discipline."""

from __future__ import annotations

import logging
import tempfile
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import ClassVar, Iterable, Iterator, Optional

from pydantic import Field

from .. import config
from ..common.exceptions import ComponentError, TransformInvariantViolation
from ..helpers.cleanup import remove_file, remove_partial
from ..helpers.process import run_process
from ..interfaces.media import MediaArtifact
from ..schema import ComponentSettings, NonBlank

logger = logging.getLogger(__name__)

ENCODE_ARGS: tuple[str, ...] = (
    "-c:v",
    config.VIDEO_CODEC,
    "-pix_fmt",
    config.PIXEL_FORMAT,
    "-c:a",
    config.AUDIO_CODEC,
    "-b:a",
    config.AUDIO_BITRATE,
    "-ar",
    str(config.AUDIO_SAMPLE_RATE),
)


def derive_output(source: Path, suffix: str) -> Path:
    """Return the sibling of ``source`` with ``suffix`` inserted before its extension."""

    return source.with_name(f"{source.stem}{suffix}{source.suffix or config.CLIP_EXTENSION}")


def add_offset(expression: str, offset: int) -> str:
    """Append a signed pixel ``offset`` to an ffmpeg position expression."""

    if offset == 0:
        return expression
    sign = "+" if offset > 0 else "-"
    return f"{expression}{sign}{abs(offset)}"


def _same_file(first: Path, second: Path) -> bool:
    return first.resolve() == second.resolve()


class StepSettings(ComponentSettings):
    """Options shared by every ffmpeg step block."""

    ffmpeg_path: NonBlank = config.FFMPEG_PATH
    timeout: float = Field(default=config.PROCESS_TIMEOUT_SECONDS, gt=0)


class TransformStep(ABC):
    """A single unit of media processing over a :class:`MediaArtifact`.

    :meth:`apply` wraps the concrete :meth:`transform` and enforces the
    ownership contract: the step must produce a different, existing regular
    file, after which the file it consumed is deleted.
    """

    kind: ClassVar[str] = "step"

    def __init__(self, name: str) -> None:
        self.name = name

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"

    def apply(self, artifact: MediaArtifact) -> MediaArtifact:
        source = artifact.file
        if source is None:
            raise ComponentError(self.name, "artifact has no local file", {"id": artifact.id})

        result = self.transform(artifact)
        produced = result.file
        if produced is None or _same_file(produced, source):
            raise TransformInvariantViolation(
                self.name,
                "step must write a new file",
                {"input": source, "output": produced},
            )
        if not produced.is_file():
            raise TransformInvariantViolation(
                self.name,
                "step output is not a regular file",
                {"output": produced},
            )

        try:
            remove_file(source)
        except OSError as exc:
            logger.warning("step=%s cleanup file=%s error=%s", self.name, source, exc)
        return result

    @abstractmethod
    def transform(self, artifact: MediaArtifact) -> MediaArtifact:
        """Produce a new artifact; must not modify ``artifact.file`` in place."""


class FFmpegStep(TransformStep):
    """Base for steps that render their output with one ffmpeg invocation."""

    suffix: ClassVar[str] = "-out"
    settings_model: ClassVar[type[StepSettings]] = StepSettings

    def __init__(
        self,
        name: str,
        *,
        ffmpeg_path: str = config.FFMPEG_PATH,
        timeout: float = config.PROCESS_TIMEOUT_SECONDS,
    ) -> None:
        super().__init__(name)
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        self.ffmpeg_path = ffmpeg_path
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: StepSettings, name: str) -> "FFmpegStep":
        """Build the step from its validated configuration block."""

        return cls(name, **settings.options())

    def auxiliary_files(self) -> Iterable[tuple[str, Optional[Path]]]:
        """Return ``(label, path)`` pairs that must exist before encoding."""

        return ()

    @abstractmethod
    def build_command(self, artifact: MediaArtifact, source: Path, target: Path) -> list[str]:
        """Return the full ffmpeg argument list writing ``target``."""

    def transform(self, artifact: MediaArtifact) -> MediaArtifact:
        source = artifact.file
        if source is None:
            raise ComponentError(self.name, "artifact has no local file", {"id": artifact.id})
        target = derive_output(source, self.suffix)
        self.preflight(source, target)
        self.check_auxiliary_files()
        self.encode(artifact, source, target)
        return artifact.with_file(target)

    def encode(self, artifact: MediaArtifact, source: Path, target: Path) -> None:
        self.execute(self.build_command(artifact, source, target), target)

    def preflight(self, source: Path, target: Path) -> None:
        if not source.is_file():
            raise ComponentError(self.name, "input is not a regular file", {"input": source})
        target.parent.mkdir(parents=True, exist_ok=True)
        if target.exists():
            raise ComponentError(self.name, "output already exists", {"output": target})

    def check_auxiliary_files(self) -> None:
        for label, path in self.auxiliary_files():
            if path is not None and not path.is_file():
                raise ComponentError(self.name, f"{label} is not a regular file", {label: path})

    def execute(self, command: list[str], target: Path) -> None:
        try:
            run_process(command, timeout=self.timeout, component=self.name)
            self.postflight(target)
        except ComponentError:
            remove_partial(target)
            raise

    def postflight(self, target: Path) -> None:
        if not target.is_file() or target.stat().st_size == 0:
            raise ComponentError(self.name, "output missing or empty", {"output": target})

    @contextmanager
    def text_file(self, text: str, directory: Path) -> Iterator[Path]:
        """Write ``text`` to a temporary file for drawtext's ``textfile`` option.

        Reading overlay text from a file keeps quotes and percent signs in
        titles out of the filter graph syntax.
        """
        with tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            prefix=f"{self.kind}-",
            suffix=".txt",
            dir=directory,
            delete=False,
        ) as handle:
            handle.write(text)
            path = Path(handle.name)
        try:
            yield path
        finally:
            try:
                remove_file(path)
            except OSError as exc:
                logger.warning("step=%s cleanup file=%s error=%s", self.name, path, exc)

    def command_head(self, source: Path, *extra_inputs: str | Path) -> list[str]:
        command = [self.ffmpeg_path, "-y", "-i", str(source)]
        for item in extra_inputs:
            command.append(str(item))
        return command


__all__ = [
    "ENCODE_ARGS",
    "FFmpegStep",
    "StepSettings",
    "TransformStep",
    "add_offset",
    "derive_output",
]
