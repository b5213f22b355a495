"""Built-in transform steps and the registry that resolves them by type."""

from __future__ import annotations

from typing import Any, Mapping

from ..common.exceptions import ConfigError
from ..schema import validate_settings
from .base import FFmpegStep, StepSettings, TransformStep, derive_output
from .caption import CaptionStep
from .fps import FpsStep
from .music import MusicStep
from .vertical_blur import VerticalBlurStep
from .watermark import WatermarkStep

STEP_TYPES: dict[str, type[FFmpegStep]] = {
    step.kind: step
    for step in (FpsStep, VerticalBlurStep, WatermarkStep, CaptionStep, MusicStep)
}


def build_step(block: Any, component: str) -> TransformStep:
    """Resolve a step configuration block into a configured step."""

    kind = block.get("type") if isinstance(block, Mapping) else None
    step_type = STEP_TYPES.get(kind) if isinstance(kind, str) else None
    if step_type is None:
        raise ConfigError(
            component,
            "unknown step type",
            {"type": kind, "allowed": "|".join(STEP_TYPES)},
        )
    settings = validate_settings(step_type.settings_model, block, component)
    name = settings.name or f"{component}:{kind}"
    try:
        return step_type.from_settings(settings, name)
    except ValueError as exc:
        raise ConfigError(component, str(exc), {"type": kind}) from exc


__all__ = [
    "STEP_TYPES",
    "CaptionStep",
    "FFmpegStep",
    "FpsStep",
    "MusicStep",
    "StepSettings",
    "TransformStep",
    "VerticalBlurStep",
    "WatermarkStep",
    "build_step",
    "derive_output",
]
