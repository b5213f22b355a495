"""Pydantic models for the JSON run configuration.

The run document and each pipeline block are described here. Every
component module declares the settings model for its own block as a
subclass of :class:`ComponentSettings`; the loader validates each block
against the model registered for its ``type``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Any, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, ValidationError

from . import config
from .common.exceptions import ConfigError

NonBlank = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]

M = TypeVar("M", bound=BaseModel)


class ComponentSettings(BaseModel):
    """Common shape of a component block: a registry ``type`` and an optional name."""

    model_config = ConfigDict(extra="forbid")

    type: str
    name: Optional[NonBlank] = None

    def options(self) -> dict[str, Any]:
        """Field values other than ``type`` and ``name``, keyed like constructor arguments."""

        return {
            field: getattr(self, field)
            for field in type(self).model_fields
            if field not in ("type", "name")
        }


class NamedComponentSettings(ComponentSettings):
    """Sources and publishers are referenced by name and must carry one."""

    name: NonBlank


class PipelineSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: NonBlank
    steps: list[dict[str, Any]] = Field(default_factory=list)


class RunSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: NonBlank
    posts: int = Field(..., gt=0)
    work_dir: Path = config.WORK_DIR
    sources: list[dict[str, Any]] = Field(..., min_length=1)
    pipelines: list[dict[str, Any]] = Field(default_factory=list)
    downloader: dict[str, Any]
    ledger: Optional[dict[str, Any]] = None
    stager: Optional[dict[str, Any]] = None
    publishers: list[dict[str, Any]] = Field(..., min_length=1)


def config_error(component: str, exc: ValidationError) -> ConfigError:
    """Describe the first validation failure as a :class:`ConfigError`."""

    first = exc.errors()[0]
    details: dict[str, Any] = {}
    key = ".".join(str(part) for part in first.get("loc", ()))
    if key:
        details["key"] = key
    if exc.error_count() > 1:
        details["errors"] = exc.error_count()
    return ConfigError(component, first["msg"], details)


def validate_settings(model: type[M], block: Any, component: str) -> M:
    """Validate ``block`` against ``model``, reporting failures under ``component``."""

    try:
        return model.model_validate(block)
    except ValidationError as exc:
        raise config_error(component, exc) from exc


__all__ = [
    "ComponentSettings",
    "NamedComponentSettings",
    "NonBlank",
    "PipelineSettings",
    "RunSettings",
    "config_error",
    "validate_settings",
]
