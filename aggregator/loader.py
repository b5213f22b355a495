"""Build a :class:`RunContext` from a JSON run configuration.

Every component block carries a ``type`` resolved through a closed
registry below. The registered class validates the rest of the block
against its ``settings_model`` and is then built from the result.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Mapping, Optional

from .common.env import expand_placeholders
from .common.exceptions import ConfigError
from .integrations.instagram import InstagramGraphPublisher, InstagrapiPublisher
from .integrations.noop import NoOpPublisher
from .integrations.twitch import TwitchSource
from .integrations.ytdlp import YtDlpDownloader
from .pipeline.context import RunContext
from .pipeline.sequence import Pipeline
from .schema import PipelineSettings, RunSettings, validate_settings
from .steps import build_step
from .storage import R2Stager, SqliteLedger

logger = logging.getLogger(__name__)

SOURCE_TYPES: dict[str, type] = {
    "twitch": TwitchSource,
}
DOWNLOADER_TYPES: dict[str, type] = {
    "yt_dlp": YtDlpDownloader,
}
LEDGER_TYPES: dict[str, type] = {
    "sqlite": SqliteLedger,
}
STAGER_TYPES: dict[str, type] = {
    "r2": R2Stager,
}
PUBLISHER_TYPES: dict[str, type] = {
    "instagram": InstagramGraphPublisher,
    "instagram_private": InstagrapiPublisher,
    "noop": NoOpPublisher,
}


def _resolve(registry: Mapping[str, type], block: Any, component: str) -> Any:
    if not isinstance(block, Mapping):
        raise ConfigError(component, "block must be an object", {"got": type(block).__name__})
    kind = block.get("type")
    component_type = registry.get(kind) if isinstance(kind, str) else None
    if component_type is None:
        raise ConfigError(component, "unknown type", {"type": kind, "allowed": "|".join(registry)})
    settings = validate_settings(component_type.settings_model, block, component)
    try:
        return component_type.from_settings(settings)
    except ValueError as exc:
        raise ConfigError(component, str(exc), {"type": kind}) from exc


def _label(block: Any, kind: str, index: int) -> str:
    name = block.get("name") if isinstance(block, Mapping) else None
    if isinstance(name, str) and name.strip():
        return name
    return f"{kind}[{index}]"


def _build_pipelines(blocks: list[dict[str, Any]]) -> dict[str, Pipeline]:
    pipelines: dict[str, Pipeline] = {}
    for index, block in enumerate(blocks):
        settings = validate_settings(PipelineSettings, block, _label(block, "pipelines", index))
        if settings.name in pipelines:
            raise ConfigError("pipelines", "duplicate name", {"name": settings.name})
        steps = [
            build_step(step_block, f"{settings.name}[{position}]")
            for position, step_block in enumerate(settings.steps)
        ]
        pipelines[settings.name] = Pipeline.of(settings.name, steps)
    return pipelines


def _build_all(registry: Mapping[str, type], blocks: list[dict[str, Any]], kind: str) -> list[Any]:
    return [
        _resolve(registry, block, _label(block, kind, index)) for index, block in enumerate(blocks)
    ]


def build_context(document: Any) -> RunContext:
    """Validate ``document`` and return the run wiring."""

    settings = validate_settings(RunSettings, document, "run")
    ledger_block: Optional[dict[str, Any]] = settings.ledger
    stager_block: Optional[dict[str, Any]] = settings.stager

    context = RunContext(
        name=settings.name,
        posts=settings.posts,
        sources=tuple(_build_all(SOURCE_TYPES, settings.sources, "sources")),
        downloader=_resolve(DOWNLOADER_TYPES, settings.downloader, "downloader"),
        publishers=tuple(_build_all(PUBLISHER_TYPES, settings.publishers, "publishers")),
        pipelines=_build_pipelines(settings.pipelines),
        ledger=_resolve(LEDGER_TYPES, ledger_block, "ledger") if ledger_block is not None else None,
        stager=_resolve(STAGER_TYPES, stager_block, "stager") if stager_block is not None else None,
        work_dir=settings.work_dir.expanduser(),
    )
    logger.info(
        "config run=%s posts=%d sources=%d pipelines=%d publishers=%d ledger=%s stager=%s",
        context.name,
        context.posts,
        len(context.sources),
        len(context.pipelines),
        len(context.publishers),
        type(context.ledger).__name__ if context.ledger else "none",
        type(context.stager).__name__ if context.stager else "none",
    )
    return context


def load_config(path: Path | str) -> RunContext:
    """Read the JSON run configuration at ``path``."""

    config_path = Path(path)
    try:
        raw = config_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError("config", "cannot read configuration", {"path": config_path, "error": exc}) from exc
    try:
        document = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ConfigError(
            "config", "invalid JSON", {"path": config_path, "line": exc.lineno, "column": exc.colno}
        ) from exc
    return build_context(expand_placeholders(document, component="config"))


__all__ = [
    "DOWNLOADER_TYPES",
    "LEDGER_TYPES",
    "PUBLISHER_TYPES",
    "SOURCE_TYPES",
    "STAGER_TYPES",
    "build_context",
    "load_config",
]
