"""Run orchestration: claim, download, transform, stage, publish, clean up."""

from __future__ import annotations

import logging
from contextlib import ExitStack
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from .. import config
from ..common.exceptions import ConfigError
from ..helpers.cleanup import remove_file
from ..helpers.formatting import sanitize_filename
from ..interfaces.components import Source
from ..interfaces.media import ClipReference, MediaArtifact
from .context import RunContext
from .sequence import Pipeline

logger = logging.getLogger(__name__)


class RunState(str, Enum):
    IDLE = "idle"
    STARTED = "started"
    RUNNING = "running"
    STOPPED = "stopped"


class ItemStatus(str, Enum):
    PREPARED = "prepared"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class ItemOutcome:
    """Result of preparing one candidate: ready to publish, skipped, or failed."""

    status: ItemStatus
    artifact: Optional[MediaArtifact] = None
    error: Optional[Exception] = None


@dataclass
class RunReport:
    published: int = 0
    skipped: int = 0
    failed: int = 0
    publish_failures: int = 0
    source_failures: int = 0


class Runner:
    """Drive every configured source until the target publish count is reached.

    Per-item failures (download, transform, stage) are logged and the next
    candidate is tried. Publish failures are isolated per destination.
    Configuration errors are never caught here.
    """

    def __init__(self, context: RunContext) -> None:
        self.context = context
        self.state = RunState.IDLE

    def _tag(self, source: Source, clip: ClipReference) -> str:
        return f"(runner={self.context.name}, source={source.name}, clip={clip.id})"

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def run(self) -> RunReport:
        if self.state is not RunState.IDLE:
            raise RuntimeError(f"runner {self.context.name} already ran (state={self.state.value})")
        report = RunReport()
        try:
            with ExitStack() as resources:
                self._acquire(resources)
                self.state = RunState.RUNNING
                self._drain(report)
        finally:
            self.state = RunState.STOPPED
        logger.info(
            "run=%s finished published=%d/%d skipped=%d failed=%d publish_failures=%d",
            self.context.name,
            report.published,
            self.context.posts,
            report.skipped,
            report.failed,
            report.publish_failures,
        )
        return report

    def _acquire(self, resources: ExitStack) -> None:
        # released in reverse order: stager first, then the ledger
        ledger = self.context.ledger
        if ledger is not None:
            ledger.start()
            resources.callback(self._close, "ledger", ledger.stop)
        stager = self.context.stager
        if stager is not None:
            stager.start()
            resources.callback(self._close, "stager", stager.stop)
        self.state = RunState.STARTED

    def _close(self, label: str, stop: Callable[[], None]) -> None:
        try:
            stop()
        except Exception:
            logger.exception("run=%s failed to close %s", self.context.name, label)

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------
    def _done(self, report: RunReport) -> bool:
        return report.published >= self.context.posts

    def _drain(self, report: RunReport) -> None:
        for source in self.context.sources:
            if self._done(report):
                break
            try:
                clips = source.fetch()
            except ConfigError:
                raise
            except Exception as exc:
                report.source_failures += 1
                logger.error("run=%s source=%s fetch failed: %s", self.context.name, source.name, exc)
                continue
            logger.info("run=%s source=%s candidates=%d", self.context.name, source.name, len(clips))

            pipeline = self.context.pipeline_for(source)
            for clip in clips:
                if self._done(report):
                    break
                outcome = self._prepare(source, pipeline, clip)
                if outcome.status is ItemStatus.SKIPPED:
                    report.skipped += 1
                    continue
                artifact = outcome.artifact
                if outcome.status is ItemStatus.FAILED or artifact is None:
                    report.failed += 1
                    continue

                self._publish(source, clip, artifact, report)
                self._cleanup(source, clip, artifact)
                report.published += 1

    def _prepare(
        self, source: Source, pipeline: Optional[Pipeline], clip: ClipReference
    ) -> ItemOutcome:
        tag = self._tag(source, clip)
        ledger = self.context.ledger
        artifact: Optional[MediaArtifact] = None
        try:
            if ledger is not None and not ledger.claim(clip.id, self.context.name):
                logger.info("already claimed %s", tag)
                return ItemOutcome(ItemStatus.SKIPPED)

            target = self.context.work_dir / f"{sanitize_filename(clip.id)}{config.CLIP_EXTENSION}"
            artifact = self.context.downloader.download(clip, target)
            logger.info("downloaded file=%s %s", artifact.file, tag)
            if pipeline is not None:
                artifact = pipeline.run(artifact)
            if self.context.stager is not None:
                artifact = self.context.stager.stage(artifact)
        except ConfigError:
            raise
        except Exception as exc:
            logger.error("item failed %s: %s", tag, exc)
            self._discard(artifact, tag)
            return ItemOutcome(ItemStatus.FAILED, error=exc)
        return ItemOutcome(ItemStatus.PREPARED, artifact=artifact)

    def _publish(
        self, source: Source, clip: ClipReference, artifact: MediaArtifact, report: RunReport
    ) -> None:
        tag = self._tag(source, clip)
        for publisher in self.context.publishers:
            try:
                receipt = publisher.publish(artifact)
            except Exception as exc:
                report.publish_failures += 1
                logger.error("publish failed publisher=%s %s: %s", publisher.name, tag, exc)
                continue
            logger.info("published publisher=%s uri=%s %s", publisher.name, receipt.uri, tag)

    def _cleanup(self, source: Source, clip: ClipReference, artifact: MediaArtifact) -> None:
        tag = self._tag(source, clip)
        stager = self.context.stager
        try:
            if stager is None:
                remove_file(artifact.file)
            else:
                stager.clean(artifact)
        except Exception as exc:
            logger.warning("cleanup failed %s: %s", tag, exc)

    def _discard(self, artifact: Optional[MediaArtifact], tag: str) -> None:
        if artifact is None:
            return
        try:
            remove_file(artifact.file)
        except OSError as exc:
            logger.warning("cleanup failed file=%s %s: %s", artifact.file, tag, exc)


__all__ = ["ItemOutcome", "ItemStatus", "RunReport", "RunState", "Runner"]
