"""Publisher that accepts everything and publishes nothing (dry runs)."""

from __future__ import annotations

import logging
from typing import Literal

from ..interfaces.media import MediaArtifact, PublishReceipt
from ..schema import NamedComponentSettings

logger = logging.getLogger(__name__)


class NoOpSettings(NamedComponentSettings):
    type: Literal["noop"] = "noop"


class NoOpPublisher:
    settings_model = NoOpSettings

    def __init__(self, name: str) -> None:
        self.name = name

    @classmethod
    def from_settings(cls, settings: NoOpSettings) -> "NoOpPublisher":
        return cls(settings.name)

    def publish(self, artifact: MediaArtifact) -> PublishReceipt:
        logger.info("noop publisher=%s clip=%s uri=%s", self.name, artifact.id, artifact.uri)
        return PublishReceipt(id=artifact.id)


__all__ = ["NoOpPublisher", "NoOpSettings"]
