"""Media helper utilities for reading file metadata."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from .. import config
from ..common.exceptions import ComponentError
from .process import run_process

logger = logging.getLogger(__name__)

DURATION_TIMEOUT_SECONDS = 30.0


def media_duration(path: str | Path, timeout: float = DURATION_TIMEOUT_SECONDS) -> Optional[float]:
    """Return the duration of ``path`` in seconds, or ``None`` when ffprobe cannot tell."""

    try:
        result = run_process(
            [
                config.FFPROBE_PATH,
                "-v",
                "error",
                "-show_entries",
                "format=duration",
                "-of",
                "default=noprint_wrappers=1:nokey=1",
                str(path),
            ],
            timeout=timeout,
            capture_output=True,
            component="ffprobe",
        )
    except ComponentError as exc:
        logger.warning("ffprobe file=%s error=%s", path, exc)
        return None

    output = (result.output or "").strip()
    if not output:
        return None

    try:
        return float(output.splitlines()[-1])
    except ValueError:
        return None


__all__ = ["DURATION_TIMEOUT_SECONDS", "media_duration"]
