"""Helpers for removing local media files once ownership moves on."""

from __future__ import annotations

import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def remove_file(target: Path | None) -> bool:
    """Delete ``target`` if it is a regular file.

    Returns ``True`` when a file was removed. Missing files are ignored;
    other OS errors propagate so callers decide whether they matter.
    """

    if target is None or not target.is_file():
        return False
    try:
        target.unlink()
    except FileNotFoundError:
        return False
    logger.debug("removed file=%s", target)
    return True


def remove_partial(target: Path) -> None:
    """Best-effort removal of ``target`` and a stale ``.part`` sibling."""

    for path in (target, target.with_name(target.name + ".part")):
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning("cleanup file=%s error=%s", path, exc)


__all__ = ["remove_file", "remove_partial"]
