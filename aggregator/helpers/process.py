"""Run external executables with a hard timeout and typed failures."""

from __future__ import annotations

import logging
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from ..common.exceptions import (
    ProcessCancelled,
    ProcessFailed,
    ProcessStartFailed,
    ProcessTimeout,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProcessResult:
    """Outcome of a process that exited with status zero."""

    command: list[str]
    returncode: int
    elapsed: float
    output: Optional[str] = None


def _kill(proc: subprocess.Popen) -> None:
    proc.kill()
    try:
        proc.communicate(timeout=5)
    except subprocess.TimeoutExpired:
        logger.warning("process pid=%s did not exit after kill", proc.pid)


def run_process(
    command: Sequence[str | Path],
    *,
    timeout: float,
    cwd: str | Path | None = None,
    capture_output: bool = False,
    component: str = "process",
) -> ProcessResult:
    """Run ``command`` and wait at most ``timeout`` seconds.

    stderr is merged into stdout. The merged stream is discarded unless
    ``capture_output`` is set, in which case it is decoded and returned (and
    attached to :class:`ProcessFailed` on a non-zero exit).

    Raises
    ------
    ProcessStartFailed
        The executable could not be launched.
    ProcessTimeout
        The process outlived ``timeout``; it is killed before raising.
    ProcessCancelled
        The wait was interrupted (``KeyboardInterrupt``); the process is
        killed before raising.
    ProcessFailed
        The process exited with a non-zero status.
    """

    args = [str(part) for part in command]
    logger.debug("process component=%s command=%s", component, " ".join(args))
    start = time.perf_counter()
    try:
        proc = subprocess.Popen(
            args,
            cwd=str(cwd) if cwd is not None else None,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE if capture_output else subprocess.DEVNULL,
            stderr=subprocess.STDOUT,
        )
    except OSError as exc:
        raise ProcessStartFailed(
            component,
            "could not start process",
            {"executable": args[0], "error": exc},
        ) from exc

    try:
        raw, _ = proc.communicate(timeout=timeout)
    except subprocess.TimeoutExpired as exc:
        _kill(proc)
        raise ProcessTimeout(component, args, timeout) from exc
    except KeyboardInterrupt as exc:
        _kill(proc)
        raise ProcessCancelled(component, args) from exc

    elapsed = time.perf_counter() - start
    output = raw.decode("utf-8", errors="replace") if raw is not None else None
    if proc.returncode != 0:
        raise ProcessFailed(component, args, proc.returncode, output)
    logger.debug(
        "process component=%s status=ok elapsed=%.2fs", component, elapsed
    )
    return ProcessResult(command=args, returncode=proc.returncode, elapsed=elapsed, output=output)


__all__ = ["ProcessResult", "run_process"]
