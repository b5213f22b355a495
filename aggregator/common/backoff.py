"""Exponential backoff helper."""

from __future__ import annotations

import logging
import time
from typing import Callable, Tuple, Type, TypeVar


T = TypeVar("T")

logger = logging.getLogger(__name__)


def retry(
    fn: Callable[[], T],
    attempts: int,
    base_delay: float,
    *,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    label: str = "operation",
) -> T:
    """Execute ``fn`` with exponential backoff.

    Only exceptions listed in ``retry_on`` are retried; the last one is
    re-raised once ``attempts`` is exhausted.
    """

    for attempt in range(1, attempts + 1):
        try:
            return fn()
        except retry_on as exc:
            if attempt == attempts:
                raise
            delay = base_delay * (2 ** (attempt - 1))
            logger.warning(
                "retry label=%s attempt=%d/%d delay=%.1fs error=%s",
                label,
                attempt,
                attempts,
                delay,
                exc,
            )
            time.sleep(delay)
    raise RuntimeError("retry requires at least one attempt")


__all__ = ["retry"]
