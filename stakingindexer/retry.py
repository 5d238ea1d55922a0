"""Retrying calls to remote RPC clients with exponential back-off."""

from __future__ import annotations

import logging
import random
import time
from datetime import timedelta
from typing import Callable, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)

_MAX_JITTER = 0.1
_MAX_BACKOFF_SHIFT = 62


def _seconds(delay: float | timedelta) -> float:
    if isinstance(delay, timedelta):
        return delay.total_seconds()
    return float(delay)


def call_with_retry(
    call: Callable[[], T],
    max_attempts: int,
    delay: float | timedelta,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call ``call`` until it succeeds or ``max_attempts`` calls have failed.

    Between attempts the wait doubles from ``delay`` (seconds or a timedelta),
    with up to 100 ms of random jitter. A ``max_attempts`` of zero retries
    until the call succeeds. When every attempt fails, the last error is raised.
    """
    if max_attempts < 0:
        raise ValueError("max_attempts must not be negative")
    base = _seconds(delay)

    attempt = 0
    while True:
        try:
            return call()
        except Exception as exc:
            logger.debug(
                "failed to call the RPC client (attempt %d of %d): %s",
                attempt + 1,
                max_attempts,
                exc,
            )
            if max_attempts and attempt == max_attempts - 1:
                raise
        wait = base * (1 << min(attempt, _MAX_BACKOFF_SHIFT)) + random.random() * _MAX_JITTER
        sleep(wait)
        attempt += 1