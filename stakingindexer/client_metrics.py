"""Latency recording for calls made through the chain clients."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, Protocol, TypeVar

T = TypeVar("T")


class _BtcInterface(Protocol):
    def get_tip_height(self) -> int: ...

    def get_block_timestamp(self, height: int) -> int: ...


@dataclass(frozen=True)
class LatencyRecord:
    """One timed client call."""

    client: str
    method: str
    duration: timedelta
    failed: bool


class LatencyRecorder:
    """Collects latency records; safe to share between threads."""

    def __init__(self) -> None:
        self._records: list[LatencyRecord] = []
        self._lock = threading.Lock()

    @property
    def records(self) -> tuple[LatencyRecord, ...]:
        with self._lock:
            return tuple(self._records)

    def record(self, client: str, method: str, duration: timedelta, failed: bool) -> None:
        entry = LatencyRecord(client, method, duration, failed)
        with self._lock:
            self._records.append(entry)


def run_with_metrics(
    recorder: LatencyRecorder, client: str, method: str, func: Callable[[], T]
) -> T:
    """Call ``func``, record how long it took and whether it raised, and pass on its outcome."""
    start = time.perf_counter()
    try:
        result = func()
    except Exception:
        recorder.record(client, method, timedelta(seconds=time.perf_counter() - start), True)
        raise
    recorder.record(client, method, timedelta(seconds=time.perf_counter() - start), False)
    return result


class BTCClientWithMetrics:
    """Wraps a Bitcoin client and records the latency of every call."""

    client_name = "btc"

    def __init__(self, btc: _BtcInterface, recorder: LatencyRecorder) -> None:
        self._btc = btc
        self._recorder = recorder

    def get_tip_height(self) -> int:
        return run_with_metrics(
            self._recorder, self.client_name, "GetTipHeight", self._btc.get_tip_height
        )

    def get_block_timestamp(self, height: int) -> int:
        return run_with_metrics(
            self._recorder,
            self.client_name,
            "GetBlockTimestamp",
            lambda: self._btc.get_block_timestamp(height),
        )