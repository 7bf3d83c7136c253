"""Counters and gauges recorded by the protocol layer."""

from __future__ import annotations

import threading
from typing import Any, Protocol


class MetricsSink(Protocol):
    """Where the session reports what happened."""

    def increment(self, name: str, value: int = 1) -> None:
        """Increase a counter."""

    def set_gauge(self, name: str, value: float) -> None:
        """Record the latest value of a gauge."""


class SessionMetrics:
    """In-memory metrics sink, readable from the event loop."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: dict[str, int] = {}
        self._gauges: dict[str, float] = {}

    def increment(self, name: str, value: int = 1) -> None:
        with self._lock:
            self._counters[name] = self._counters.get(name, 0) + value

    def set_gauge(self, name: str, value: float) -> None:
        with self._lock:
            self._gauges[name] = value

    def counter(self, name: str) -> int:
        with self._lock:
            return self._counters.get(name, 0)

    def gauge(self, name: str) -> float | None:
        with self._lock:
            return self._gauges.get(name)

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            return {"counters": dict(self._counters), "gauges": dict(self._gauges)}
