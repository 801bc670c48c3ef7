"""In-process latency metrics for agent invocations and narrative runs.

A ``LatencyRecorder`` can be injected into the orchestrator for isolated
measurements; the module-level helpers operate on a process-wide default.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from threading import Lock
from time import perf_counter

logger = logging.getLogger(__name__)


@dataclass
class LatencySummary:
    """Aggregated latency metrics for one operation."""

    count: int = 0
    error_count: int = 0
    total_ms: float = 0.0
    min_ms: float = 0.0
    max_ms: float = 0.0

    def add(self, duration_ms: float, ok: bool) -> None:
        if self.count == 0:
            self.min_ms = self.max_ms = duration_ms
        else:
            self.min_ms = min(self.min_ms, duration_ms)
            self.max_ms = max(self.max_ms, duration_ms)
        self.count += 1
        self.total_ms += duration_ms
        if not ok:
            self.error_count += 1

    def as_dict(self) -> dict[str, float | int]:
        return {
            "count": self.count,
            "error_count": self.error_count,
            "total_ms": round(self.total_ms, 3),
            "avg_ms": round(self.total_ms / self.count if self.count else 0.0, 3),
            "min_ms": round(self.min_ms, 3),
            "max_ms": round(self.max_ms, 3),
        }


class LatencyRecorder:
    """Thread-safe latency aggregates keyed by operation name."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._stats: dict[str, LatencySummary] = {}

    def record(self, operation: str, duration_ms: float, *, ok: bool = True) -> None:
        normalized = max(float(duration_ms), 0.0)
        with self._lock:
            self._stats.setdefault(operation, LatencySummary()).add(normalized, ok)
        logger.debug(
            "latency operation=%s duration_ms=%.3f ok=%s",
            operation,
            normalized,
            ok,
        )

    @asynccontextmanager
    async def track(self, operation: str) -> AsyncIterator[None]:
        """Time the wrapped block. An exception is recorded as an error and re-raised."""
        start = perf_counter()
        ok = False
        try:
            yield
            ok = True
        finally:
            self.record(operation, (perf_counter() - start) * 1000, ok=ok)

    def snapshot(self) -> dict[str, dict[str, float | int]]:
        with self._lock:
            return {op: s.as_dict() for op, s in sorted(self._stats.items())}

    def reset(self) -> None:
        with self._lock:
            self._stats.clear()


_DEFAULT = LatencyRecorder()


def default_recorder() -> LatencyRecorder:
    """Return the process-wide recorder."""
    return _DEFAULT


def latency_metrics_snapshot() -> dict[str, dict[str, float | int]]:
    """Return current process-wide latency aggregates."""
    return _DEFAULT.snapshot()


def reset_latency_metrics() -> None:
    """Clear all process-wide aggregates (test helper)."""
    _DEFAULT.reset()
