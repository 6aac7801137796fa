"""In-process counters and gauges for extraction and decay activity.

Series are identified by a name plus an optional set of tags, e.g.
``memory.extracted{edge_type=fact}``. Nothing is exported; callers read
values back through ``counter()``, ``total()``, ``gauge()`` or ``snapshot()``.
"""

from __future__ import annotations

from collections import Counter
from threading import Lock
from typing import Any

MEMORY_EXTRACTED = "memory.extracted"
MEMORY_SKIPPED = "memory.skipped"
MEMORY_FAILED = "memory.failed"
DECAY_UPDATED = "decay.updated"
DECAY_PRUNED = "decay.pruned"
DECAY_TENANT_FAILED = "decay.tenant_failed"
DECAY_LAST_TICK_MS = "decay.last_tick_ms"

# (name, sorted tag pairs)
Series = tuple[str, tuple[tuple[str, str], ...]]


def series(name: str, tags: dict[str, Any] | None = None) -> Series:
    """Canonical key for a metric name and its tags."""
    pairs = sorted((str(k), str(v)) for k, v in (tags or {}).items())
    return name, tuple(pairs)


def format_series(key: Series) -> str:
    name, pairs = key
    if not pairs:
        return name
    return name + "{" + ",".join(f"{k}={v}" for k, v in pairs) + "}"


class MetricsSink:
    """Thread-safe counter and gauge store."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._counters: Counter[Series] = Counter()
        self._gauges: dict[Series, float] = {}

    def incr(self, name: str, count: int = 1, tags: dict[str, Any] | None = None) -> None:
        with self._lock:
            self._counters[series(name, tags)] += count

    def set_gauge(self, name: str, value: float, tags: dict[str, Any] | None = None) -> None:
        with self._lock:
            self._gauges[series(name, tags)] = value

    def counter(self, name: str, tags: dict[str, Any] | None = None) -> int:
        """Value of one tagged counter series (0 if never incremented)."""
        with self._lock:
            return self._counters.get(series(name, tags), 0)

    def total(self, name: str) -> int:
        """Sum of a counter across all of its tag combinations."""
        with self._lock:
            return sum(v for (n, _), v in self._counters.items() if n == name)

    def gauge(self, name: str, tags: dict[str, Any] | None = None) -> float | None:
        with self._lock:
            return self._gauges.get(series(name, tags))

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._gauges.clear()

    def snapshot(self) -> dict[str, dict[str, float]]:
        with self._lock:
            return {
                "counters": {format_series(k): v for k, v in self._counters.items()},
                "gauges": {format_series(k): v for k, v in self._gauges.items()},
            }


_metrics: MetricsSink | None = None


def get_metrics() -> MetricsSink:
    """Get the process-wide metrics sink."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsSink()
    return _metrics
