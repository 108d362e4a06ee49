"""Metrics collection for resolver cache behavior."""

from abc import ABC, abstractmethod
from collections import Counter, defaultdict
from typing import Any

import structlog

logger = structlog.get_logger(__name__)


class MetricsBackend(ABC):
    """Abstract base class for metrics backends."""

    @abstractmethod
    def increment(self, name: str, value: int = 1, tags: dict[str, str] | None = None) -> None:
        pass

    @abstractmethod
    def timing(self, name: str, value: float, tags: dict[str, str] | None = None) -> None:
        pass


class LoggerBackend(MetricsBackend):
    """
    Simple in-memory metrics backend that aggregates stats for logging.
    """

    def __init__(self) -> None:
        self.counters: Counter[str] = Counter()
        self.timings: dict[str, list[float]] = defaultdict(list)

    def increment(self, name: str, value: int = 1, tags: dict[str, str] | None = None) -> None:
        """Increment a counter."""
        self.counters[self._format_key(name, tags)] += value

    def timing(self, name: str, value: float, tags: dict[str, str] | None = None) -> None:
        """Record a timing."""
        self.timings[self._format_key(name, tags)].append(value)

    def _format_key(self, name: str, tags: dict[str, str] | None) -> str:
        if not tags:
            return name
        tag_str = ",".join(f"{k}={v}" for k, v in sorted(tags.items()))
        return f"{name}[{tag_str}]"

    def get_summary(self) -> dict[str, Any]:
        """Return a summary of collected metrics."""
        summary: dict[str, Any] = {"counters": dict(self.counters), "timings": {}}

        for name, values in self.timings.items():
            if values:
                summary["timings"][name] = {
                    "count": len(values),
                    "avg": sum(values) / len(values),
                    "min": min(values),
                    "max": max(values),
                }
        return summary


class MetricsCollector:
    """
    Central collector for resolver metrics.
    """

    def __init__(self, backend: str = "logger") -> None:
        """
        Initialize Metrics Collector.

        Args:
            backend: Backend type to use. Only "logger" is supported.
        """
        if backend != "logger":
            logger.warning("Unknown metrics backend, defaulting to 'logger'", backend=backend)
        self.backend: MetricsBackend = LoggerBackend()

    def count_batch(self, kind: str, rows: int) -> None:
        """Record one batch load and the number of rows it cached."""
        self.backend.increment("referencer_batch_total", tags={"kind": kind})
        self.backend.increment("referencer_cached_rows_total", value=rows, tags={"kind": kind})

    def count_lookup(self, kind: str, found: bool) -> None:
        """Record a lookup outcome."""
        self.backend.increment(
            "referencer_lookup_total",
            tags={"kind": kind, "result": "hit" if found else "miss"},
        )

    def record_batch_latency(self, kind: str, duration_ms: float) -> None:
        """Record how long a batch load took."""
        self.backend.timing("referencer_batch_duration_ms", duration_ms, tags={"kind": kind})

    def get_summary(self) -> dict[str, Any]:
        """Get summary from backend if supported."""
        if isinstance(self.backend, LoggerBackend):
            return self.backend.get_summary()
        return {}
