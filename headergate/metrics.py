"""MetricsSink implementations for elapsed-time reporting.

Provides:
  - LoggingMetricsSink — one structlog event per measurement; WARNING above the
                         slow threshold, DEBUG otherwise
  - DurationTracker    — rolling window of the last *window* durations per label
                         (avg, p99), read by the /health endpoint
  - FanOutMetricsSink  — forwards each measurement to several sinks

None of these raise from ``record_duration``: a failing sink must never change
the outcome of the request being timed.
"""

from __future__ import annotations

from collections import deque
from typing import Iterable, Optional

from structlog.typing import FilteringBoundLogger

from headergate.constants import (
    DEFAULT_SLOW_THRESHOLD_MS,
    DEFAULT_TIMING_WINDOW,
    MIN_SAMPLES_FOR_P99,
)
from headergate.stores.protocol import MetricsSink
from headergate.utils.logger import get_logger

logger = get_logger(__name__)


class LoggingMetricsSink:
    """Logs ``Elapsed time`` events with the label and duration."""

    def __init__(
        self,
        slow_threshold_ms: float = DEFAULT_SLOW_THRESHOLD_MS,
        logger: Optional[FilteringBoundLogger] = None,
    ) -> None:
        self.slow_threshold_ms = slow_threshold_ms
        self.logger = logger or get_logger("headergate.timing")

    def record_duration(self, label: str, millis: float) -> None:
        log_method = self.logger.warning if millis > self.slow_threshold_ms else self.logger.debug
        log_method("Elapsed time", label=label, duration_ms=round(millis, 3))


class DurationTracker:
    """Rolling window of durations, kept separately for each label.

    Safe for single-threaded asyncio use (all access from the event loop).

    Usage::

        tracker = DurationTracker()
        tracker.record_duration("inventory", 12.3)
        tracker.avg_ms("inventory")    # rolling average
        tracker.p99_ms("inventory")    # 0.0 until 10+ samples
        tracker.snapshot()             # {"inventory": {"count": 1, ...}}
    """

    def __init__(self, window: int = DEFAULT_TIMING_WINDOW) -> None:
        self._window = window
        self._times: dict[str, deque[float]] = {}

    def record_duration(self, label: str, millis: float) -> None:
        samples = self._times.get(label)
        if samples is None:
            samples = self._times[label] = deque(maxlen=self._window)
        samples.append(millis)

    @property
    def labels(self) -> list[str]:
        return sorted(self._times)

    def count(self, label: str) -> int:
        return len(self._times.get(label, ()))

    def last_ms(self, label: str) -> float:
        samples = self._times.get(label)
        return samples[-1] if samples else 0.0

    def avg_ms(self, label: str) -> float:
        samples = self._times.get(label)
        if not samples:
            return 0.0
        return sum(samples) / len(samples)

    def p99_ms(self, label: str) -> float:
        """99th percentile; 0.0 when fewer than 10 samples are available."""
        samples = self._times.get(label, ())
        if len(samples) < MIN_SAMPLES_FOR_P99:
            return 0.0
        ordered = sorted(samples)
        # floor index so we never go out-of-bounds
        idx = max(0, int(len(ordered) * 0.99) - 1)
        return ordered[idx]

    def snapshot(self) -> dict[str, dict[str, float]]:
        return {
            label: {
                "count": self.count(label),
                "avg_ms": round(self.avg_ms(label), 3),
                "p99_ms": round(self.p99_ms(label), 3),
            }
            for label in self.labels
        }


class FanOutMetricsSink:
    """Forwards each measurement to every wrapped sink, isolating their failures."""

    def __init__(self, sinks: Iterable[MetricsSink]) -> None:
        self.sinks = list(sinks)

    def record_duration(self, label: str, millis: float) -> None:
        for sink in self.sinks:
            try:
                sink.record_duration(label, millis)
            except Exception as exc:  # noqa: BLE001
                logger.warning(
                    "Metrics sink failed",
                    sink=type(sink).__name__,
                    label=label,
                    error=str(exc),
                )


# ─── Protocol compliance assertion ────────────────────────────────────────────
assert isinstance(DurationTracker(), MetricsSink), (
    "DurationTracker does not satisfy MetricsSink protocol"
)
