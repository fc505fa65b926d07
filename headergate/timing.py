"""TimeElapsed: wall-clock timing around any gated handler.

The clock starts when ``decide`` is called (header arrival) and stops when the
final ``Result`` exists: immediately for a denial, or when the deferred body
consumer finishes, however long reading the body and running the action took.
The elapsed milliseconds go to a ``MetricsSink``; the ``Result`` itself is
passed through untouched.

Timing composes with any handler, including another ``TimeElapsed``::

    timed = TimeElapsed(fetch_user, sink=tracker)
    # or
    @time_elapsed(sink=tracker)
    @gated(has_token())
    def with_token(token): ...
"""

from __future__ import annotations

import time
from typing import Callable, Optional

from headergate.body import BodyStream
from headergate.handler import Consumer, Decision, GatedHandler, run_handler
from headergate.metrics import LoggingMetricsSink
from headergate.models.result import HeaderView, Result
from headergate.stores.protocol import MetricsSink
from headergate.utils.logger import get_logger

logger = get_logger(__name__)

Clock = Callable[[], float]


class TimeElapsed:
    """Wraps ``handler`` and reports header-to-result duration to ``sink``.

    Args:
        handler: Any object with ``async decide(header)``.
        sink:    Receives ``record_duration(label, millis)``; defaults to a
                 ``LoggingMetricsSink``.
        label:   Measurement label; defaults to the wrapped handler's name.
        clock:   Seconds clock, ``time.perf_counter`` by default.
    """

    def __init__(
        self,
        handler: GatedHandler,
        sink: Optional[MetricsSink] = None,
        label: Optional[str] = None,
        clock: Clock = time.perf_counter,
    ) -> None:
        self.handler = handler
        self.sink = sink if sink is not None else LoggingMetricsSink()
        self.name = label or getattr(handler, "name", type(handler).__name__)
        self.clock = clock

    def __repr__(self) -> str:
        return f"TimeElapsed({self.handler!r})"

    def _report(self, start: float) -> float:
        elapsed_ms = (self.clock() - start) * 1000
        try:
            self.sink.record_duration(self.name, elapsed_ms)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Metrics sink failed", label=self.name, error=str(exc))
        return elapsed_ms

    async def decide(self, header: HeaderView) -> Decision:
        start = self.clock()
        try:
            decision = await self.handler.decide(header)
        except Exception:
            self._report(start)
            raise
        if isinstance(decision, Result):
            self._report(start)
            return decision
        return _TimedConsumer(decision, start, self)

    async def run(self, header: HeaderView, body: BodyStream = None) -> Result:
        return await run_handler(self, header, body)


class _TimedConsumer:
    """Delegates to the wrapped consumer and stops the clock when it finishes."""

    def __init__(self, inner: Consumer, start: float, timer: TimeElapsed) -> None:
        self.inner = inner
        self.start = start
        self.timer = timer

    @property
    def strategy(self):
        return getattr(self.inner, "strategy", None)

    async def consume(self, body: BodyStream) -> Result:
        try:
            return await self.inner.consume(body)
        finally:
            self.timer._report(self.start)


def time_elapsed(
    sink: Optional[MetricsSink] = None,
    label: Optional[str] = None,
) -> Callable[[GatedHandler], TimeElapsed]:
    """Decorator form of ``TimeElapsed``."""

    def decorator(handler: GatedHandler) -> TimeElapsed:
        return TimeElapsed(handler, sink=sink, label=label)

    return decorator
