"""HeaderGatedHandler: guard chain + body strategy, decided in two phases.

Phase 1, ``decide(header)``, sees only the request headers. It runs the guard
chain; the first ``Deny`` is returned as the terminal ``Result``. When every
guard allowed, the caller's build function receives the accumulated context
and returns the ``BodyConsumer`` for the request (or, for actions that need no
body at all, a ``Result`` directly). The consumer's header precheck runs last.

Phase 2, ``consumer.consume(body)``, is driven by the transport once the body
stream is available. It is never reached when phase 1 returned a ``Result``,
so the body of a denied request is never read.

Usage::

    @gated(can_edit_user(store, user_id))
    def fetch_user(principal):
        return no_body(lambda: Result.ok())

    result = await fetch_user.run(header, body)
"""

from __future__ import annotations

import inspect
from typing import Any, Callable, Generic, Optional, Protocol, TypeVar, Union, runtime_checkable

from headergate.body import BodyConsumer, BodyStream
from headergate.errors import InvalidResultError
from headergate.guards.core import Deny, Guard, allow_all, evaluate
from headergate.models.result import HeaderView, Result
from headergate.utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


@runtime_checkable
class Consumer(Protocol):
    """Anything that can finish a request from its body stream."""

    async def consume(self, body: BodyStream) -> Result:
        ...


Decision = Union[Result, Consumer]
Build = Callable[[Any], Any]


@runtime_checkable
class GatedHandler(Protocol):
    """The two-phase handler interface shared by handlers and decorators."""

    async def decide(self, header: HeaderView) -> Decision:
        ...


async def run_handler(handler: GatedHandler, header: HeaderView, body: BodyStream = None) -> Result:
    """Decide on ``header``; consume ``body`` only when the decision defers to it."""
    decision = await handler.decide(header)
    if isinstance(decision, Result):
        return decision
    return await decision.consume(body)


class HeaderGatedHandler(Generic[T]):
    """Runs ``guard`` and hands its context to ``build``.

    Args:
        guard: Guard chain producing the context ``T``.
        build: ``T -> BodyConsumer | Result`` (sync or async). Chooses the body
               strategy; never called when the guard denied.
        name:  Label used in logs and timing (defaults to ``build.__name__``).
    """

    def __init__(self, guard: Guard[T], build: Build, name: Optional[str] = None) -> None:
        self.guard = guard
        self.build = build
        self.name = name or getattr(build, "__name__", type(build).__name__)

    def __repr__(self) -> str:
        return f"HeaderGatedHandler({self.name!r})"

    async def decide(self, header: HeaderView) -> Decision:
        outcome = await evaluate(self.guard, header)
        if isinstance(outcome, Deny):
            logger.debug(
                "Request denied by guard chain",
                handler=self.name,
                status=outcome.result.status,
                path=header.path,
            )
            return outcome.result

        built = self.build(outcome.value)
        if inspect.isawaitable(built):
            built = await built

        if isinstance(built, Result):
            return built
        if isinstance(built, BodyConsumer):
            refused = built.precheck(header)
            return refused if refused is not None else built
        if isinstance(built, Consumer):
            return built
        raise InvalidResultError(
            f"Handler {self.name!r} build returned {type(built).__name__}, "
            "expected a BodyConsumer or Result"
        )

    async def run(self, header: HeaderView, body: BodyStream = None) -> Result:
        return await run_handler(self, header, body)


def gated(guard: Optional[Guard[Any]] = None, name: Optional[str] = None) -> Callable[[Build], HeaderGatedHandler]:
    """Decorator form: turn a build function into a ``HeaderGatedHandler``.

    Without a guard the handler allows every request (context ``None``).
    """

    def decorator(build: Build) -> HeaderGatedHandler:
        return HeaderGatedHandler(guard if guard is not None else allow_all(), build, name=name)

    return decorator
