"""Guards, guard outcomes and the bind combinator.

A guard is any callable ``HeaderView -> GuardOutcome[T]``. It may be a plain
function or a coroutine function; ``evaluate()`` awaits the outcome only when
it is awaitable, so synchronous and asynchronous guards mix freely in a chain.

An outcome is either ``Allow(value)``, carrying the context the guard derived
(a token, a principal, ...), or ``Deny(result)``, carrying the complete
terminal ``Result`` for the request.

Guards are composed only through ``bind()``::

    chained = bind(has_token(), lambda token: lookup_principal(store, token))

``bind`` evaluates the first guard and, on ``Allow(a)``, evaluates the guard
returned by ``next(a)``. A ``Deny`` is returned unchanged and ``next`` is never
called, so everything nested inside a denying layer is skipped. ``bind`` is
associative: ``bind(bind(g, f), h)`` and ``bind(g, lambda a: bind(f(a), h))``
stop at the same layer and produce the same outcome.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, TypeVar, Union

from headergate.errors import InvalidOutcomeError
from headergate.models.result import HeaderView, Result

A = TypeVar("A")
B = TypeVar("B")
T = TypeVar("T")


@dataclass(frozen=True)
class Allow(Generic[T]):
    """The guard passed; ``value`` is the context handed to inner layers."""

    value: T


@dataclass(frozen=True)
class Deny:
    """The guard refused; ``result`` is the terminal response for the request."""

    result: Result

    def __post_init__(self) -> None:
        if not isinstance(self.result, Result):
            raise InvalidOutcomeError(
                f"Deny requires a Result, got {type(self.result).__name__}"
            )


GuardOutcome = Union[Allow[T], Deny]
Guard = Callable[[HeaderView], Union[GuardOutcome[T], Awaitable[GuardOutcome[T]]]]


async def evaluate(guard: Guard[T], header: HeaderView) -> GuardOutcome[T]:
    """Run ``guard`` against ``header`` and return its outcome.

    Raises:
        InvalidOutcomeError: If the guard returns neither ``Allow`` nor ``Deny``.
    """
    outcome: Any = guard(header)
    if inspect.isawaitable(outcome):
        outcome = await outcome
    if not isinstance(outcome, (Allow, Deny)):
        raise InvalidOutcomeError(
            f"Guard {_name(guard)} returned {type(outcome).__name__}, expected Allow or Deny"
        )
    return outcome


def bind(guard: Guard[A], next_: Callable[[A], Guard[B]]) -> Guard[B]:
    """Sequence ``guard`` with the guard that ``next_`` builds from its value."""

    async def bound(header: HeaderView) -> GuardOutcome[B]:
        outcome = await evaluate(guard, header)
        if isinstance(outcome, Deny):
            return outcome
        return await evaluate(next_(outcome.value), header)

    bound.__qualname__ = f"bind({_name(guard)})"
    return bound


def chain(first: Guard[Any], *steps: Callable[[Any], Guard[Any]]) -> Guard[Any]:
    """Left fold of ``bind``: ``chain(g, f, h) == bind(bind(g, f), h)``."""
    guard = first
    for step in steps:
        guard = bind(guard, step)
    return guard


def pure(value: T) -> Guard[T]:
    """A guard that always allows with ``value``."""

    def allow(header: HeaderView) -> GuardOutcome[T]:
        return Allow(value)

    return allow


def deny_with(result: Result) -> Guard[Any]:
    """A guard that always denies with ``result``."""
    denial = Deny(result)

    def deny(header: HeaderView) -> GuardOutcome[Any]:
        return denial

    return deny


def allow_all() -> Guard[None]:
    """The empty chain: allows every request with no context."""
    return pure(None)


def _name(fn: Callable[..., Any]) -> str:
    return getattr(fn, "__qualname__", None) or repr(fn)
