"""Unit tests for headergate/guards/core.py — outcomes, evaluate, bind, chain.

Verifies:
  - a Deny at layer i means layers i+1..n are never evaluated
  - bind is associative (same stop point, same outcome)
  - sync and async guards mix in one chain
  - guards returning a non-outcome raise InvalidOutcomeError
"""

from __future__ import annotations

import pytest

from headergate.errors import InvalidOutcomeError
from headergate.guards.core import Allow, Deny, allow_all, bind, chain, deny_with, evaluate, pure
from headergate.models.result import Result
from tests.helpers import CountingGuard, make_header

pytestmark = pytest.mark.asyncio

DENIED = Result.forbidden("nope\n")


class TestOutcomes:
    def test_deny_requires_result(self) -> None:
        with pytest.raises(InvalidOutcomeError):
            Deny("not a result")  # type: ignore[arg-type]

    def test_allow_carries_value(self) -> None:
        assert Allow("token").value == "token"


class TestEvaluate:
    async def test_sync_guard(self) -> None:
        outcome = await evaluate(pure(3), make_header())
        assert outcome == Allow(3)

    async def test_async_guard(self) -> None:
        async def guard(header):
            return Allow(header.method)

        outcome = await evaluate(guard, make_header(method="delete"))
        assert outcome == Allow("DELETE")

    async def test_non_outcome_raises(self) -> None:
        with pytest.raises(InvalidOutcomeError):
            await evaluate(lambda header: "yes", make_header())

    async def test_allow_all_gives_none(self) -> None:
        assert await evaluate(allow_all(), make_header()) == Allow(None)


class TestBind:
    async def test_allow_threads_value_to_next(self) -> None:
        guard = bind(pure(2), lambda n: pure(n * 10))
        assert await evaluate(guard, make_header()) == Allow(20)

    async def test_deny_short_circuits(self) -> None:
        inner = CountingGuard(Allow("never"))
        next_calls = []

        def next_(value):
            next_calls.append(value)
            return inner

        guard = bind(deny_with(DENIED), next_)
        outcome = await evaluate(guard, make_header())

        assert outcome == Deny(DENIED)
        assert next_calls == []
        assert inner.calls == 0

    async def test_inner_deny_is_returned_unchanged(self) -> None:
        guard = bind(pure("token"), lambda token: deny_with(DENIED))
        outcome = await evaluate(guard, make_header())
        assert isinstance(outcome, Deny)
        assert outcome.result is DENIED

    async def test_mixed_sync_and_async(self) -> None:
        def next_(token):
            async def guard(header):
                return Allow(f"principal-for-{token}")

            return guard

        outcome = await evaluate(bind(pure("abc"), next_), make_header())
        assert outcome == Allow("principal-for-abc")

    async def test_guard_sees_same_header(self) -> None:
        seen = []

        def record(header):
            seen.append(header)
            return Allow(None)

        header = make_header(token="t")
        await evaluate(bind(record, lambda _: record), header)
        assert seen == [header, header]


class TestChain:
    async def test_stops_at_first_denial_with_call_counts(self) -> None:
        g1 = CountingGuard(Allow(1))
        g2 = CountingGuard(Deny(DENIED))
        g3 = CountingGuard(Allow(3))
        g4 = CountingGuard(Allow(4))

        guard = chain(g1, lambda _: g2, lambda _: g3, lambda _: g4)
        outcome = await evaluate(guard, make_header())

        assert outcome == Deny(DENIED)
        assert (g1.calls, g2.calls, g3.calls, g4.calls) == (1, 1, 0, 0)

    async def test_all_allow_returns_last_context(self) -> None:
        guard = chain(pure("token"), lambda t: pure((t, "principal")), lambda p: pure((*p, "resource")))
        assert await evaluate(guard, make_header()) == Allow(("token", "principal", "resource"))

    async def test_chain_of_one(self) -> None:
        g = CountingGuard(Allow("x"))
        assert await evaluate(chain(g), make_header()) == Allow("x")
        assert g.calls == 1


class TestAssociativity:
    @pytest.mark.parametrize("deny_at", [None, 0, 1, 2])
    async def test_left_and_right_nesting_agree(self, deny_at) -> None:
        def layer(index: int):
            def step(value):
                if index == deny_at:
                    return deny_with(Result.forbidden(f"layer {index}\n"))
                return pure((value or ()) + (index,))

            return step

        def counted():
            calls: list[int] = []

            def wrap(step, index):
                def wrapped(value):
                    calls.append(index)
                    return step(value)

                return wrapped

            return calls, [wrap(layer(i), i) for i in range(3)]

        left_calls, (f, g, h) = counted()
        left = bind(bind(f(None), g), h)

        right_calls, (f2, g2, h2) = counted()
        right = bind(f2(None), lambda a: bind(g2(a), h2))

        left_outcome = await evaluate(left, make_header())
        right_outcome = await evaluate(right, make_header())

        assert left_outcome == right_outcome
        assert left_calls == right_calls
