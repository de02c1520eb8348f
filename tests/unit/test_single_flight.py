"""Tests for in-flight request collapsing."""

import asyncio

import pytest

from product_trust.domain.services.single_flight import SingleFlight


class TestSingleFlight:
    """Tests for SingleFlight."""

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_result(self) -> None:
        flights: SingleFlight[str, int] = SingleFlight()
        calls = 0

        async def compute() -> int:
            nonlocal calls
            calls += 1
            await asyncio.sleep(0.02)
            return 42

        results = await asyncio.gather(*(flights.do("k", compute) for _ in range(10)))

        assert results == [42] * 10
        assert calls == 1
        assert len(flights) == 0

    @pytest.mark.asyncio
    async def test_distinct_keys_run_separately(self) -> None:
        flights: SingleFlight[str, str] = SingleFlight()

        async def echo(value: str) -> str:
            await asyncio.sleep(0.01)
            return value

        a, b = await asyncio.gather(
            flights.do("a", lambda: echo("a")),
            flights.do("b", lambda: echo("b")),
        )

        assert (a, b) == ("a", "b")

    @pytest.mark.asyncio
    async def test_error_reaches_every_waiter(self) -> None:
        flights: SingleFlight[str, int] = SingleFlight()

        async def fail() -> int:
            await asyncio.sleep(0.01)
            raise ValueError("broken source")

        results = await asyncio.gather(
            flights.do("k", fail), flights.do("k", fail), return_exceptions=True
        )

        assert all(isinstance(r, ValueError) for r in results)
        assert not flights.in_flight("k")

    @pytest.mark.asyncio
    async def test_one_cancelled_waiter_does_not_cancel_others(self) -> None:
        flights: SingleFlight[str, int] = SingleFlight()

        async def slow() -> int:
            await asyncio.sleep(0.1)
            return 7

        first = asyncio.create_task(flights.do("k", slow))
        second = asyncio.create_task(flights.do("k", slow))
        await asyncio.sleep(0.01)

        first.cancel()

        assert await second == 7
        assert first.cancelled()

    @pytest.mark.asyncio
    async def test_last_waiter_leaving_cancels_work(self) -> None:
        flights: SingleFlight[str, int] = SingleFlight()
        finished = False

        async def slow() -> int:
            nonlocal finished
            await asyncio.sleep(0.1)
            finished = True
            return 1

        task = asyncio.create_task(flights.do("k", slow))
        await asyncio.sleep(0.01)
        assert flights.in_flight("k")

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        await asyncio.sleep(0.15)

        assert not finished
        assert len(flights) == 0
