"""Tests for the bounded-concurrency limiter."""

import asyncio

import pytest

from imgpress.utils.concurrency import ConcurrencyLimiter, run_limited


class TestConcurrencyLimiter:
    """Tests for ConcurrencyLimiter.run."""

    @pytest.mark.asyncio
    async def test_results_in_input_order(self):
        """Later items finishing first does not reorder results."""

        async def worker(item: int, index: int) -> str:
            await asyncio.sleep(0.001 * (5 - item))
            return f"{index}:{item}"

        results = await ConcurrencyLimiter(2).run([0, 1, 2, 3, 4], worker)

        assert results == ["0:0", "1:1", "2:2", "3:3", "4:4"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("limit", [1, 2, 4, 10])
    async def test_peak_in_flight_bounded(self, limit):
        active = 0
        observed = 0

        async def worker(item: int, index: int) -> int:
            nonlocal active, observed
            active += 1
            observed = max(observed, active)
            await asyncio.sleep(0.001)
            active -= 1
            return item

        limiter = ConcurrencyLimiter(limit)
        results = await limiter.run(list(range(8)), worker)

        assert results == list(range(8))
        assert observed <= limit
        assert limiter.peak_in_flight == observed
        assert limiter.completed == 8

    @pytest.mark.asyncio
    async def test_limit_saturated(self):
        """With enough slow items every slot gets used."""

        async def worker(item: int, index: int) -> int:
            await asyncio.sleep(0.005)
            return item

        limiter = ConcurrencyLimiter(3)
        await limiter.run(list(range(6)), worker)

        assert limiter.peak_in_flight == 3

    @pytest.mark.asyncio
    async def test_empty_input(self):
        calls = []

        async def worker(item, index):
            calls.append(item)

        assert await ConcurrencyLimiter(4).run([], worker) == []
        assert calls == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("limit", [0, -1])
    async def test_non_positive_limit(self, limit):
        calls = []

        async def worker(item, index):
            calls.append(item)

        assert await ConcurrencyLimiter(limit).run([1, 2, 3], worker) == []
        assert calls == []

    @pytest.mark.asyncio
    async def test_worker_exception_propagates(self):
        started = []

        async def worker(item: int, index: int) -> int:
            started.append(item)
            if item == 1:
                raise ValueError("boom")
            await asyncio.sleep(0.05)
            return item

        with pytest.raises(ValueError, match="boom"):
            await ConcurrencyLimiter(2).run([0, 1, 2, 3], worker)

        # Runners were cancelled before claiming the remaining items
        assert 3 not in started

    @pytest.mark.asyncio
    async def test_each_item_processed_once(self):
        seen: list[int] = []

        async def worker(item: int, index: int) -> int:
            seen.append(index)
            await asyncio.sleep(0)
            return item

        await ConcurrencyLimiter(3).run(list(range(10)), worker)

        assert sorted(seen) == list(range(10))


class TestRunLimited:
    @pytest.mark.asyncio
    async def test_functional_form(self):
        async def double(item: int, index: int) -> int:
            return item * 2

        assert await run_limited([1, 2, 3], 2, double) == [2, 4, 6]
