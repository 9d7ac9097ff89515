"""Bounded-concurrency mapping for batch processing."""

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from typing import Generic, TypeVar

from imgpress.utils.logging import get_logger

log = get_logger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class ConcurrencyLimiter(Generic[T, R]):
    """Runs an async worker over a sequence with at most ``limit`` in flight.

    Runners pull the next unclaimed index from a shared counter, so a slow
    item never holds up a free slot. Results come back in input order.

    The limiter does not catch or retry: if a worker raises, the other
    runners are cancelled and the exception propagates out of :meth:`run`.
    """

    def __init__(self, limit: int) -> None:
        self.limit = limit
        self.peak_in_flight = 0
        self.completed = 0
        self._in_flight = 0

    async def run(
        self,
        items: Sequence[T],
        worker: Callable[[T, int], Awaitable[R]],
    ) -> list[R]:
        """Apply ``worker(item, index)`` to every item.

        Args:
            items: Items to process
            worker: Async callable receiving the item and its index

        Returns:
            One result per item, in input order; ``[]`` when ``limit <= 0``
            or ``items`` is empty
        """
        self.peak_in_flight = 0
        self.completed = 0
        self._in_flight = 0

        count = len(items)
        if self.limit <= 0 or count == 0:
            return []

        results: list[R | None] = [None] * count
        next_index = 0

        async def runner() -> None:
            nonlocal next_index
            while next_index < count:
                index = next_index
                next_index += 1

                self._in_flight += 1
                self.peak_in_flight = max(self.peak_in_flight, self._in_flight)
                try:
                    results[index] = await worker(items[index], index)
                finally:
                    self._in_flight -= 1
                self.completed += 1

        runner_count = min(self.limit, count)
        log.debug("Starting runners", runners=runner_count, items=count)

        tasks = [asyncio.create_task(runner()) for _ in range(runner_count)]
        try:
            await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        return results  # type: ignore[return-value]


async def run_limited(
    items: Sequence[T],
    limit: int,
    worker: Callable[[T, int], Awaitable[R]],
) -> list[R]:
    """Functional form of :class:`ConcurrencyLimiter`."""
    return await ConcurrencyLimiter(limit).run(items, worker)
