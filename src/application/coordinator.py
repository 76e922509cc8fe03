"""Bounded-parallel dispatch of jobs."""

import asyncio
from typing import Awaitable, Callable, Generic, Iterable, List, Optional, TypeVar

from shared.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class ConcurrencyCoordinator(Generic[T, R]):
    """
    Runs a worker over items with at most max_parallel in flight.

    Items beyond the bound wait for a free slot. Once the cancel event is
    set, items that have not yet taken a slot are handed to the skipped
    callback instead of the worker. Results are collected in completion
    order.
    """

    def __init__(self, max_parallel: int, cancel_event: Optional[asyncio.Event] = None):
        if max_parallel < 1:
            raise ValueError(f"max_parallel must be at least 1, got {max_parallel}")
        self.max_parallel = max_parallel
        self.cancel_event = cancel_event

    async def run(
        self,
        items: Iterable[T],
        worker: Callable[[T], Awaitable[R]],
        skipped: Callable[[T], R],
        on_result: Optional[Callable[[R], None]] = None
    ) -> List[R]:
        """
        Dispatch every item and wait for all of them.

        Args:
            items: Items to process
            worker: Coroutine function run once per dispatched item
            skipped: Builds the result of an item not dispatched due to cancellation
            on_result: Called with each result as it is collected

        Returns:
            One result per item, in completion order
        """
        cancel_event = self.cancel_event or asyncio.Event()
        slots = asyncio.Semaphore(self.max_parallel)
        results_lock = asyncio.Lock()
        results: List[R] = []

        async def collect(result: R) -> None:
            async with results_lock:
                results.append(result)
            if on_result is not None:
                on_result(result)

        async def dispatch(item: T) -> None:
            async with slots:
                if cancel_event.is_set():
                    result = skipped(item)
                else:
                    result = await worker(item)
            await collect(result)

        tasks = [asyncio.ensure_future(dispatch(item)) for item in items]
        if not tasks:
            return results

        try:
            await asyncio.gather(*tasks)
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()

        return results
