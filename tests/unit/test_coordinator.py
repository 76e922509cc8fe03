"""Tests for ConcurrencyCoordinator."""

import asyncio

import pytest

from application.coordinator import ConcurrencyCoordinator


class TestConcurrencyCoordinator:
    """Test bounded dispatch and cancellation."""

    def test_bound_never_exceeded(self):
        """At most max_parallel workers run at once."""
        state = {"live": 0, "peak": 0}

        async def worker(item):
            state["live"] += 1
            state["peak"] = max(state["peak"], state["live"])
            await asyncio.sleep(0.01)
            state["live"] -= 1
            return item

        coordinator = ConcurrencyCoordinator(3)
        results = asyncio.run(coordinator.run(range(10), worker, lambda item: None))

        assert sorted(results) == list(range(10))
        assert state["peak"] == 3

    def test_single_slot_is_sequential(self):
        order = []

        async def worker(item):
            order.append(("start", item))
            await asyncio.sleep(0)
            order.append(("end", item))
            return item

        asyncio.run(ConcurrencyCoordinator(1).run(["a", "b"], worker, lambda item: None))

        assert order == [("start", "a"), ("end", "a"), ("start", "b"), ("end", "b")]

    def test_cancelled_items_are_skipped(self):
        """After cancellation, waiting items go to the skipped callback."""
        async def go():
            cancel = asyncio.Event()

            async def worker(item):
                if item == "a":
                    cancel.set()
                await asyncio.sleep(0.01)
                return f"ran {item}"

            coordinator = ConcurrencyCoordinator(1, cancel)
            return await coordinator.run(["a", "b", "c"], worker, lambda item: f"skipped {item}")

        results = asyncio.run(go())

        assert results == ["ran a", "skipped b", "skipped c"]

    def test_on_result_called_per_item(self):
        seen = []

        async def worker(item):
            return item * 2

        asyncio.run(ConcurrencyCoordinator(2).run([1, 2, 3], worker, lambda item: None, on_result=seen.append))

        assert sorted(seen) == [2, 4, 6]

    def test_no_items(self):
        async def worker(item):
            return item

        assert asyncio.run(ConcurrencyCoordinator(2).run([], worker, lambda item: None)) == []

    @pytest.mark.parametrize("value", [0, -1])
    def test_invalid_bound(self, value):
        with pytest.raises(ValueError):
            ConcurrencyCoordinator(value)
