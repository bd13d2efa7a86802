"""
Unit tests for concurrency.py
"""
import asyncio

import pytest

from lingua_eval.core.concurrency import WorkerPool, run_with_timeout


@pytest.mark.unit
class TestWorkerPool:
    def test_invalid_size(self):
        with pytest.raises(ValueError):
            WorkerPool(max_workers=0)

    @pytest.mark.asyncio
    async def test_map_keeps_order_and_bounds_concurrency(self):
        pool = WorkerPool(max_workers=2)
        in_flight = 0
        peak = 0

        async def work(item: int) -> int:
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            # later items finish first
            await asyncio.sleep(0.01 * (5 - item))
            in_flight -= 1
            return item * 10

        assert await pool.map(work, range(5)) == [0, 10, 20, 30, 40]
        assert peak == 2
        stats = pool.get_stats()
        assert stats["total"] == 5
        assert stats["active"] == 0

    @pytest.mark.asyncio
    async def test_map_propagates_escaped_errors(self):
        pool = WorkerPool(max_workers=2)

        async def work(item: int) -> int:
            if item == 1:
                raise RuntimeError("boom")
            return item

        with pytest.raises(RuntimeError):
            await pool.map(work, range(3))
        assert pool.get_stats()["failed"] == 1


@pytest.mark.unit
class TestRunWithTimeout:
    @pytest.mark.asyncio
    async def test_within_bound(self):
        async def quick():
            return "ok"

        assert await run_with_timeout(quick(), 1.0, name="quick") == "ok"

    @pytest.mark.asyncio
    async def test_times_out(self):
        with pytest.raises(asyncio.TimeoutError):
            await run_with_timeout(asyncio.sleep(1.0), 0.01, name="slow")

    @pytest.mark.asyncio
    async def test_no_bound(self):
        async def quick():
            return 3

        assert await run_with_timeout(quick(), None) == 3
