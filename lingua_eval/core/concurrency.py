# lingua_eval/core/concurrency.py
import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable, Dict, Iterable, List, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class WorkerPool:
    """Bounded pool for running independent submission pipelines side by side."""

    def __init__(self, max_workers: int = 1):
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        self.max_workers = max_workers
        self._semaphore = asyncio.Semaphore(max_workers)
        self._active = 0
        self._total = 0
        self._failed = 0

    @asynccontextmanager
    async def acquire(self):
        """Slot 획득 컨텍스트 매니저"""
        acquired_at = time.time()
        async with self._semaphore:
            self._active += 1
            self._total += 1
            logger.debug(f"Worker slot acquired. Active: {self._active}/{self.max_workers}")
            try:
                yield
            except Exception:
                self._failed += 1
                raise
            finally:
                self._active -= 1
                duration = time.time() - acquired_at
                logger.debug(f"Worker slot released after {duration:.2f}s. Active: {self._active}")

    async def map(self, func: Callable[[T], Awaitable[R]], items: Iterable[T]) -> List[R]:
        """Run ``func`` over ``items`` with at most ``max_workers`` in flight.

        Results keep the input order. ``func`` is expected to handle its own
        errors; an exception escaping it propagates after the others finish.
        """
        async def _run(item: T) -> R:
            async with self.acquire():
                return await func(item)

        results = await asyncio.gather(*(_run(item) for item in items), return_exceptions=True)
        for res in results:
            if isinstance(res, BaseException):
                raise res
        return list(results)  # type: ignore[arg-type]

    def get_stats(self) -> Dict[str, Any]:
        return {
            "max_workers": self.max_workers,
            "active": self._active,
            "total": self._total,
            "failed": self._failed,
        }


async def run_with_timeout(coro: Awaitable[T], timeout: float | None, *, name: str = "call") -> T:
    """Await ``coro`` bounded by ``timeout`` seconds (``None`` disables the bound)."""
    if timeout is None or timeout <= 0:
        return await coro
    try:
        return await asyncio.wait_for(coro, timeout=timeout)
    except asyncio.TimeoutError:
        logger.error(f"{name} timed out after {timeout}s")
        raise
