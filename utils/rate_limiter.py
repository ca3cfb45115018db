"""Serialized request queue enforcing a minimum gap between provider calls."""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SerialRequestQueue:
    """
    Process-wide FIFO queue for one external provider.

    Calls are dispatched strictly one at a time in arrival order. Before
    each dispatch the queue waits until at least ``min_gap`` seconds have
    passed since the previous dispatch started. The wait suspends only
    the calling task.

    Args:
        min_gap: Minimum seconds between consecutive dispatches
        name: Provider label used in log messages
        clock: Monotonic time source (seconds)
        sleep: Coroutine used to wait; swap for a fake in tests
    """

    def __init__(
        self,
        min_gap: float,
        name: str = "provider",
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.min_gap = min_gap
        self.name = name
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self.last_call_time: Optional[float] = None

    async def run(self, fn: Callable[[], Awaitable[T]]) -> T:
        """Wait for this call's turn, honour the gap, then run ``fn``."""
        async with self._lock:
            if self.last_call_time is not None:
                wait = self.min_gap - (self._clock() - self.last_call_time)
                if wait > 0:
                    logger.debug(f"[{self.name}] queue wait {wait:.2f}s")
                    await self._sleep(wait)
            self.last_call_time = self._clock()
            return await fn()
