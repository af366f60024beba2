"""
Adaptive Slots Module

Counting gate for in-flight scrapes whose ceiling is re-read on every
acquire, so it follows the throttle as severity moves.
"""

import asyncio
from typing import Awaitable, Callable


class AdaptiveSlots:
    """
    Counting semaphore with a dynamic limit.

    Waiters sleep on a condition and are woken on each release; they re-read
    the limit before claiming a slot.

    Example:
        slots = AdaptiveSlots(throttle.recommended_concurrency)
        async with slots:
            await scrape()
    """

    def __init__(self, limit: Callable[[], Awaitable[int]]):
        """
        Initialize the gate.

        Args:
            limit: Async callable returning the current ceiling
        """
        self._limit = limit
        self._active = 0
        self._waiting = 0
        self._condition = asyncio.Condition()

    @property
    def active(self) -> int:
        """Slots currently held."""
        return self._active

    @property
    def waiting(self) -> int:
        """Tasks blocked in acquire()."""
        return self._waiting

    def try_claim(self, limit: int) -> bool:
        """
        Claim a slot without waiting.

        Args:
            limit: Ceiling to check against

        Returns:
            True if a slot was claimed
        """
        if self._active < limit:
            self._active += 1
            return True
        return False

    async def acquire(self) -> None:
        """Wait until a slot is free under the current ceiling, then claim it."""
        async with self._condition:
            self._waiting += 1
            try:
                while True:
                    limit = await self._limit()
                    if self.try_claim(limit):
                        return
                    await self._condition.wait()
            finally:
                self._waiting -= 1

    async def release(self) -> None:
        """Free a slot and wake waiters."""
        async with self._condition:
            self._active -= 1
            self._condition.notify_all()

    async def __aenter__(self) -> "AdaptiveSlots":
        await self.acquire()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.release()
