# src/llm/rate_limiter.py — v1
"""Async token-bucket limiter shared by all calls of one generation client.

Spaces requests out so bursts (e.g. the three sub-phases of stage 2, or
several items starting together) do not trip provider rate limits.
"""

from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable


class AsyncRateLimiter:
    """Allow at most ``max_per_second`` acquisitions per second on average.

    A non-positive rate disables limiting.
    """

    def __init__(
        self,
        max_per_second: float,
        burst: int = 1,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._rate = max_per_second
        self._capacity = float(max(1, burst))
        self._tokens = self._capacity
        self._clock = clock
        self._sleep = sleep
        self._last = clock()
        self._lock = asyncio.Lock()

    @property
    def enabled(self) -> bool:
        return self._rate > 0

    async def acquire(self) -> None:
        """Wait until a token is available, then take it."""
        if not self.enabled:
            return
        async with self._lock:
            while True:
                now = self._clock()
                self._tokens = min(
                    self._capacity, self._tokens + (now - self._last) * self._rate
                )
                self._last = now
                if self._tokens >= 1:
                    self._tokens -= 1
                    return
                await self._sleep((1 - self._tokens) / self._rate)
