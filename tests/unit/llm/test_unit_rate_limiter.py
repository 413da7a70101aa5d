# tests/unit/llm/test_unit_rate_limiter.py — v1
"""Tests for llm/rate_limiter.py — token bucket with fake time."""

from __future__ import annotations

import pytest

from vinenrich.llm.rate_limiter import AsyncRateLimiter


class FakeTime:
    def __init__(self):
        self.now = 0.0
        self.sleeps: list[float] = []

    def clock(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class TestAsyncRateLimiter:
    @pytest.mark.asyncio
    async def test_first_acquire_is_immediate(self):
        t = FakeTime()
        limiter = AsyncRateLimiter(2.0, clock=t.clock, sleep=t.sleep)
        await limiter.acquire()
        assert t.sleeps == []

    @pytest.mark.asyncio
    async def test_spaces_requests(self):
        t = FakeTime()
        limiter = AsyncRateLimiter(2.0, clock=t.clock, sleep=t.sleep)
        for _ in range(3):
            await limiter.acquire()
        assert t.sleeps == pytest.approx([0.5, 0.5])
        assert t.now == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_burst(self):
        t = FakeTime()
        limiter = AsyncRateLimiter(1.0, burst=3, clock=t.clock, sleep=t.sleep)
        for _ in range(3):
            await limiter.acquire()
        assert t.sleeps == []
        await limiter.acquire()
        assert t.sleeps == pytest.approx([1.0])

    @pytest.mark.asyncio
    async def test_idle_time_refills(self):
        t = FakeTime()
        limiter = AsyncRateLimiter(1.0, clock=t.clock, sleep=t.sleep)
        await limiter.acquire()
        t.now += 5.0
        await limiter.acquire()
        assert t.sleeps == []

    @pytest.mark.asyncio
    async def test_disabled(self):
        t = FakeTime()
        limiter = AsyncRateLimiter(0, clock=t.clock, sleep=t.sleep)
        assert not limiter.enabled
        for _ in range(10):
            await limiter.acquire()
        assert t.sleeps == []
