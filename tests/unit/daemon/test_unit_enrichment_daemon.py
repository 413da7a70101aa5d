# tests/unit/daemon/test_unit_enrichment_daemon.py — v2
"""Tests for daemon/enrichment_daemon.py — concurrency cap and graceful stop."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from vinenrich.core.status import EnrichmentStatus
from vinenrich.daemon.enrichment_daemon import EnrichmentDaemon

S = EnrichmentStatus


async def _until(predicate, timeout: float = 2.0) -> None:
    async def _poll():
        while not predicate():
            await asyncio.sleep(0.005)

    await asyncio.wait_for(_poll(), timeout=timeout)


def _blocked(adapter) -> asyncio.Event:
    gate = asyncio.Event()
    adapter.blocks["ConfidenceAssessment"] = gate
    return gate


@pytest.fixture
def five_items(item_factory):
    return [item_factory(i) for i in range(1, 6)]


class TestConstruction:
    def test_rejects_zero_concurrency(self, in_memory_repository):
        with pytest.raises(ValueError):
            EnrichmentDaemon(in_memory_repository(), MagicMock(), max_concurrent=0)

    def test_initial_status(self, in_memory_repository):
        daemon = EnrichmentDaemon(in_memory_repository(), MagicMock(), max_concurrent=3)
        assert daemon.get_status() == {
            "is_running": False,
            "processing_count": 0,
            "max_concurrent": 3,
        }


class TestPollOnce:
    @pytest.mark.asyncio
    async def test_claims_up_to_capacity(
        self, in_memory_repository, adapter, make_processor, five_items
    ):
        repo = in_memory_repository(five_items)
        gate = _blocked(adapter)
        daemon = EnrichmentDaemon(repo, make_processor(repo, adapter), max_concurrent=2)

        assert await daemon.poll_once() == 2
        assert daemon.processing_count == 2
        assert repo.processing_now == 2
        # at capacity: nothing further is claimed
        assert await daemon.poll_once() == 0

        gate.set()
        await daemon.wait_idle()

        assert daemon.processing_count == 0
        assert daemon.stats.succeeded == 2
        counts = await repo.count_by_status()
        assert counts["completed_verified"] == 2
        assert counts["pending"] == 3
        assert repo.max_processing == 2

    @pytest.mark.asyncio
    async def test_capacity_frees_after_completion(
        self, in_memory_repository, adapter, make_processor, five_items
    ):
        repo = in_memory_repository(five_items)
        daemon = EnrichmentDaemon(repo, make_processor(repo, adapter), max_concurrent=2)

        assert await daemon.poll_once() == 2
        await daemon.wait_idle()
        assert await daemon.poll_once() == 2
        await daemon.wait_idle()
        assert await daemon.poll_once() == 1
        await daemon.wait_idle()

        assert daemon.stats.processed == 5
        assert (await repo.count_by_status())["completed_verified"] == 5

    @pytest.mark.asyncio
    async def test_counter_released_on_error(self, in_memory_repository, item_factory):
        repo = in_memory_repository([item_factory(1)])
        processor = MagicMock()
        processor.process = AsyncMock(side_effect=RuntimeError("boom"))
        daemon = EnrichmentDaemon(repo, processor, max_concurrent=1)

        assert await daemon.poll_once() == 1
        await daemon.wait_idle()

        assert daemon.processing_count == 0
        assert daemon.stats.processed == 0

    @pytest.mark.asyncio
    async def test_repository_error_skips_cycle(self, in_memory_repository):
        repo = in_memory_repository()
        repo.get_pending = AsyncMock(side_effect=RuntimeError("db locked"))
        daemon = EnrichmentDaemon(repo, MagicMock())
        assert await daemon.poll_once() == 0

    @pytest.mark.asyncio
    async def test_lost_claim_not_counted(self, in_memory_repository, item_factory):
        repo = in_memory_repository([item_factory(1)])
        repo.claim = AsyncMock(return_value=False)
        processor = MagicMock()
        processor.process = AsyncMock()
        daemon = EnrichmentDaemon(repo, processor)

        assert await daemon.poll_once() == 0
        assert daemon.processing_count == 0
        processor.process.assert_not_called()

    @pytest.mark.asyncio
    async def test_no_claims_after_stop(
        self, in_memory_repository, adapter, make_processor, five_items
    ):
        repo = in_memory_repository(five_items)
        daemon = EnrichmentDaemon(repo, make_processor(repo, adapter))
        daemon.stop()
        assert await daemon.poll_once() == 0
        assert (await repo.count_by_status())["pending"] == 5


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_is_idempotent(self, in_memory_repository, adapter, make_processor):
        repo = in_memory_repository()
        daemon = EnrichmentDaemon(
            repo, make_processor(repo, adapter), poll_interval_s=0.01, initial_delay_s=0
        )
        daemon.start()
        task = daemon._loop_task
        daemon.start()
        assert daemon._loop_task is task
        assert daemon.get_status()["is_running"] is True

        daemon.stop()
        daemon.stop()
        await daemon.wait_stopped()
        assert daemon.is_running is False

    @pytest.mark.asyncio
    async def test_loop_drains_queue(
        self, in_memory_repository, adapter, make_processor, five_items
    ):
        repo = in_memory_repository(five_items)
        daemon = EnrichmentDaemon(
            repo, make_processor(repo, adapter),
            max_concurrent=2, poll_interval_s=0.01, initial_delay_s=0,
        )
        daemon.start()
        await _until(lambda: daemon.stats.processed == 5)
        daemon.stop()
        await daemon.wait_stopped()

        assert (await repo.count_by_status())["completed_verified"] == 5
        assert repo.max_processing <= 2

    @pytest.mark.asyncio
    async def test_stop_lets_in_flight_items_finish(
        self, in_memory_repository, adapter, make_processor, five_items
    ):
        repo = in_memory_repository(five_items)
        gate = _blocked(adapter)
        daemon = EnrichmentDaemon(
            repo, make_processor(repo, adapter),
            max_concurrent=2, poll_interval_s=0.01, initial_delay_s=0,
        )
        daemon.start()
        await _until(lambda: daemon.processing_count == 2)

        daemon.stop()
        await asyncio.sleep(0.05)
        assert repo.processing_now == 2

        gate.set()
        await daemon.wait_stopped()

        counts = await repo.count_by_status()
        assert counts["completed_verified"] == 2
        assert counts["pending"] == 3
        assert daemon.processing_count == 0
        assert daemon.is_running is False

    @pytest.mark.asyncio
    async def test_stop_during_initial_delay(self, in_memory_repository, item_factory):
        repo = in_memory_repository([item_factory(1)])
        daemon = EnrichmentDaemon(repo, MagicMock(), initial_delay_s=10)
        daemon.start()
        daemon.stop()
        await asyncio.wait_for(daemon.wait_stopped(), timeout=1)
        assert (await repo.get(1)).status is S.PENDING

    @pytest.mark.asyncio
    async def test_restart_after_stop(self, in_memory_repository, adapter, make_processor, item_factory):
        repo = in_memory_repository([item_factory(1)])
        daemon = EnrichmentDaemon(
            repo, make_processor(repo, adapter), poll_interval_s=0.01, initial_delay_s=0
        )
        daemon.start()
        daemon.stop()
        await daemon.wait_stopped()

        daemon.start()
        await _until(lambda: daemon.stats.processed == 1)
        daemon.stop()
        await daemon.wait_stopped()
        assert (await repo.get(1)).status is S.COMPLETED_VERIFIED

    @pytest.mark.asyncio
    async def test_start_right_after_stop_keeps_running(
        self, in_memory_repository, adapter, make_processor, item_factory
    ):
        repo = in_memory_repository([item_factory(1)])
        daemon = EnrichmentDaemon(
            repo, make_processor(repo, adapter), poll_interval_s=0.01, initial_delay_s=0.05
        )
        daemon.start()
        await asyncio.sleep(0)
        stopped_loop = daemon._loop_task
        daemon.stop()
        daemon.start()

        assert daemon._loop_task is not stopped_loop
        await _until(lambda: daemon.stats.processed == 1)
        assert stopped_loop.done()
        assert daemon.get_status()["is_running"] is True

        daemon.stop()
        await daemon.wait_stopped()
        assert daemon.is_running is False
        assert (await repo.get(1)).status is S.COMPLETED_VERIFIED
