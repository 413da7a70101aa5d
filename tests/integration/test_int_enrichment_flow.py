# tests/integration/test_int_enrichment_flow.py — v1
"""End-to-end enrichment over SQLite items and a persistent SQLite cache.

Only the provider adapter is scripted; repository, cache, generation
client, gate, pipeline, fallback, processor and daemon are the real ones.
"""

from __future__ import annotations

import asyncio

import pytest

from vinenrich.cache.memory_cache import LRUCache
from vinenrich.cache.sqlite_store import SqliteCacheStore
from vinenrich.cache.tiered_cache import TieredCache
from vinenrich.core.models import ResultSource
from vinenrich.core.status import EnrichmentStatus
from vinenrich.daemon.enrichment_daemon import EnrichmentDaemon
from vinenrich.pipeline.processor import run_batch
from vinenrich.storage.sqlite_repository import SqliteItemRepository

S = EnrichmentStatus


@pytest.fixture
def paths(tmp_path):
    return {"items": tmp_path / "items.db", "cache": tmp_path / "cache" / "ai_cache.db"}


def _cache(paths) -> TieredCache:
    return TieredCache(memory=LRUCache(capacity=50), store=SqliteCacheStore(paths["cache"]))


async def _seed(repo: SqliteItemRepository) -> None:
    await repo.add_item(
        wine_name="Château Margaux", producer="Château Margaux", vintage="2015",
        region="Margaux", country="France", varietals="Cabernet Sauvignon, Merlot",
        wine_type="Red",
    )
    await repo.add_item(
        wine_name="Cuvée Mystère", producer="Unknown", vintage="1975", wine_type="Red",
    )


class TestBatchFlow:
    @pytest.mark.asyncio
    async def test_verified_and_theoretical(
        self, paths, payloads, low_confidence, scripted, make_processor
    ):
        payloads["ConfidenceAssessment"] = [payloads["ConfidenceAssessment"], low_confidence]
        adapter = scripted(payloads)
        repo = SqliteItemRepository(paths["items"])
        cache = _cache(paths)
        try:
            await _seed(repo)
            processor = make_processor(repo, adapter, cache=cache)
            report = await run_batch(repo, processor, limit=10, max_concurrent=1)

            assert report.processed == 2
            assert report.succeeded == 2
            assert report.theoretical == 1
            assert report.rejected == 1

            verified = await repo.get(1)
            assert verified.status is S.COMPLETED_VERIFIED
            assert verified.source is ResultSource.VERIFIED
            assert 85 <= verified.wine_rating <= 100
            assert verified.started_at is not None
            assert verified.completed_at is not None

            theoretical = await repo.get(2)
            assert theoretical.status is S.COMPLETED_THEORETICAL
            assert theoretical.wine_rating is None
            assert theoretical.food_pairing
            # 1975 is over thirty years before the fixed clock
            fallback_prompt = [c for c in adapter.calls if c["schema"] == "TheoreticalOutput"]
            assert "1975" in fallback_prompt[0]["prompt"]
        finally:
            cache.close()
            repo.close()

    @pytest.mark.asyncio
    async def test_retry_resumes_from_persistent_cache(
        self, paths, payloads, scripted, make_processor
    ):
        good_profile = payloads["DetailedProfileOutput"]
        failing = dict(payloads, DetailedProfileOutput=dict(good_profile, body_description="Thin."))

        # first process: stage 3 output fails validation
        repo = SqliteItemRepository(paths["items"])
        cache = _cache(paths)
        first_adapter = scripted(failing)
        await repo.add_item(
            wine_name="Château Margaux", vintage="2015", region="Margaux",
            country="France", varietals="Cabernet Sauvignon, Merlot", wine_type="Red",
        )
        report = await run_batch(repo, make_processor(repo, first_adapter, cache=cache), limit=5)
        assert report.retried == 1
        assert (await repo.get(1)).status is S.PENDING
        cache.close()
        repo.close()

        # second process: new connections over the same files
        repo = SqliteItemRepository(paths["items"])
        cache = _cache(paths)
        second_adapter = scripted(payloads)
        try:
            report = await run_batch(
                repo, make_processor(repo, second_adapter, cache=cache), limit=5
            )
            assert report.succeeded == 1
            assert second_adapter.schemas == ["DetailedProfileOutput", "ApplicationOutput"]
            item = await repo.get(1)
            assert item.status is S.COMPLETED_VERIFIED
            assert item.attempt_count == 2
            assert item.body_description == good_profile["body_description"]
        finally:
            cache.close()
            repo.close()

    @pytest.mark.asyncio
    async def test_attempt_limit_then_reset(self, paths, payloads, scripted, make_processor):
        payloads["InitialResearchOutput"] = {}
        adapter = scripted(payloads)
        repo = SqliteItemRepository(paths["items"])
        try:
            await repo.add_item(wine_name="Château Margaux")
            processor = make_processor(repo, adapter, max_item_attempts=2)

            await run_batch(repo, processor, limit=5)
            assert (await repo.get(1)).status is S.PENDING
            await run_batch(repo, processor, limit=5)
            assert (await repo.get(1)).status is S.FAILED

            assert await repo.reset_failed() == 1
            item = await repo.get(1)
            assert item.status is S.PENDING
            assert item.attempt_count == 0
        finally:
            repo.close()


class TestDaemonFlow:
    @pytest.mark.asyncio
    async def test_daemon_drains_sqlite_queue(self, paths, adapter, make_processor):
        repo = SqliteItemRepository(paths["items"])
        cache = _cache(paths)
        try:
            for i in range(4):
                await repo.add_item(
                    wine_name=f"Château Margaux {2010 + i}", vintage=str(2010 + i),
                    region="Margaux", varietals="Cabernet Sauvignon, Merlot",
                )
            daemon = EnrichmentDaemon(
                repo, make_processor(repo, adapter, cache=cache),
                max_concurrent=2, poll_interval_s=0.01, initial_delay_s=0,
            )
            daemon.start()

            async def _drained():
                while daemon.stats.processed < 4:
                    await asyncio.sleep(0.01)

            await asyncio.wait_for(_drained(), timeout=5)
            daemon.stop()
            await daemon.wait_stopped()

            counts = await repo.count_by_status()
            assert counts["completed_verified"] == 4
            assert counts["processing"] == 0
            assert daemon.get_status()["processing_count"] == 0
        finally:
            cache.close()
            repo.close()
