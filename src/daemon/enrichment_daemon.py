# src/daemon/enrichment_daemon.py — v2
"""Polling daemon: claim pending items and process them under a concurrency cap.

One loop task polls every ``poll_interval_s``; each claimed item runs as its
own task. Capacity is ``max_concurrent - processing_count``. The counter is
incremented when the claim succeeds, before the task exists, and released
in the task's ``finally``. ``stop()`` only halts future claims; in-flight
items run to completion.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from vinenrich.core.models import BatchReport, WorkItem
from vinenrich.pipeline.processor import ItemProcessor
from vinenrich.storage.base_repository import BaseItemRepository

logger = logging.getLogger(__name__)


class EnrichmentDaemon:
    """Background enrichment worker.

    Args:
        repository: Source of pending items; ``claim`` must be atomic.
        processor: Runs gate + pipeline/fallback for one claimed item.
        max_concurrent: Upper bound on items processing at once.
        poll_interval_s: Seconds between claim cycles.
        initial_delay_s: Delay before the first cycle after ``start()``.
    """

    def __init__(
        self,
        repository: BaseItemRepository,
        processor: ItemProcessor,
        max_concurrent: int = 2,
        poll_interval_s: float = 5.0,
        initial_delay_s: float = 1.0,
    ) -> None:
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be >= 1")
        self._repository = repository
        self._processor = processor
        self._max_concurrent = max_concurrent
        self._poll_interval_s = poll_interval_s
        self._initial_delay_s = initial_delay_s

        self._processing_count = 0
        self._accepting = True
        self._loop_task: asyncio.Task[None] | None = None
        self._stop_event: asyncio.Event | None = None
        self._item_tasks: set[asyncio.Task[None]] = set()
        # loops told to stop that have not exited yet
        self._retired_loops: set[asyncio.Task[None]] = set()
        self.stats = BatchReport()

    # --- Control surface ---

    @property
    def is_running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    @property
    def processing_count(self) -> int:
        return self._processing_count

    def start(self) -> None:
        """Start polling. Idempotent; must be called inside a running loop."""
        if self.is_running:
            if self._stop_event is not None and not self._stop_event.is_set():
                logger.debug("Enrichment daemon already running")
                return
            # The stopping loop exits on its own event; a fresh loop takes over
            self._retired_loops.add(self._loop_task)
            self._loop_task.add_done_callback(self._retired_loops.discard)
        self._accepting = True
        self._stop_event = asyncio.Event()
        self._loop_task = asyncio.get_running_loop().create_task(
            self._run(self._stop_event), name="enrichment-daemon"
        )
        logger.info(
            "Enrichment daemon started (max_concurrent=%d, interval=%.1fs)",
            self._max_concurrent, self._poll_interval_s,
        )

    def stop(self) -> None:
        """Halt future claims. Idempotent; in-flight items keep running."""
        self._accepting = False
        if self._stop_event is not None and not self._stop_event.is_set():
            self._stop_event.set()
            logger.info(
                "Enrichment daemon stopping, %d item(s) still in flight",
                self._processing_count,
            )

    def get_status(self) -> dict[str, Any]:
        return {
            "is_running": self.is_running,
            "processing_count": self._processing_count,
            "max_concurrent": self._max_concurrent,
        }

    async def wait_idle(self) -> None:
        """Wait for every in-flight item task to finish."""
        while self._item_tasks:
            await asyncio.gather(*list(self._item_tasks), return_exceptions=True)

    async def wait_stopped(self) -> None:
        """Wait for the poll loop to exit and in-flight items to finish."""
        loops = [*self._retired_loops, *([self._loop_task] if self._loop_task else [])]
        if loops:
            await asyncio.gather(*loops, return_exceptions=True)
        await self.wait_idle()

    # --- Poll cycle ---

    async def poll_once(self) -> int:
        """Run one claim cycle.

        Returns:
            Number of items claimed (0 after ``stop()``).
        """
        if not self._accepting:
            return 0
        capacity = self._max_concurrent - self._processing_count
        if capacity <= 0:
            return 0

        try:
            candidates = await self._repository.get_pending(capacity)
        except Exception:
            logger.exception("Failed to fetch pending items")
            return 0

        claimed = 0
        for candidate in candidates:
            if not self._accepting or self._processing_count >= self._max_concurrent:
                break
            try:
                item = await self._repository.claim_item(candidate)
            except Exception:
                logger.exception("Failed to claim item %d", candidate.id)
                continue
            if item is None:
                continue
            self._processing_count += 1
            claimed += 1
            task = asyncio.get_running_loop().create_task(
                self._process(item), name=f"enrich-item-{item.id}"
            )
            self._item_tasks.add(task)
            task.add_done_callback(self._item_tasks.discard)

        if claimed:
            logger.info(
                "Claimed %d item(s), %d/%d processing",
                claimed, self._processing_count, self._max_concurrent,
            )
        return claimed

    async def _process(self, item: WorkItem) -> None:
        try:
            processed = await self._processor.process(item)
            self.stats.add(processed)
        except Exception:
            logger.exception("Unhandled error processing item %d", item.id)
        finally:
            self._processing_count -= 1

    async def _run(self, stop_event: asyncio.Event) -> None:
        if await self._wait(stop_event, self._initial_delay_s):
            return
        while not stop_event.is_set():
            try:
                await self.poll_once()
            except Exception:
                logger.exception("Enrichment poll cycle failed")
            if await self._wait(stop_event, self._poll_interval_s):
                break
        logger.info("Enrichment daemon stopped")

    @staticmethod
    async def _wait(stop_event: asyncio.Event, timeout: float) -> bool:
        """Sleep up to ``timeout``; True if stop was requested meanwhile."""
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=max(0.0, timeout))
        except asyncio.TimeoutError:
            return False
        return True
