# src/pipeline/processor.py — v2
"""Per-item orchestration: gate, then pipeline or fallback, then commit.

Every outcome of a claimed item ends in exactly one status write:
completed_verified, completed_theoretical, pending (retry) or failed.
Failures are logged with the item id and stage index, never raised.
"""

from __future__ import annotations

import asyncio
import logging
import uuid

from vinenrich.core.errors import EnrichmentError, StageFailedError
from vinenrich.core.models import (
    BatchReport,
    ConfidenceRejection,
    ItemOutcome,
    ProcessedItem,
    WorkItem,
)
from vinenrich.core.status import EnrichmentStatus
from vinenrich.logging.context import clear_context, set_item_context
from vinenrich.pipeline.confidence_gate import ConfidenceGate
from vinenrich.pipeline.enrichment_pipeline import EnrichmentPipeline
from vinenrich.pipeline.fallback import FallbackGenerator
from vinenrich.storage.base_repository import BaseItemRepository

logger = logging.getLogger(__name__)


class ItemProcessor:
    """Process claimed items end to end.

    Args:
        repository: Item store receiving the final status write.
        gate: Confidence gate.
        pipeline: Verified five-stage path.
        fallback: Theoretical path for rejected items.
        max_item_attempts: Claims after which a failing pipeline marks the
            item failed instead of pending. 0 means never.
    """

    def __init__(
        self,
        repository: BaseItemRepository,
        gate: ConfidenceGate,
        pipeline: EnrichmentPipeline,
        fallback: FallbackGenerator,
        max_item_attempts: int = 5,
    ) -> None:
        self._repository = repository
        self._gate = gate
        self._pipeline = pipeline
        self._fallback = fallback
        self._max_item_attempts = max_item_attempts

    async def process(self, item: WorkItem) -> ProcessedItem:
        """Process one item the caller has already claimed."""
        run_id = uuid.uuid4().hex[:12]
        set_item_context(item.id, run_id)
        try:
            rejection = await self._gate.decide(item)
            if rejection is None:
                return await self._run_pipeline(item, run_id)
            return await self._run_fallback(item, rejection)
        except Exception as exc:
            logger.exception("Unexpected error processing item %d", item.id)
            return await self._recover(item, exc)
        finally:
            clear_context()

    async def _run_pipeline(self, item: WorkItem, run_id: str) -> ProcessedItem:
        try:
            result = await self._pipeline.run(item, run_id=run_id)
        except StageFailedError as exc:
            logger.error(
                "Pipeline failed for item %d (%s) at stage %d: %s",
                item.id, item.label, exc.stage, exc.cause,
            )
            return await self._release(item, exc.stage, exc)
        except EnrichmentError as exc:
            logger.error("Pipeline failed for item %d (%s): %s", item.id, item.label, exc)
            return await self._release(item, None, exc)

        await self._repository.commit_result(
            item.id, result, EnrichmentStatus.COMPLETED_VERIFIED
        )
        logger.info("Item %d committed as verified", item.id)
        return ProcessedItem(item_id=item.id, outcome=ItemOutcome.VERIFIED)

    async def _run_fallback(
        self, item: WorkItem, rejection: ConfidenceRejection
    ) -> ProcessedItem:
        try:
            result = await self._fallback.generate(item, rejection)
        except EnrichmentError as exc:
            logger.error(
                "Fallback generation failed for item %d (%s): %s", item.id, item.label, exc
            )
            await self._repository.update_status(item.id, EnrichmentStatus.FAILED)
            return ProcessedItem(
                item_id=item.id, outcome=ItemOutcome.FAILED, rejected=True, error=str(exc)
            )

        await self._repository.commit_result(
            item.id, result, EnrichmentStatus.COMPLETED_THEORETICAL
        )
        logger.info("Item %d committed as theoretical", item.id)
        return ProcessedItem(item_id=item.id, outcome=ItemOutcome.THEORETICAL, rejected=True)

    async def _release(
        self, item: WorkItem, stage: int | None, exc: Exception
    ) -> ProcessedItem:
        """Return a failed pipeline item to pending, or fail it for good."""
        exhausted = (
            self._max_item_attempts > 0 and item.attempt_count >= self._max_item_attempts
        )
        if exhausted:
            await self._repository.update_status(item.id, EnrichmentStatus.FAILED)
            logger.warning(
                "Item %d failed after %d attempt(s), marked failed",
                item.id, item.attempt_count,
            )
            outcome = ItemOutcome.FAILED
        else:
            await self._repository.update_status(item.id, EnrichmentStatus.PENDING)
            logger.info("Reset item %d to pending after error", item.id)
            outcome = ItemOutcome.RETRY
        return ProcessedItem(
            item_id=item.id, outcome=outcome, failed_stage=stage, error=str(exc)
        )

    async def _recover(self, item: WorkItem, exc: Exception) -> ProcessedItem:
        """Release an item after an unexpected error so it never stays processing."""
        try:
            return await self._release(item, None, exc)
        except Exception as release_exc:
            logger.error("Could not release item %d: %s", item.id, release_exc)
            return ProcessedItem(item_id=item.id, outcome=ItemOutcome.FAILED, error=str(exc))


async def run_batch(
    repository: BaseItemRepository,
    processor: ItemProcessor,
    limit: int,
    max_concurrent: int = 2,
) -> BatchReport:
    """Claim up to ``limit`` pending items and process them concurrently."""
    report = BatchReport()
    semaphore = asyncio.Semaphore(max(1, max_concurrent))
    pending = await repository.get_pending(limit)
    logger.info("Starting batch enrichment for %d item(s)", len(pending))

    async def _one(item: WorkItem) -> None:
        async with semaphore:
            try:
                claimed = await repository.claim_item(item)
            except Exception:
                logger.exception("Failed to claim item %d", item.id)
                return
            if claimed is None:
                return
            report.add(await processor.process(claimed))

    await asyncio.gather(*(_one(item) for item in pending))
    logger.info(
        "Batch enrichment completed: %d processed, %d succeeded (%d theoretical), "
        "%d retried, %d failed",
        report.processed, report.succeeded, report.theoretical,
        report.retried, report.failed,
    )
    return report
