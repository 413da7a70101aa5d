# src/storage/base_repository.py — v1
"""Abstract item repository: the only way the enrichment code touches items.

Implementations must make ``claim`` an atomic conditional update
(``pending → processing`` only if still pending) and reject status writes
that break the item state machine with ``IllegalTransitionError``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from vinenrich.core.models import EnrichmentResult, WorkItem
from vinenrich.core.status import EnrichmentStatus


class BaseItemRepository(ABC):
    """Persistent store of work items."""

    @abstractmethod
    async def get_pending(self, limit: int) -> list[WorkItem]:
        """Up to ``limit`` pending items, oldest first."""

    @abstractmethod
    async def claim(self, item_id: int) -> bool:
        """Atomically move ``item_id`` from pending to processing.

        Returns:
            True if this caller now holds the claim.
        """

    @abstractmethod
    async def update_status(
        self,
        item_id: int,
        status: EnrichmentStatus,
        started_at: datetime | None = None,
        completed_at: datetime | None = None,
    ) -> None:
        """Transition an item without touching its result fields.

        Raises:
            IllegalTransitionError: If the current status does not allow it.
        """

    @abstractmethod
    async def commit_result(
        self, item_id: int, result: EnrichmentResult, status: EnrichmentStatus
    ) -> None:
        """Write all result fields and the completed status in one update.

        Raises:
            IllegalTransitionError: If the item is not processing.
        """

    @abstractmethod
    async def get(self, item_id: int) -> WorkItem:
        """Raises ItemNotFoundError if absent."""

    @abstractmethod
    async def reset_failed(self) -> int:
        """Move every failed item back to pending; returns the count."""

    @abstractmethod
    async def count_by_status(self) -> dict[str, int]:
        """Item count per status value."""

    async def claim_item(self, item: WorkItem) -> WorkItem | None:
        """Claim ``item`` and return its fresh processing snapshot."""
        if not await self.claim(item.id):
            return None
        return await self.get(item.id)

    def close(self) -> None:  # noqa: B027
        """Release resources. Default: no-op."""
