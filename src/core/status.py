# src/core/status.py — v1
"""Work item state machine."""

from __future__ import annotations

from enum import Enum


class EnrichmentStatus(str, Enum):
    """Lifecycle status of a work item."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED_VERIFIED = "completed_verified"
    COMPLETED_THEORETICAL = "completed_theoretical"
    FAILED = "failed"


# target -> statuses it may be reached from
ALLOWED_PREDECESSORS: dict[EnrichmentStatus, frozenset[EnrichmentStatus]] = {
    EnrichmentStatus.PROCESSING: frozenset({EnrichmentStatus.PENDING}),
    EnrichmentStatus.PENDING: frozenset(
        {EnrichmentStatus.PROCESSING, EnrichmentStatus.FAILED}
    ),
    EnrichmentStatus.COMPLETED_VERIFIED: frozenset({EnrichmentStatus.PROCESSING}),
    EnrichmentStatus.COMPLETED_THEORETICAL: frozenset({EnrichmentStatus.PROCESSING}),
    EnrichmentStatus.FAILED: frozenset({EnrichmentStatus.PROCESSING}),
}

TERMINAL_STATUSES = frozenset(
    {
        EnrichmentStatus.COMPLETED_VERIFIED,
        EnrichmentStatus.COMPLETED_THEORETICAL,
        EnrichmentStatus.FAILED,
    }
)


def is_legal_transition(current: EnrichmentStatus | str, target: EnrichmentStatus | str) -> bool:
    """Whether ``current -> target`` is an edge of the state machine."""
    current = EnrichmentStatus(current)
    target = EnrichmentStatus(target)
    return current in ALLOWED_PREDECESSORS[target]
