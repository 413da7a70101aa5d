# src/core/models.py — v1
"""Domain models: WorkItem, ConfidenceAssessment, StageResult, EnrichmentResult.

WorkItem is the persisted unit of enrichment; everything else is ephemeral
and lives only as long as the decision or stage it belongs to.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from vinenrich.core.status import EnrichmentStatus

ENRICHMENT_FIELDS: tuple[str, ...] = (
    "general_guest_experience",
    "flavor_notes",
    "aroma_notes",
    "what_makes_special",
    "body_description",
    "food_pairing",
    "serving_temp",
    "aging_potential",
)


class ResultSource(str, Enum):
    """Provenance marker of committed content."""

    VERIFIED = "verified"
    THEORETICAL = "theoretical"


class WorkItem(BaseModel):
    """A wine record awaiting or undergoing enrichment."""

    id: int
    wine_name: str
    producer: str | None = None
    vintage: str | None = None
    region: str | None = None
    country: str | None = None
    varietals: str | None = None
    wine_type: str | None = None

    status: EnrichmentStatus = EnrichmentStatus.PENDING
    attempt_count: int = 0
    started_at: datetime | None = None
    completed_at: datetime | None = None

    # Written only at final commit
    wine_rating: float | None = None
    general_guest_experience: str | None = None
    flavor_notes: str | None = None
    aroma_notes: str | None = None
    what_makes_special: str | None = None
    body_description: str | None = None
    food_pairing: str | None = None
    serving_temp: str | None = None
    aging_potential: str | None = None
    source: ResultSource | None = None

    @property
    def label(self) -> str:
        """Short human label for logs."""
        vintage = self.vintage or "NV"
        return f"{self.wine_name} ({vintage})"

    def descriptor(self) -> dict[str, str]:
        """Descriptor fields with unknowns spelled out for prompts."""
        return {
            "wine_name": self.wine_name,
            "producer": self.producer or "Not specified",
            "vintage": self.vintage or "Not specified",
            "region": self.region or "Not specified",
            "country": self.country or "Not specified",
            "varietals": self.varietals or "Determine from wine name/region",
            "wine_type": self.wine_type or "Not specified",
        }


class ConfidenceAssessment(BaseModel):
    """Model self-report of how well it knows a wine."""

    model_config = ConfigDict(extra="ignore")

    knowledge_exists: bool = False
    confidence: Literal["high", "medium", "low", "none"] = "none"
    hallucination_risk: bool = True
    recommendation: Literal[
        "use_generated", "seek_other_sources", "insufficient_info"
    ] = "seek_other_sources"
    concerns: str | None = None

    @classmethod
    def conservative(cls, concerns: str | None = None) -> ConfidenceAssessment:
        """Assessment used when the gate call itself fails."""
        return cls(
            knowledge_exists=False,
            confidence="none",
            hallucination_risk=True,
            recommendation="seek_other_sources",
            concerns=concerns,
        )


class ConfidenceRejection(BaseModel):
    """Routing decision sending an item to the fallback generator."""

    item_id: int
    assessment: ConfidenceAssessment
    reason: str


class StageResult(BaseModel):
    """Output of one pipeline stage, carried forward as context."""

    stage: int
    name: str
    fields: dict[str, Any] = Field(default_factory=dict)
    warnings: list[str] = Field(default_factory=list)

    def get(self, name: str, default: Any = None) -> Any:
        return self.fields.get(name, default)


class EnrichmentResult(BaseModel):
    """Final field set committed to a work item."""

    wine_rating: float | None = None
    general_guest_experience: str | None = None
    flavor_notes: str | None = None
    aroma_notes: str | None = None
    what_makes_special: str | None = None
    body_description: str | None = None
    food_pairing: str | None = None
    serving_temp: str | None = None
    aging_potential: str | None = None
    source: ResultSource = ResultSource.VERIFIED
    disclaimer: bool = False


class ItemOutcome(str, Enum):
    """What happened to one claimed item."""

    VERIFIED = "verified"
    THEORETICAL = "theoretical"
    RETRY = "retry"
    FAILED = "failed"


class ProcessedItem(BaseModel):
    """Outcome of processing one claimed item."""

    item_id: int
    outcome: ItemOutcome
    rejected: bool = False
    failed_stage: int | None = None
    error: str | None = None


class BatchReport(BaseModel):
    """Aggregate counts for a batch or a daemon lifetime."""

    processed: int = 0
    # Verified and theoretical commits both count as succeeded
    succeeded: int = 0
    rejected: int = 0
    theoretical: int = 0
    retried: int = 0
    failed: int = 0

    def record(self, outcome: ItemOutcome, rejected: bool = False) -> None:
        """Count one processed item."""
        self.processed += 1
        if rejected:
            self.rejected += 1
        if outcome is ItemOutcome.VERIFIED:
            self.succeeded += 1
        elif outcome is ItemOutcome.THEORETICAL:
            self.succeeded += 1
            self.theoretical += 1
        elif outcome is ItemOutcome.RETRY:
            self.retried += 1
        else:
            self.failed += 1

    def add(self, processed: ProcessedItem) -> None:
        self.record(processed.outcome, rejected=processed.rejected)
