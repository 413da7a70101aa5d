# src/pipeline/confidence_gate.py — v1
"""Pre-check deciding between the verified pipeline and the fallback path.

One low-temperature structured call. The pipeline runs only on
``confidence == high`` without hallucination risk; everything else,
including a failed gate call, routes to the fallback generator.
"""

from __future__ import annotations

import logging

from pydantic import ValidationError

from vinenrich.core.errors import ParseError, ServiceError
from vinenrich.core.models import ConfidenceAssessment, ConfidenceRejection, WorkItem
from vinenrich.llm.generation_client import GenerationClient
from vinenrich.logging.context import set_stage_context
from vinenrich.pipeline.prompts import confidence_prompt

logger = logging.getLogger(__name__)


class ConfidenceGate:
    """Self-assessment of model knowledge about one item."""

    def __init__(self, client: GenerationClient) -> None:
        self._client = client

    async def assess(self, item: WorkItem) -> ConfidenceAssessment:
        """Ask the model how well it knows ``item``.

        Never raises for service, parse or schema errors: those yield the
        conservative assessment.
        """
        set_stage_context("gate")
        request = confidence_prompt(item)
        try:
            result = await self._client.generate(request.user, options=request.options)
            return ConfidenceAssessment.model_validate(result.data or {})
        except (ServiceError, ParseError, ValidationError) as exc:
            logger.warning("Confidence check failed for %s: %s", item.label, exc)
            return ConfidenceAssessment.conservative(
                concerns=f"confidence check failed: {type(exc).__name__}"
            )

    @staticmethod
    def should_proceed(assessment: ConfidenceAssessment) -> bool:
        return assessment.confidence == "high" and not assessment.hallucination_risk

    async def decide(self, item: WorkItem) -> ConfidenceRejection | None:
        """None to run the pipeline, else the rejection routing to fallback."""
        assessment = await self.assess(item)
        if self.should_proceed(assessment):
            logger.info("Confidence gate passed for %s", item.label)
            return None

        reason = (
            f"{assessment.confidence} confidence"
            + (", hallucination risk" if assessment.hallucination_risk else "")
        )
        logger.info(
            "Rejecting %s: %s, concerns: %s",
            item.label, reason, assessment.concerns or "general uncertainty",
        )
        return ConfidenceRejection(item_id=item.id, assessment=assessment, reason=reason)
