# src/pipeline/stages.py — v2
"""The five enrichment stages.

Stages 1-4 each call the generation client with the serialized output of
every earlier stage and validate the response before the pipeline
advances. Stage 5 is a pure merge.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

from pydantic import ValidationError

from vinenrich.core.errors import ParseError, ServiceError, StageValidationError
from vinenrich.core.models import EnrichmentResult, ResultSource, StageResult
from vinenrich.llm.generation_client import GenerationClient
from vinenrich.logging.context import set_stage_context
from vinenrich.pipeline import prompts
from vinenrich.pipeline.prompts import PromptSpec
from vinenrich.pipeline.state import PipelineContext
from vinenrich.pipeline.validation import (
    check_min_lengths,
    check_varietal_consistency,
    clamp_rating,
    require_any,
    text_value,
)

logger = logging.getLogger(__name__)

STAGE1_FIELDS = ("wine_rating", "producer_reputation", "vintage_conditions", "basic_profile")
CLASSIFICATION_FIELDS = (
    "appellation_classification", "producer_standing",
    "site_classification", "production_scope",
)
DEEP_MINING_FIELDS = (
    "terroir_characteristics", "winemaking_techniques",
    "critical_acclaim", "scarcity_factors",
)
NARRATIVE_FIELDS = ("what_makes_special",)
STAGE3_FIELDS = ("general_guest_experience", "aroma_notes", "flavor_notes", "body_description")
STAGE4_FIELDS = ("food_pairing", "serving_temp", "aging_potential")


def pick_fields(data: dict[str, Any] | None, names: tuple[str, ...]) -> dict[str, Any]:
    """Select ``names`` from a structured response, normalizing text."""
    data = data or {}
    picked: dict[str, Any] = {}
    for name in names:
        raw = data.get(name)
        # Ratings keep their numeric type for clamping
        picked[name] = raw if name == "wine_rating" and isinstance(raw, (int, float)) else text_value(raw)
    return picked


class BaseStage(ABC):
    """One step of the enrichment pipeline."""

    index: int
    name: str

    @abstractmethod
    async def run(self, context: PipelineContext, client: GenerationClient) -> StageResult:
        """Produce this stage's fields from ``context``."""

    async def _generate(
        self, context: PipelineContext, client: GenerationClient, request: PromptSpec
    ) -> dict[str, Any]:
        context.llm_calls += 1
        result = await client.generate(request.user, options=request.options)
        return result.data or {}


class InitialResearchStage(BaseStage):
    index = 1
    name = "initial_research"

    async def run(self, context: PipelineContext, client: GenerationClient) -> StageResult:
        request = prompts.initial_research_prompt(context)
        fields = pick_fields(await self._generate(context, client, request), STAGE1_FIELDS)
        try:
            require_any(self.index, fields)
        except StageValidationError:
            await client.forget(request.user, options=request.options)
            raise
        return StageResult(stage=self.index, name=self.name, fields=fields)


class DeepAnalysisStage(BaseStage):
    """Classification → deep mining → narrative.

    A failed phase degrades the stage instead of aborting it; later phases
    work from whatever earlier phases produced. The stage fails only when
    no phase produced anything.
    """

    index = 2
    name = "deep_analysis"

    async def run(self, context: PipelineContext, client: GenerationClient) -> StageResult:
        fields: dict[str, Any] = {}
        warnings: list[str] = []

        classification = await self._phase(
            "classification", context, client,
            prompts.classification_prompt(context), CLASSIFICATION_FIELDS, warnings,
        )
        fields.update(classification or {})

        mining = await self._phase(
            "deep_mining", context, client,
            prompts.deep_mining_prompt(context, classification), DEEP_MINING_FIELDS, warnings,
        )
        fields.update(mining or {})

        findings = {k: v for k, v in fields.items() if v}
        narrative = None
        if findings:
            narrative = await self._phase(
                "narrative", context, client,
                prompts.narrative_prompt(context, findings), NARRATIVE_FIELDS, warnings,
            )
        else:
            warnings.append("narrative: skipped, no research findings")
        fields.update(narrative or {})

        if classification is None and mining is None and narrative is None:
            raise StageValidationError(self.index, "all phases failed: " + "; ".join(warnings))
        return StageResult(stage=self.index, name=self.name, fields=fields, warnings=warnings)

    async def _phase(
        self,
        phase: str,
        context: PipelineContext,
        client: GenerationClient,
        request: PromptSpec,
        names: tuple[str, ...],
        warnings: list[str],
    ) -> dict[str, Any] | None:
        set_stage_context(self.index, phase)
        try:
            fields = pick_fields(await self._generate(context, client, request), names)
            require_any(self.index, fields)
        except StageValidationError as exc:
            await client.forget(request.user, options=request.options)
            return self._degrade(phase, context, warnings, exc)
        except (ServiceError, ParseError) as exc:
            return self._degrade(phase, context, warnings, exc)
        finally:
            set_stage_context(self.index)
        logger.debug("Stage 2 phase %s completed", phase)
        return fields

    @staticmethod
    def _degrade(
        phase: str, context: PipelineContext, warnings: list[str], exc: Exception
    ) -> None:
        logger.warning("Stage 2 phase %s failed for %s: %s", phase, context.item.label, exc)
        warnings.append(f"{phase}: {exc}")
        context.errors.append(f"stage 2 {phase}: {exc}")
        return None


class DetailedProfileStage(BaseStage):
    index = 3
    name = "detailed_profile"

    async def run(self, context: PipelineContext, client: GenerationClient) -> StageResult:
        request = prompts.detailed_profile_prompt(context)
        fields = pick_fields(await self._generate(context, client, request), STAGE3_FIELDS)
        try:
            check_min_lengths(self.index, fields)
            check_varietal_consistency(self.index, context.item, fields)
        except StageValidationError:
            await client.forget(request.user, options=request.options)
            raise
        return StageResult(stage=self.index, name=self.name, fields=fields)


class ApplicationStage(BaseStage):
    index = 4
    name = "application"

    async def run(self, context: PipelineContext, client: GenerationClient) -> StageResult:
        request = prompts.application_prompt(context)
        fields = pick_fields(await self._generate(context, client, request), STAGE4_FIELDS)
        try:
            require_any(self.index, fields)
        except StageValidationError:
            await client.forget(request.user, options=request.options)
            raise
        return StageResult(stage=self.index, name=self.name, fields=fields)


class IntegrationStage(BaseStage):
    """Merge stages 1-4 into the committed record. Never fails."""

    index = 5
    name = "integration"

    def __init__(
        self,
        rating_min: float = 85.0,
        rating_max: float = 100.0,
        rating_default: float = 90.0,
    ) -> None:
        self._rating_min = rating_min
        self._rating_max = rating_max
        self._rating_default = rating_default

    async def run(self, context: PipelineContext, client: GenerationClient) -> StageResult:
        merged = self.merge(context)
        return StageResult(
            stage=self.index,
            name=self.name,
            fields=merged.model_dump(exclude={"source", "disclaimer"}),
        )

    def merge(self, context: PipelineContext) -> EnrichmentResult:
        s2, s3, s4 = context.stage(2), context.stage(3), context.stage(4)
        return EnrichmentResult(
            wine_rating=clamp_rating(
                context.stage(1).get("wine_rating"),
                self._rating_min, self._rating_max, self._rating_default,
            ),
            general_guest_experience=s3.get("general_guest_experience") or None,
            flavor_notes=s3.get("flavor_notes") or None,
            aroma_notes=s3.get("aroma_notes") or None,
            what_makes_special=s2.get("what_makes_special") or _special_from_research(s2),
            body_description=s3.get("body_description") or None,
            food_pairing=s4.get("food_pairing") or None,
            serving_temp=s4.get("serving_temp") or None,
            aging_potential=s4.get("aging_potential") or None,
            source=ResultSource.VERIFIED,
        )


def _special_from_research(stage2: StageResult) -> str | None:
    """Stand-in narrative when stage 2's narrative phase failed."""
    parts = [
        stage2.get(name)
        for name in ("critical_acclaim", "terroir_characteristics", "appellation_classification")
        if stage2.get(name)
    ]
    return " ".join(parts) or None


def default_stages(
    rating_min: float = 85.0, rating_max: float = 100.0, rating_default: float = 90.0
) -> list[BaseStage]:
    return [
        InitialResearchStage(),
        DeepAnalysisStage(),
        DetailedProfileStage(),
        ApplicationStage(),
        IntegrationStage(rating_min, rating_max, rating_default),
    ]


# Errors a stage may raise that mean "this stage failed", as opposed to bugs
STAGE_ERRORS = (ServiceError, ParseError, StageValidationError, ValidationError)
