# src/pipeline/enrichment_pipeline.py — v2
"""Sequential five-stage pipeline for items that passed the confidence gate.

Stages run strictly in order, each seeing all earlier output through the
PipelineContext. Any stage failure aborts the item; nothing is returned
for commit until stage 5 has merged the record.
"""

from __future__ import annotations

import logging
import time

from vinenrich.core.errors import StageFailedError
from vinenrich.core.models import EnrichmentResult, WorkItem
from vinenrich.llm.generation_client import GenerationClient
from vinenrich.logging.context import set_stage_context
from vinenrich.pipeline.stages import STAGE_ERRORS, BaseStage, IntegrationStage, default_stages
from vinenrich.pipeline.state import PipelineContext

logger = logging.getLogger(__name__)


class EnrichmentPipeline:
    """Run the verified enrichment path for one item."""

    def __init__(
        self,
        client: GenerationClient,
        stages: list[BaseStage] | None = None,
    ) -> None:
        self._client = client
        self._stages = stages if stages is not None else default_stages()
        if not self._stages or not isinstance(self._stages[-1], IntegrationStage):
            raise ValueError("The last pipeline stage must be an IntegrationStage")

    @property
    def stages(self) -> list[BaseStage]:
        return list(self._stages)

    async def run(self, item: WorkItem, run_id: str | None = None) -> EnrichmentResult:
        """Execute every stage and return the merged record.

        Raises:
            StageFailedError: If any stage fails; ``stage`` is its index.
        """
        context = PipelineContext(item=item, **({"run_id": run_id} if run_id else {}))
        logger.info("Starting %d-stage enrichment for %s", len(self._stages), item.label)

        result = None
        for stage in self._stages:
            set_stage_context(stage.index)
            t0 = time.monotonic()
            try:
                result = await stage.run(context, self._client)
            except STAGE_ERRORS as exc:
                context.errors.append(f"stage {stage.index}: {exc}")
                raise StageFailedError(stage.index, exc) from exc
            context.record(result)
            logger.info(
                "Stage %d (%s) complete in %.1fs%s",
                stage.index, stage.name, time.monotonic() - t0,
                f", {len(result.warnings)} warning(s)" if result.warnings else "",
            )

        # the last stage is always IntegrationStage, whose fields are the merged record
        final = EnrichmentResult.model_validate(result.fields)
        logger.info(
            "Enrichment complete for %s - rating %s, %d generation call(s)",
            item.label, final.wine_rating, context.llm_calls,
        )
        return final
