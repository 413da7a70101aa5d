# src/pipeline/fallback.py — v1
"""Theoretical content for items the confidence gate rejected.

One structured call producing the committed field set, tagged
``source = theoretical`` and carrying no rating. Missing fields get
explicit "Theoretical ..." placeholders so the record is never half empty.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Callable

from vinenrich.core.models import (
    ConfidenceRejection,
    EnrichmentResult,
    ResultSource,
    WorkItem,
)
from vinenrich.llm.generation_client import GenerationClient
from vinenrich.logging.context import set_stage_context
from vinenrich.pipeline.prompts import theoretical_prompt
from vinenrich.pipeline.validation import text_value

logger = logging.getLogger(__name__)

PLACEHOLDERS: dict[str, str] = {
    "general_guest_experience": "Theoretical tasting profile based on wine science",
    "flavor_notes": "Theoretical flavor descriptors",
    "aroma_notes": "Theoretical aromatic profile",
    "what_makes_special": "Limited documented prestige information available for this wine",
    "body_description": "Theoretical body and structure analysis",
    "food_pairing": "Theoretical food pairing recommendations",
    "serving_temp": "Theoretical optimal serving conditions",
    "aging_potential": "Theoretical aging timeline",
}

_YEAR_RE = re.compile(r"\b(1[89]\d{2}|20\d{2})\b")


def vintage_year(vintage: str | None) -> int | None:
    match = _YEAR_RE.search(vintage or "")
    return int(match.group(1)) if match else None


class FallbackGenerator:
    """Produce clearly labelled lower-confidence content."""

    def __init__(
        self,
        client: GenerationClient,
        disclaimer_age_years: int = 30,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._client = client
        self._disclaimer_age_years = disclaimer_age_years
        self._clock = clock

    def wine_age(self, item: WorkItem) -> int | None:
        year = vintage_year(item.vintage)
        if year is None:
            return None
        return self._clock().year - year

    def needs_disclaimer(self, item: WorkItem) -> bool:
        """True for known vintages at least ``disclaimer_age_years`` old."""
        age = self.wine_age(item)
        return age is not None and age >= self._disclaimer_age_years

    async def generate(
        self, item: WorkItem, rejection: ConfidenceRejection | None = None
    ) -> EnrichmentResult:
        """Generate theoretical content.

        Raises:
            ServiceError: If the generation call fails.
            ParseError: If the response is not a JSON object.
        """
        set_stage_context("fallback")
        disclaimer = self.needs_disclaimer(item)
        request = theoretical_prompt(
            item, rejection, disclaimer_age=self.wine_age(item) if disclaimer else None
        )
        result = await self._client.generate(request.user, options=request.options)
        data = result.data or {}

        fields: dict[str, str] = {}
        missing: list[str] = []
        for name, placeholder in PLACEHOLDERS.items():
            value = text_value(data.get(name))
            if not value:
                missing.append(name)
                value = placeholder
            fields[name] = value
        if missing:
            logger.warning(
                "Theoretical profile for %s missing %s, using placeholders",
                item.label, ", ".join(missing),
            )

        logger.info(
            "Theoretical content created for %s%s",
            item.label, " (aging disclaimer)" if disclaimer else "",
        )
        return EnrichmentResult(
            wine_rating=None,
            source=ResultSource.THEORETICAL,
            disclaimer=disclaimer,
            **fields,
        )
