# src/pipeline/validation.py — v1
"""Output checks applied between stages, and rating normalization."""

from __future__ import annotations

import logging
import math
import re
from typing import Any

from vinenrich.core.errors import StageValidationError
from vinenrich.core.models import WorkItem
from vinenrich.pipeline.categories import detect_category, find_grapes

logger = logging.getLogger(__name__)

# Minimum characters per detailed-profile field
MIN_FIELD_LENGTHS: dict[str, int] = {
    "general_guest_experience": 200,
    "aroma_notes": 150,
    "flavor_notes": 150,
    "body_description": 150,
}

# Fields scanned for grape names foreign to the wine's category
VARIETAL_CHECKED_FIELDS: tuple[str, ...] = ("aroma_notes", "flavor_notes")

_LEADING_NUMBER = re.compile(r"^\s*(\d{1,3}(?:\.\d+)?)(?!\d)")
_POINTS = re.compile(r"(\d{2,3}(?:\.\d+)?)\s*(?:points|pts|/\s*100)\b", re.IGNORECASE)


def text_value(value: Any) -> str:
    """Normalize a generated field to stripped text."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (list, tuple)):
        return " ".join(text_value(v) for v in value if v is not None).strip()
    if isinstance(value, dict):
        return " ".join(f"{k}: {text_value(v)}" for k, v in value.items()).strip()
    return str(value)


def require_any(stage: int, fields: dict[str, Any]) -> None:
    """Reject a stage whose structured response carries no content."""
    if not any(text_value(v) for v in fields.values()):
        raise StageValidationError(stage, "empty structured response")


def check_min_lengths(
    stage: int, fields: dict[str, str], minimums: dict[str, int] = MIN_FIELD_LENGTHS
) -> None:
    for name, minimum in minimums.items():
        length = len(fields.get(name) or "")
        if length < minimum:
            raise StageValidationError(
                stage, f"{length} characters, minimum is {minimum}", field=name
            )


def check_varietal_consistency(
    stage: int, item: WorkItem, fields: dict[str, str]
) -> None:
    """Reject grape varieties that do not belong to the item's category.

    Grapes the item itself declares are always allowed. Items with no
    recognizable category are not checked.
    """
    category = detect_category(item.wine_name, item.region, item.wine_type)
    if category is None:
        return
    allowed = category.allowed | find_grapes(item.varietals)
    for name in VARIETAL_CHECKED_FIELDS:
        foreign = sorted(find_grapes(fields.get(name)) - allowed)
        if foreign:
            raise StageValidationError(
                stage,
                f"mentions {', '.join(foreign)}, not a {category.name} variety",
                field=name,
            )


def parse_rating(raw: Any) -> float | None:
    """Numeric rating from a generated value, or None when absent."""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        value = float(raw)
        return None if math.isnan(value) else value
    text = str(raw)
    match = _LEADING_NUMBER.match(text) or _POINTS.search(text)
    return float(match.group(1)) if match else None


def clamp_rating(
    raw: Any, minimum: float = 85.0, maximum: float = 100.0, default: float = 90.0
) -> float:
    """Clamp a rating into ``[minimum, maximum]``; ``default`` if unparsable."""
    value = parse_rating(raw)
    if value is None:
        logger.debug("Unparsable rating %r, using default %.0f", raw, default)
        return default
    return max(minimum, min(maximum, value))
