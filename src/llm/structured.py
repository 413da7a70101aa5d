# src/llm/structured.py — v1
"""Parse structured (JSON object) model output, repairing common damage.

Models occasionally wrap JSON in markdown fences, use typographic quotes,
add prose around the object or leave trailing commas. Repair is bounded:
each step is applied once, in order, and parsing is retried after each.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Callable

from pydantic import BaseModel

from vinenrich.core.errors import ParseError

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?\s*\n?(.*?)```", re.DOTALL)
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")
_SMART_QUOTES = str.maketrans({"“": '"', "”": '"', "‘": "'", "’": "'"})


def _strip_fences(text: str) -> str:
    match = _FENCE_RE.search(text)
    if match:
        return match.group(1).strip()
    return text.strip().removeprefix("```json").removeprefix("```").removesuffix("```").strip()


def _normalize_quotes(text: str) -> str:
    return text.translate(_SMART_QUOTES)


def _outermost_object(text: str) -> str:
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return text
    return text[start : end + 1]


def _drop_trailing_commas(text: str) -> str:
    return _TRAILING_COMMA_RE.sub(r"\1", text)


_REPAIRS: tuple[Callable[[str], str], ...] = (
    _strip_fences,
    _normalize_quotes,
    _outermost_object,
    _drop_trailing_commas,
)


def parse_structured(content: str) -> dict[str, Any]:
    """Decode a JSON object from model output.

    Raises:
        ParseError: If no JSON object can be recovered.
    """
    text = content or ""
    last_error: Exception | None = None

    for step, repair in enumerate((None, *_REPAIRS)):
        if repair is not None:
            text = repair(text)
        try:
            value = json.loads(text)
        except json.JSONDecodeError as e:
            last_error = e
            continue
        if not isinstance(value, dict):
            raise ParseError(
                f"Expected a JSON object, got {type(value).__name__}", content=content
            )
        if step:
            logger.debug("Structured output recovered after %d repair step(s)", step)
        return value

    raise ParseError(f"Unparseable structured output: {last_error}", content=content)


def parse_model(content: str, model: type[BaseModel]) -> BaseModel:
    """Parse and validate against a pydantic schema.

    Raises:
        ParseError: If the content is not a JSON object.
        pydantic.ValidationError: If the object does not match ``model``.
    """
    return model.model_validate(parse_structured(content))
