# src/pipeline/state.py — v1
"""Context threaded through the five pipeline stages.

Each stage reads the serialized output of every prior stage and appends
its own StageResult. Nothing here is persisted.
"""

from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

from vinenrich.core.models import StageResult, WorkItem

# Per-field cap when prior output is embedded in a prompt
MAX_CONTEXT_FIELD_CHARS = 1500


class PipelineContext(BaseModel):
    """Accumulated stage outputs for one item."""

    item: WorkItem
    run_id: str = Field(default_factory=lambda: uuid.uuid4().hex[:12])
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    results: dict[int, StageResult] = Field(default_factory=dict)
    llm_calls: int = 0
    errors: list[str] = Field(default_factory=list)

    def record(self, result: StageResult) -> None:
        """Store a stage result, replacing any earlier one for the same stage."""
        self.results[result.stage] = result

    def stage(self, index: int) -> StageResult:
        """Result of a completed stage; empty if the stage has not run."""
        return self.results.get(index) or StageResult(stage=index, name="")

    def field(self, name: str, default: Any = None) -> Any:
        """Latest value of a field across all recorded stages."""
        for index in sorted(self.results, reverse=True):
            value = self.results[index].fields.get(name)
            if value not in (None, ""):
                return value
        return default

    def serialize(self, up_to: int | None = None) -> str:
        """JSON of all prior stage fields, keyed by stage name."""
        payload: dict[str, dict[str, Any]] = {}
        for index in sorted(self.results):
            if up_to is not None and index >= up_to:
                break
            result = self.results[index]
            payload[f"stage{index}_{result.name}"] = {
                k: _truncate(v) for k, v in result.fields.items() if v not in (None, "")
            }
        return json.dumps(payload, ensure_ascii=False, indent=2)


def _truncate(value: Any) -> Any:
    if isinstance(value, str) and len(value) > MAX_CONTEXT_FIELD_CHARS:
        return value[:MAX_CONTEXT_FIELD_CHARS] + "..."
    return value
