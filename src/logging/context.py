# src/logging/context.py — v1
"""Contextual logging support: attach item_id, run_id, stage and phase to log records."""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

# Context variables for structured logging, set per item task.
# asyncio copies the context into every task, so concurrent items never
# see each other's values.
_item_id: contextvars.ContextVar[int | None] = contextvars.ContextVar(
    "item_id", default=None
)
_run_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "run_id", default=None
)
_stage: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "stage", default=None
)
_phase: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "phase", default=None
)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    item_id: int | None = None
    run_id: str | None = None
    stage: str | None = None
    phase: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        item_id=_item_id.get(),
        run_id=_run_id.get(),
        stage=_stage.get(),
        phase=_phase.get(),
    )


def set_item_context(item_id: int, run_id: str) -> None:
    """Set item-level context (called once per item task)."""
    _item_id.set(item_id)
    _run_id.set(run_id)


def set_stage_context(stage: str | int, phase: str | None = None) -> None:
    """Set stage-level context (called per stage / sub-phase)."""
    _stage.set(str(stage))
    _phase.set(phase)


def clear_context() -> None:
    """Reset all context variables."""
    _item_id.set(None)
    _run_id.set(None)
    _stage.set(None)
    _phase.set(None)
