# src/core/errors.py — v1
"""Error taxonomy for the enrichment subsystem.

Transient service errors are retried (with backoff, then across fallback
models); everything else aborts the current item. A confidence rejection
is a routing decision and lives in ``core.models``, not here.
"""

from __future__ import annotations


class EnrichmentError(Exception):
    """Base class for all enrichment errors."""


class ServiceError(EnrichmentError):
    """Failure reported by the external generation service."""

    def __init__(
        self, message: str, provider: str | None = None, model: str | None = None
    ) -> None:
        self.provider = provider
        self.model = model
        super().__init__(message)


class TransientServiceError(ServiceError):
    """Rate limiting, timeouts, overload: retryable."""


class RetryExhaustedError(TransientServiceError):
    """All retries exhausted for a transient failure."""

    def __init__(self, operation: str, attempts: int, last_error: Exception) -> None:
        self.operation = operation
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"'{operation}' failed after {attempts} attempts: {last_error}",
            provider=getattr(last_error, "provider", None),
            model=getattr(last_error, "model", None),
        )


class FatalServiceError(ServiceError):
    """Non-retryable service failure (auth, bad request, ...)."""


class ModelUnavailableError(FatalServiceError):
    """The requested model does not exist or is not served to this key."""


class ParseError(EnrichmentError):
    """Structured output could not be parsed, even after repair."""

    def __init__(self, message: str, content: str = "") -> None:
        self.content = content
        super().__init__(message)


class StageValidationError(EnrichmentError):
    """Stage output failed a length or consistency check."""

    def __init__(self, stage: int, reason: str, field: str | None = None) -> None:
        self.stage = stage
        self.field = field
        self.reason = reason
        where = f"stage {stage}" + (f" field '{field}'" if field else "")
        super().__init__(f"{where}: {reason}")


class StageFailedError(EnrichmentError):
    """A pipeline stage aborted; carries the stage index and the cause."""

    def __init__(self, stage: int, cause: Exception) -> None:
        self.stage = stage
        self.cause = cause
        super().__init__(f"Stage {stage} failed: {cause}")


class PersistenceError(EnrichmentError):
    """Cache store read/write failure. Logged, never fatal."""


class IllegalTransitionError(EnrichmentError):
    """A status write would break the item state machine."""

    def __init__(self, item_id: int, current: str | None, target: str) -> None:
        self.item_id = item_id
        self.current = current
        self.target = target
        super().__init__(
            f"Item {item_id}: illegal status transition {current!r} -> {target!r}"
        )


class ItemNotFoundError(EnrichmentError):
    """No work item with the given id."""
