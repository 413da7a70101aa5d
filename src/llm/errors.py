# src/llm/errors.py — v1
"""Translate provider SDK exceptions into the service error taxonomy."""

from __future__ import annotations

import asyncio

from vinenrich.core.errors import (
    FatalServiceError,
    ModelUnavailableError,
    ServiceError,
    TransientServiceError,
)

_TRANSIENT_STATUS = {408, 409, 425, 429, 500, 502, 503, 504, 529}


def classify_error(error: BaseException) -> str:
    """Classify an exception as 'transient', 'model_unavailable' or 'fatal'."""
    if isinstance(error, TransientServiceError):
        return "transient"
    if isinstance(error, ModelUnavailableError):
        return "model_unavailable"
    if isinstance(error, ServiceError):
        return "fatal"
    if isinstance(error, (asyncio.TimeoutError, TimeoutError, ConnectionError)):
        return "transient"

    status = getattr(error, "status_code", None)
    if status is None:
        status = getattr(getattr(error, "response", None), "status_code", None)
    msg = str(error).lower()
    name = type(error).__name__.lower()

    if isinstance(status, int):
        if status in _TRANSIENT_STATUS or status >= 500:
            return "transient"
        if status == 404:
            return "model_unavailable"
        return "fatal"

    if "ratelimit" in name or "rate limit" in msg or "429" in msg:
        return "transient"
    if "timeout" in name or "timed out" in msg or "timeout" in msg:
        return "transient"
    if "connection" in name or "overloaded" in msg:
        return "transient"
    if "model" in msg and ("not found" in msg or "does not exist" in msg):
        return "model_unavailable"
    return "fatal"


def translate_error(error: BaseException, provider: str, model: str) -> ServiceError:
    """Wrap ``error`` in the matching ServiceError subclass."""
    if isinstance(error, ServiceError):
        return error
    kind = classify_error(error)
    message = f"{provider}:{model} {type(error).__name__}: {error}"
    if kind == "transient":
        return TransientServiceError(message, provider=provider, model=model)
    if kind == "model_unavailable":
        return ModelUnavailableError(message, provider=provider, model=model)
    return FatalServiceError(message, provider=provider, model=model)
