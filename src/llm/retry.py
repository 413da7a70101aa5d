# src/llm/retry.py — v1
"""Exponential backoff for transient generation-service failures.

Only ``TransientServiceError`` is retried; any other exception propagates
on the first occurrence.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from vinenrich.core.errors import RetryExhaustedError, TransientServiceError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """Fixed base delay, multiplied by ``backoff_factor`` per attempt."""

    max_retries: int = 3
    base_delay_s: float = 1.0
    backoff_factor: float = 2.0
    max_delay_s: float = 30.0
    jitter: bool = True

    def delay_for(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (0-based)."""
        delay = min(self.base_delay_s * (self.backoff_factor ** attempt), self.max_delay_s)
        if self.jitter:
            delay *= 0.5 + random.random()  # noqa: S311
        return delay


DEFAULT_RETRY_POLICY = RetryPolicy()


async def with_retry(
    fn: Callable[..., Awaitable[Any]],
    *args: Any,
    operation: str = "generate",
    policy: RetryPolicy | None = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    **kwargs: Any,
) -> Any:
    """Execute an async function, retrying transient failures.

    Raises:
        RetryExhaustedError: If every attempt failed transiently.
    """
    policy = policy or DEFAULT_RETRY_POLICY
    attempts = 0

    while True:
        try:
            return await fn(*args, **kwargs)
        except TransientServiceError as e:
            if isinstance(e, RetryExhaustedError):
                raise
            attempts += 1
            if attempts > policy.max_retries:
                raise RetryExhaustedError(operation, attempts, e) from e

            delay = policy.delay_for(attempts - 1)
            logger.warning(
                "'%s' transient failure (attempt %d/%d), retrying in %.1fs: %s",
                operation, attempts, policy.max_retries, delay, e,
            )
            await sleep(delay)
