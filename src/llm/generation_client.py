# src/llm/generation_client.py — v2
"""Single entry point for every generation call made by the enrichment code.

Per call, in order: cache lookup, rate limit, hard timeout, retry with
backoff, fallback across alternative models, structured parse, cache
populate. Only parsed successes reach the cache.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from vinenrich.cache.tiered_cache import TieredCache
from vinenrich.core.errors import (
    ModelUnavailableError,
    RetryExhaustedError,
    TransientServiceError,
)
from vinenrich.llm.base_client import BaseLLMClient
from vinenrich.llm.models import GenerationOptions, GenerationResult, LLMResponse, Message
from vinenrich.llm.rate_limiter import AsyncRateLimiter
from vinenrich.llm.retry import RetryPolicy, with_retry
from vinenrich.llm.structured import parse_structured

logger = logging.getLogger(__name__)


class GenerationClient:
    """Resilient wrapper around one provider adapter."""

    def __init__(
        self,
        adapter: BaseLLMClient,
        models: list[str] | None = None,
        cache: TieredCache | None = None,
        rate_limiter: AsyncRateLimiter | None = None,
        retry_policy: RetryPolicy | None = None,
        timeout_s: float = 90.0,
    ) -> None:
        self._adapter = adapter
        self._models = list(models) if models else [adapter.default_model]
        self._cache = cache
        self._rate_limiter = rate_limiter
        self._retry_policy = retry_policy or RetryPolicy()
        self._timeout_s = timeout_s
        self.call_count = 0

    @property
    def models(self) -> list[str]:
        return list(self._models)

    @property
    def cache(self) -> TieredCache | None:
        return self._cache

    async def generate(
        self,
        prompt: str,
        model: str | None = None,
        options: GenerationOptions | None = None,
    ) -> GenerationResult:
        """Run one generation.

        Args:
            prompt: User prompt.
            model: Preferred model; the configured fallbacks follow it.
            options: Temperature, schema, cache prefix, timeout.

        Raises:
            ServiceError: If every candidate model failed.
            ParseError: If structured output was requested and is unrecoverable.
        """
        options = options or GenerationOptions()
        cache_input = self._cache_input(prompt, model, options)

        if self._cache is not None and options.cache_prefix:
            hit = await self._cache.get(options.cache_prefix, cache_input)
            if hit is not None:
                logger.debug("Cache hit for prefix %s", options.cache_prefix)
                return GenerationResult.model_validate({**hit, "cached": True})

        response = await self._generate_with_fallback(prompt, model, options)
        data = parse_structured(response.content) if options.structured else None
        result = GenerationResult(
            content=response.content,
            data=data,
            model=response.model,
            provider=response.provider,
        )

        if self._cache is not None and options.cache_prefix:
            await self._cache.set(
                options.cache_prefix, cache_input, result.model_dump(exclude={"cached"})
            )
        return result

    async def forget(
        self,
        prompt: str,
        model: str | None = None,
        options: GenerationOptions | None = None,
    ) -> None:
        """Evict a cached result that downstream validation rejected."""
        options = options or GenerationOptions()
        if self._cache is not None and options.cache_prefix:
            await self._cache.delete(
                options.cache_prefix, self._cache_input(prompt, model, options)
            )

    # --- Internal helpers ---

    def _candidates(self, model: str | None) -> list[str]:
        if model is None:
            return list(self._models)
        return [model] + [m for m in self._models if m != model]

    async def _generate_with_fallback(
        self, prompt: str, model: str | None, options: GenerationOptions
    ) -> LLMResponse:
        candidates = self._candidates(model)
        for position, candidate in enumerate(candidates, start=1):
            try:
                return await with_retry(
                    self._call_once,
                    prompt,
                    candidate,
                    options,
                    operation=f"generate[{candidate}]",
                    policy=self._retry_policy,
                )
            except (ModelUnavailableError, RetryExhaustedError) as e:
                if position == len(candidates):
                    raise
                logger.warning("Model %s failed, trying next candidate: %s", candidate, e)
        raise ModelUnavailableError(
            "No candidate models configured", provider=self._adapter.provider_name
        )

    async def _call_once(
        self, prompt: str, model: str, options: GenerationOptions
    ) -> LLMResponse:
        if self._rate_limiter is not None:
            await self._rate_limiter.acquire()
        timeout = options.timeout_s or self._timeout_s
        self.call_count += 1
        try:
            return await asyncio.wait_for(
                self._adapter.complete(
                    [Message(role="user", content=prompt)],
                    model=model,
                    system=options.system,
                    max_tokens=options.max_tokens,
                    temperature=options.temperature,
                    response_format=options.response_format,
                    json_mode=options.json_mode,
                ),
                timeout=timeout,
            )
        except asyncio.TimeoutError as e:
            raise TransientServiceError(
                f"Call to {model} exceeded {timeout:.0f}s",
                provider=self._adapter.provider_name,
                model=model,
            ) from e

    @staticmethod
    def _cache_input(
        prompt: str, model: str | None, options: GenerationOptions
    ) -> dict[str, Any]:
        return {
            "prompt": prompt,
            "model": model,
            "system": options.system,
            "temperature": options.temperature,
            "schema": options.response_format.__name__ if options.response_format else None,
            "json": options.structured,
        }
