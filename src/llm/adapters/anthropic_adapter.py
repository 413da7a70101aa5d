# src/llm/adapters/anthropic_adapter.py — v3
"""Anthropic Claude adapter implementing BaseLLMClient.

Uses the official anthropic SDK. Structured output is obtained by forcing
a single tool whose input schema is the requested pydantic model.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any

from pydantic import BaseModel

from vinenrich.llm.base_client import BaseLLMClient
from vinenrich.llm.errors import translate_error
from vinenrich.llm.models import LLMResponse, Message

logger = logging.getLogger(__name__)

_JSON_ONLY = "Respond with a single JSON object and nothing else."


class AnthropicAdapter(BaseLLMClient):
    """Adapter for Anthropic Claude models."""

    def __init__(
        self,
        model: str = "claude-sonnet-4-20250514",
        api_key: str | None = None,
        **kwargs: Any,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self.__client = None  # Lazy initialization

    @property
    def _client(self):
        """Lazy-init Anthropic client (only on first API call)."""
        if self.__client is None:
            try:
                import anthropic
            except ImportError as e:
                raise ImportError(
                    "anthropic package required: pip install anthropic"
                ) from e
            self.__client = anthropic.AsyncAnthropic(api_key=self._api_key or "")
        return self.__client

    async def complete(
        self,
        messages: list[Message],
        model: str | None = None,
        system: str | None = None,
        max_tokens: int = 2000,
        temperature: float = 0.2,
        response_format: type[BaseModel] | None = None,
        json_mode: bool = False,
    ) -> LLMResponse:
        """Text completion via Anthropic Messages API."""
        model = model or self._model
        if json_mode and response_format is None:
            system = f"{system}\n\n{_JSON_ONLY}" if system else _JSON_ONLY
        kwargs = self._build_kwargs(messages, model, system, max_tokens, temperature)

        if response_format is not None:
            kwargs["tools"] = [
                {
                    "name": "structured_output",
                    "description": "Return structured data matching the schema",
                    "input_schema": response_format.model_json_schema(),
                }
            ]
            kwargs["tool_choice"] = {"type": "tool", "name": "structured_output"}

        start = time.monotonic()
        try:
            response = await self._client.messages.create(**kwargs)
        except Exception as exc:
            raise translate_error(exc, "anthropic", model) from exc
        latency_ms = int((time.monotonic() - start) * 1000)

        return LLMResponse(
            content=self._extract_content(response, response_format is not None),
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            model=getattr(response, "model", model) or model,
            provider="anthropic",
            latency_ms=latency_ms,
            raw_response=response,
        )

    @property
    def provider_name(self) -> str:
        return "anthropic"

    @property
    def default_model(self) -> str:
        return self._model

    # --- Internal helpers ---

    @staticmethod
    def _build_kwargs(
        messages: list[Message],
        model: str,
        system: str | None,
        max_tokens: int,
        temperature: float,
    ) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
        }
        if system:
            kwargs["system"] = system
        return kwargs

    @staticmethod
    def _extract_content(response: Any, structured: bool) -> str:
        """Extract text from Anthropic response content blocks."""
        for block in response.content:
            if structured and getattr(block, "type", None) == "tool_use":
                return json.dumps(block.input)
            if getattr(block, "type", None) == "text":
                return block.text
        return ""
