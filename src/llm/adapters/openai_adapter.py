# src/llm/adapters/openai_adapter.py — v2
"""OpenAI GPT adapter implementing BaseLLMClient.

Uses the official openai SDK. Structured output is requested through a
JSON schema response format; plain JSON mode uses ``json_object``.
"""

from __future__ import annotations

import time
from typing import Any

from pydantic import BaseModel

from vinenrich.llm.base_client import BaseLLMClient
from vinenrich.llm.errors import translate_error
from vinenrich.llm.models import LLMResponse, Message


class OpenAIAdapter(BaseLLMClient):
    """OpenAI GPT adapter."""

    def __init__(self, model: str = "gpt-4o", api_key: str = "", **kwargs: Any):
        self._model = model
        self._api_key = api_key
        self.__client = None

    @property
    def _client(self):
        """Lazy-init OpenAI client (only on first API call)."""
        if self.__client is None:
            try:
                import openai
            except ImportError as e:
                raise ImportError("openai package required: pip install openai") from e
            self.__client = openai.AsyncOpenAI(api_key=self._api_key or None)
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
        model = model or self._model
        oai_messages: list[dict[str, Any]] = []
        if system:
            oai_messages.append({"role": "system", "content": system})
        for m in messages:
            oai_messages.append({"role": m.role, "content": m.content})

        kwargs: dict[str, Any] = {
            "model": model,
            "messages": oai_messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        if response_format is not None:
            schema = response_format.model_json_schema()
            kwargs["response_format"] = {
                "type": "json_schema",
                "json_schema": {"name": response_format.__name__, "schema": schema},
            }
        elif json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        t0 = time.monotonic()
        try:
            resp = await self._client.chat.completions.create(**kwargs)
        except Exception as exc:
            raise translate_error(exc, "openai", model) from exc
        latency = int((time.monotonic() - t0) * 1000)

        choice = resp.choices[0]
        usage = resp.usage
        return LLMResponse(
            content=choice.message.content or "",
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
            model=model,
            provider="openai",
            latency_ms=latency,
            raw_response=resp,
        )

    @property
    def provider_name(self) -> str:
        return "openai"

    @property
    def default_model(self) -> str:
        return self._model
