# src/llm/adapters/ollama_adapter.py — v2
"""Ollama local LLM adapter implementing BaseLLMClient.

Uses the ollama Python SDK. Any structured request maps to ``format="json"``.
"""

from __future__ import annotations

import time
from typing import Any

from pydantic import BaseModel

from vinenrich.llm.base_client import BaseLLMClient
from vinenrich.llm.errors import translate_error
from vinenrich.llm.models import LLMResponse, Message


class OllamaAdapter(BaseLLMClient):
    """Ollama local inference adapter."""

    def __init__(
        self, model: str = "llama3", host: str = "http://localhost:11434", **kwargs: Any,
    ):
        self._model = model
        self._host = host

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
        import ollama

        model = model or self._model
        client = ollama.AsyncClient(host=self._host)
        msgs: list[dict[str, str]] = []
        if system:
            msgs.append({"role": "system", "content": system})
        for m in messages:
            msgs.append({"role": m.role, "content": m.content})

        options: dict[str, Any] = {
            "num_predict": max_tokens,
            "temperature": temperature,
        }
        kwargs: dict[str, Any] = {"model": model, "messages": msgs, "options": options}
        if response_format is not None or json_mode:
            kwargs["format"] = "json"

        t0 = time.monotonic()
        try:
            resp = await client.chat(**kwargs)
        except Exception as exc:
            raise translate_error(exc, "ollama", model) from exc
        latency = int((time.monotonic() - t0) * 1000)

        return LLMResponse(
            content=resp["message"]["content"],
            input_tokens=resp.get("prompt_eval_count", 0) or 0,
            output_tokens=resp.get("eval_count", 0) or 0,
            model=model,
            provider="ollama",
            latency_ms=latency,
            raw_response=resp,
        )

    @property
    def provider_name(self) -> str:
        return "ollama"

    @property
    def default_model(self) -> str:
        return self._model
