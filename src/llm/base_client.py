# src/llm/base_client.py — v1
"""Abstract LLM client interface implemented by provider adapters."""

from __future__ import annotations

from abc import ABC, abstractmethod

from pydantic import BaseModel

from vinenrich.llm.models import LLMResponse, Message


class BaseLLMClient(ABC):
    """Unified interface for all LLM providers.

    Implementations must raise ``TransientServiceError`` for retryable
    failures and ``FatalServiceError`` (or ``ModelUnavailableError``) for
    everything else.
    """

    @abstractmethod
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
        """Text completion. ``model`` overrides the adapter default."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider identifier (openai, anthropic, ollama)."""

    @property
    @abstractmethod
    def default_model(self) -> str:
        """Model used when ``complete`` gets no override."""
