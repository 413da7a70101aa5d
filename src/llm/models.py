# src/llm/models.py — v1
"""LLM-specific types: Message, LLMResponse, GenerationOptions, GenerationResult."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict


class Message(BaseModel):
    """Single message in a conversation."""

    role: Literal["user", "assistant", "system"]
    content: str


class LLMResponse(BaseModel):
    """Normalized response from any LLM provider."""

    content: str
    input_tokens: int = 0
    output_tokens: int = 0
    model: str
    provider: str
    latency_ms: int = 0
    raw_response: Any = None


class GenerationOptions(BaseModel):
    """Per-call knobs for the generation client."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    system: str | None = None
    temperature: float = 0.2
    max_tokens: int = 2000
    # Pydantic schema requesting strict structured output; implies JSON mode
    response_format: type[BaseModel] | None = None
    json_mode: bool = False
    # Cache namespace; None disables caching for the call
    cache_prefix: str | None = None
    timeout_s: float | None = None

    @property
    def structured(self) -> bool:
        return self.json_mode or self.response_format is not None


class GenerationResult(BaseModel):
    """Outcome of ``GenerationClient.generate``."""

    content: str
    data: dict[str, Any] | None = None
    model: str
    provider: str = ""
    cached: bool = False
