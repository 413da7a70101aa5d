# src/config/settings.py — v1
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for all deployment-specific settings: the
generation service, the cache tier, the item database, the daemon and
logging.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === GENERATION SERVICE ===
    llm_default_provider: Literal["openai", "anthropic", "ollama"] = "openai"
    llm_default_model: str = "gpt-4o"
    # Tried in order when the preferred model is unavailable or keeps failing
    llm_fallback_models: str = "gpt-4-turbo,gpt-4o-mini"
    llm_call_timeout_s: float = 90.0
    llm_max_requests_per_second: float = 1.0

    # Provider API keys
    openai_api_key: str = ""
    anthropic_api_key: str = ""
    ollama_base_url: str = "http://localhost:11434"

    # === Retry / backoff ===
    retry_max_retries: int = 3
    retry_base_delay_s: float = 1.0
    retry_backoff_factor: float = 2.0
    retry_max_delay_s: float = 30.0
    retry_jitter: bool = True

    # === Cache ===
    cache_enabled: bool = True
    cache_backend: Literal["memory", "sqlite", "json", "redis"] = "sqlite"
    cache_root: Path = Path("~/.vinenrich/cache")
    cache_redis_url: str = ""
    cache_memory_capacity: int = 500
    cache_ttl_s: int = 24 * 60 * 60
    cache_prune_max_age_s: int = 30 * 24 * 60 * 60

    # === Item database ===
    item_db_path: Path = Path("~/.vinenrich/items.db")

    # === Daemon ===
    daemon_max_concurrent: int = 2
    daemon_poll_interval_s: float = 5.0
    daemon_initial_delay_s: float = 1.0
    # 0 disables the limit: failed pipelines always go back to pending
    max_item_attempts: int = 5
    batch_limit: int = 50

    # === Pipeline ===
    rating_min: float = 85.0
    rating_max: float = 100.0
    rating_default: float = 90.0
    fallback_disclaimer_age_years: int = 30

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    # --- Validators ---

    @field_validator("daemon_max_concurrent", "cache_memory_capacity")
    @classmethod
    def validate_positive(cls, v: int, info) -> int:  # noqa: N805
        if v < 1:
            raise ValueError(f"{info.field_name} must be >= 1")
        return v

    @field_validator("max_item_attempts", "retry_max_retries")
    @classmethod
    def validate_non_negative(cls, v: int, info) -> int:  # noqa: N805
        if v < 0:
            raise ValueError(f"{info.field_name} must be >= 0")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        if self.cache_backend == "redis" and not self.cache_redis_url:
            errors.append("CACHE_BACKEND=redis requires CACHE_REDIS_URL")

        if self.rating_min > self.rating_max:
            errors.append("RATING_MIN must be <= RATING_MAX")
        elif not self.rating_min <= self.rating_default <= self.rating_max:
            errors.append("RATING_DEFAULT must lie within [RATING_MIN, RATING_MAX]")

        if self.llm_call_timeout_s <= 0:
            errors.append("LLM_CALL_TIMEOUT_S must be > 0")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def llm_fallback_models_list(self) -> list[str]:
        """Parse comma-separated fallback model list."""
        return [m.strip() for m in self.llm_fallback_models.split(",") if m.strip()]

    @property
    def llm_models_list(self) -> list[str]:
        """Preferred model followed by fallbacks, without duplicates."""
        models = [self.llm_default_model]
        for model in self.llm_fallback_models_list:
            if model not in models:
                models.append(model)
        return models


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or CLI flags).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
