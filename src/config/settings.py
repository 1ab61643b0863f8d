"""Environment configuration and validation.

This module defines strongly-typed application settings loaded from environment variables
(optionally via a local `.env` file).

It enforces the invariants the search pipeline relies on, such as a positive deadline for the
text-generation call and a bounded result cache.
"""

from __future__ import annotations

from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    telegram_bot_token: str = Field(alias="TELEGRAM_BOT_TOKEN")
    dataset_path: str | None = Field(default=None, alias="DATASET_PATH")

    llm_enabled: bool = Field(default=True, alias="LLM_ENABLED")
    llm_base_url: str = Field(default="http://127.0.0.1:11434", alias="LLM_BASE_URL")
    llm_model: str = Field(default="qwen2.5:0.5b-instruct", alias="LLM_MODEL")
    llm_timeout_s: float = Field(default=25.0, alias="LLM_TIMEOUT_S")

    cache_max_entries: int = Field(default=256, alias="CACHE_MAX_ENTRIES")
    schema_max_samples: int = Field(default=4, alias="SCHEMA_MAX_SAMPLES")
    result_preview_rows: int = Field(default=5, alias="RESULT_PREVIEW_ROWS")

    @field_validator("llm_timeout_s")
    @classmethod
    def validate_timeout(cls, value: float) -> float:
        """The AI tier must always be bounded; a non-positive deadline is rejected at startup."""

        if value <= 0:
            raise ValueError("LLM_TIMEOUT_S must be > 0")
        return value

    @field_validator("cache_max_entries", "schema_max_samples")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be a positive integer")
        return value

    @model_validator(mode="after")
    def validate_llm_config(self) -> Settings:
        """Validate the optional AI tier configuration.

        If the AI tier is enabled, a base URL and a model name must be provided.
        """

        if self.llm_enabled and not (self.llm_base_url.strip() and self.llm_model.strip()):
            raise ValueError("LLM_BASE_URL and LLM_MODEL are required when LLM_ENABLED=true")
        return self


def load_settings() -> Settings:
    """Load and validate settings from environment variables.

    Raises:
        RuntimeError: If the environment configuration is missing or invalid.
    """

    try:
        return Settings()
    except ValidationError as exc:
        # Raising here is fine: caller can decide how to handle startup errors.
        raise RuntimeError(f"Invalid environment configuration: {exc}") from exc
