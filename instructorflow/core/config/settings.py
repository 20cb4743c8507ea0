# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Application configuration settings using Pydantic Settings.

This module provides centralized configuration management for instructorflow.
Settings are loaded from environment variables with sensible defaults.

The Settings class is the main entry point and aggregates all subsettings.
A singleton instance is provided via get_settings() for dependency injection.

Example:
    >>> from instructorflow.core.config.settings import get_settings
    >>> settings = get_settings()
    >>> settings.orchestration.generation_deadline_seconds
    30.0
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Self

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_PROJECT_ROOT = Path(__file__).resolve().parents[3]


class LLMSettings(BaseSettings):
    """LLM provider configuration using LiteLLM.

    Supports multiple providers: ollama, openai, anthropic, google.
    LiteLLM handles provider routing based on model prefix.

    Attributes:
        default_provider: Default LLM provider to use.
        ollama_base_url: Base URL for Ollama server.
        ollama_default_model: Default Ollama model.
        openai_api_key: OpenAI API key.
        openai_default_model: Default OpenAI model.
        anthropic_api_key: Anthropic API key.
        anthropic_default_model: Default Anthropic model.
        google_api_key: Google AI API key.
        google_default_model: Default Google model.
        temperature: Sampling temperature for instructor responses.
        max_tokens: Upper bound on generated tokens per response.
    """

    model_config = SettingsConfigDict(
        env_prefix="LLM_",
        extra="ignore",
    )

    default_provider: Literal["ollama", "openai", "anthropic", "google"] = "ollama"

    ollama_base_url: str = Field(
        default="http://localhost:11434",
        validation_alias="OLLAMA_BASE_URL",
    )
    ollama_default_model: str = Field(
        default="qwen2.5:7b",
        validation_alias="OLLAMA_DEFAULT_MODEL",
    )

    openai_api_key: SecretStr | None = Field(
        default=None,
        validation_alias="OPENAI_API_KEY",
    )
    openai_default_model: str = Field(
        default="gpt-4o",
        validation_alias="OPENAI_DEFAULT_MODEL",
    )

    anthropic_api_key: SecretStr | None = Field(
        default=None,
        validation_alias="ANTHROPIC_API_KEY",
    )
    anthropic_default_model: str = Field(
        default="claude-3-5-sonnet-20241022",
        validation_alias="ANTHROPIC_DEFAULT_MODEL",
    )

    google_api_key: SecretStr | None = Field(
        default=None,
        validation_alias="GOOGLE_API_KEY",
    )
    google_default_model: str = Field(
        default="gemini-2.0-flash-exp",
        validation_alias="GOOGLE_DEFAULT_MODEL",
    )

    temperature: float = 0.7
    max_tokens: int = 800

    def get_default_model(self) -> str:
        """Get the default model for the configured provider.

        Returns:
            Model identifier string for the default provider.
        """
        models = {
            "ollama": f"ollama/{self.ollama_default_model}",
            "openai": self.openai_default_model,
            "anthropic": self.anthropic_default_model,
            "google": f"gemini/{self.google_default_model}",
        }
        return models[self.default_provider]

    def get_api_key(self) -> str | None:
        """Get the API key for the configured provider, if any."""
        keys = {
            "ollama": None,
            "openai": self.openai_api_key,
            "anthropic": self.anthropic_api_key,
            "google": self.google_api_key,
        }
        key = keys[self.default_provider]
        return key.get_secret_value() if key else None

    def get_api_base(self) -> str | None:
        """Get the API base URL for the configured provider, if any."""
        if self.default_provider == "ollama":
            return self.ollama_base_url
        return None


class DatabaseSettings(BaseSettings):
    """Persistence configuration.

    Attributes:
        backend: Storage adapter to use ("sql" or "memory").
        url: SQLAlchemy async database URL.
        echo: Log every SQL statement.
        pool_size: Connection pool size (ignored for SQLite).
        max_overflow: Maximum overflow connections (ignored for SQLite).
    """

    model_config = SettingsConfigDict(
        env_prefix="DATABASE_",
        extra="ignore",
    )

    backend: Literal["sql", "memory"] = "sql"
    url: str = "sqlite+aiosqlite:///./instructorflow.db"
    echo: bool = False
    pool_size: int = 5
    max_overflow: int = 10

    @property
    def is_sqlite(self) -> bool:
        """Check if the configured URL targets SQLite."""
        return self.url.startswith("sqlite")


class OrchestrationSettings(BaseSettings):
    """Interaction pipeline tuning.

    Attributes:
        generation_deadline_seconds: Hard deadline for one generation call.
        transient_retries: Retries after a transient generation failure.
        backoff_base_seconds: First backoff delay; doubles per retry.
        backoff_max_seconds: Cap on a single backoff delay.
        tier_b_regeneration_limit: Regenerations allowed for high-severity violations.
        tier_c_regeneration_limit: Regenerations allowed for medium-severity violations.
        history_token_budget: Approximate token budget for conversation history.
        history_max_turns: Most recent interactions loaded as history.
        rate_limit_window_seconds: Width of the sliding rate-limit window.
        regeneration_temperature_step: Temperature reduction per regeneration.
    """

    model_config = SettingsConfigDict(
        env_prefix="ORCHESTRATION_",
        extra="ignore",
    )

    generation_deadline_seconds: float = Field(default=30.0, gt=0)
    transient_retries: int = Field(default=2, ge=0)
    backoff_base_seconds: float = Field(default=0.5, ge=0)
    backoff_max_seconds: float = Field(default=8.0, ge=0)
    tier_b_regeneration_limit: int = Field(default=2, ge=0)
    tier_c_regeneration_limit: int = Field(default=1, ge=0)
    history_token_budget: int = Field(default=1500, ge=0)
    history_max_turns: int = Field(default=10, ge=0)
    rate_limit_window_seconds: float = Field(default=60.0, gt=0)
    regeneration_temperature_step: float = Field(default=0.2, ge=0)


class PathSettings(BaseSettings):
    """Filesystem locations of YAML data.

    Attributes:
        prompts_dir: Directory holding prompt template YAML files.
        profiles_dir: Directory holding instructor profile YAML files.
    """

    model_config = SettingsConfigDict(
        env_prefix="INSTRUCTORFLOW_",
        extra="ignore",
    )

    prompts_dir: Path = _PROJECT_ROOT / "config" / "prompts"
    profiles_dir: Path = _PROJECT_ROOT / "config" / "profiles"


class Settings(BaseSettings):
    """Main application settings aggregating all subsettings.

    Use get_settings() to obtain a cached singleton instance.

    Attributes:
        environment: Current environment (development, staging, production).
        debug: Enable debug mode.
        log_level: Logging level.
        llm: LLM provider settings.
        database: Persistence settings.
        orchestration: Interaction pipeline settings.
        paths: YAML data locations.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "DEBUG"

    llm: LLMSettings = Field(default_factory=LLMSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    orchestration: OrchestrationSettings = Field(default_factory=OrchestrationSettings)
    paths: PathSettings = Field(default_factory=PathSettings)

    @model_validator(mode="after")
    def validate_production_settings(self) -> Self:
        """Validate that production settings are properly configured.

        Raises:
            ValueError: If running in production with the in-memory store.
        """
        if self.environment == "production" and self.database.backend == "memory":
            raise ValueError(
                "In-memory storage loses all learner state on restart. "
                "Set DATABASE_BACKEND=sql in production."
            )
        return self

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call clear_settings_cache() if you need to reload settings.

    Returns:
        Cached Settings instance.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Call this if you need to reload settings from environment.
    Useful for testing.
    """
    get_settings.cache_clear()
