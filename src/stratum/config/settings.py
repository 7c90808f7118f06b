"""
Application settings using Pydantic.

Provides environment-based configuration loading with STRATUM_ prefix.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="STRATUM_",
    )

    # Logging
    log_level: str = "INFO"

    # Sequencer
    default_provider: str = "memory"
    max_workers: int = Field(default=1, ge=1)

    # Resource manager API
    management_url: str = "https://management.azure.com"
    subscription_id: str | None = None
    access_token: str | None = None
    api_versions: dict[str, str] = {}

    # HTTP client settings
    http_timeout: float = 30.0
    http_max_retries: int = Field(default=3, ge=1)
    http_retry_backoff_factor: float = 0.5

    # Long-running operation polling
    lro_poll_interval: float = 5.0
    lro_max_polls: int = Field(default=120, ge=1)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
