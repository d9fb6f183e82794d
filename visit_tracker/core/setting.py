"""
Configuration Settings

This module defines application configuration using Pydantic Settings.
All configuration is loaded from environment variables or .env file.

Design Decisions:
- Uses pydantic-settings for type-safe configuration
- Supports multiple environments (production, staging, dev)
- Counter keys live under a dedicated prefix so clears never touch other keys
- Cache TTLs are configurable; defaults are 1 second for stats and 24 hours
  for country lookups
"""

from __future__ import annotations

from enum import Enum
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

__all__ = ["Settings", "settings"]


class EnvSettingsOptions(Enum):
    """Environment options for deployment."""
    production = "production"
    staging = "staging"
    development = "dev"


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables or .env file.
    """
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    # Project Configuration
    ENV_SETTING: EnvSettingsOptions = Field(
        default=EnvSettingsOptions.development,
        description="Environment setting (production, staging, dev)"
    )
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Root log level"
    )
    CORS_ORIGINS: List[str] = Field(
        default=["*"],
        description="Origins allowed to call the API from a browser"
    )

    # Rate Limiting
    RATE_LIMIT_ENABLED: bool = Field(
        default=True,
        description="Apply per-client request limits; turn off for load testing"
    )

    # Redis Configuration
    REDIS_URL: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection string"
    )
    REDIS_SOCKET_TIMEOUT: float = Field(
        default=2.0,
        description="Seconds to wait on a Redis socket before failing"
    )
    COUNTER_KEY_PREFIX: str = Field(
        default="visits:",
        description="Namespace prefix for per-country counter keys"
    )
    REDIS_SCAN_COUNT: int = Field(
        default=500,
        description="COUNT hint passed to each SCAN call"
    )

    # Stats Cache Configuration
    STATS_CACHE_TTL_SECONDS: float = Field(
        default=1.0,
        description="How long an aggregated stats snapshot is served before rescanning"
    )

    # Country Reference Configuration
    COUNTRY_API_URL: str = Field(
        default="https://restcountries.com/v3.1",
        description="Base URL of the remote country reference API"
    )
    COUNTRY_API_TIMEOUT_SECONDS: float = Field(
        default=3.0,
        description="Timeout for remote country lookups before falling back to the static list"
    )
    COUNTRY_CACHE_TTL_SECONDS: float = Field(
        default=86400.0,
        description="How long remote country answers are cached (24 hours)"
    )
    COUNTRY_CACHE_MAX_SIZE: int = Field(
        default=1024,
        description="Maximum number of country codes kept in the lookup cache"
    )
    COUNTRY_LISTING_RETRY_SECONDS: float = Field(
        default=60.0,
        description="Seconds before retrying the remote country listing after it failed"
    )


settings = Settings()
