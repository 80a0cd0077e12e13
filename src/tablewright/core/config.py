"""Runtime settings for the schema and endpoint registries.

Resolution order for every value: explicit argument, environment variable,
built-in default.
"""

from __future__ import annotations

import os
from typing import Any

from pydantic import BaseModel, Field

DEFAULT_DATABASE_URL = "sqlite:///./tablewright.db"
DEFAULT_BASE_PATH = "/api/designer/tables"


def get_database_url(url: str | None = None) -> str:
    """Resolve database URL from an explicit value, TABLEWRIGHT_URL, or default."""
    if url:
        return url
    if env_url := os.getenv("TABLEWRIGHT_URL"):
        return env_url
    return DEFAULT_DATABASE_URL


class RegistrySettings(BaseModel):
    """Schema registry cache and fetch settings."""

    cache_ttl_seconds: float = Field(default=300.0, gt=0, description="Cache entry lifetime")
    fetch_timeout_seconds: float = Field(
        default=10.0, gt=0, description="Maximum wait for one schema source call"
    )

    @classmethod
    def from_env(cls, **overrides: Any) -> RegistrySettings:
        """Build settings from TABLEWRIGHT_CACHE_TTL / TABLEWRIGHT_FETCH_TIMEOUT."""
        values: dict[str, Any] = {}
        if ttl := os.getenv("TABLEWRIGHT_CACHE_TTL"):
            values["cache_ttl_seconds"] = ttl
        if timeout := os.getenv("TABLEWRIGHT_FETCH_TIMEOUT"):
            values["fetch_timeout_seconds"] = timeout
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls.model_validate(values)


class RateLimit(BaseModel):
    """Requests allowed per window, in seconds."""

    requests: int = Field(default=100, gt=0)
    window: int = Field(default=60, gt=0)


class EndpointRegistryConfig(BaseModel):
    """Defaults applied to every registered endpoint."""

    auto_register: bool = True
    enable_caching: bool = True
    enable_rate_limiting: bool = False
    enable_authentication: bool = True
    default_cache_ttl: int = Field(default=300, ge=0)
    default_rate_limit: RateLimit = Field(default_factory=RateLimit)
    api_version: str = "v1"
    base_path: str = DEFAULT_BASE_PATH

    @classmethod
    def from_env(cls, **overrides: Any) -> EndpointRegistryConfig:
        """Build config honouring TABLEWRIGHT_API_BASE_PATH and TABLEWRIGHT_CACHE_TTL."""
        values: dict[str, Any] = {}
        if base_path := os.getenv("TABLEWRIGHT_API_BASE_PATH"):
            values["base_path"] = base_path
        if ttl := os.getenv("TABLEWRIGHT_CACHE_TTL"):
            values["default_cache_ttl"] = int(float(ttl))
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls.model_validate(values)
