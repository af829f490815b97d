"""
Pydantic configuration models for Tellet Admin.

These models provide type-safe configuration with validation for:
- API client settings (timeouts, retries, limits)
- Cache locations and lifetimes
- Logging and token storage
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

from telletadmin import __version__

DEFAULT_BASE_URL = "https://api.tellet.ai"
TELLET_HOME = Path.home() / ".tellet"


def _default_base_url() -> str:
    return os.environ.get("TELLET_API_URL") or DEFAULT_BASE_URL


# =============================================================================
# API Client Configuration
# =============================================================================


class RateLimitWindow(BaseModel):
    """Sliding-window request budget."""

    model_config = ConfigDict(frozen=True)

    max_requests: int = Field(
        default=100,
        ge=1,
        description="Maximum requests allowed within one window",
    )
    per_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Length of the sliding window in seconds",
    )


class ClientConfig(BaseModel):
    """Immutable configuration owned by one API client."""

    model_config = ConfigDict(frozen=True)

    base_url: str = Field(
        default_factory=_default_base_url,
        validate_default=True,
        description="API base URL",
    )
    timeout: float = Field(
        default=30.0,
        gt=0,
        description="Per-attempt request timeout in seconds",
    )
    retries: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Maximum retries for transient failures",
    )
    retry_delay: float = Field(
        default=1.0,
        ge=0,
        description="Base delay in seconds for exponential backoff",
    )
    max_concurrent: int = Field(
        default=5,
        ge=1,
        le=100,
        description="Maximum requests in flight at once",
    )
    rate_limit: RateLimitWindow = Field(default_factory=RateLimitWindow)
    user_agent: str = Field(
        default=f"TelletAdminCLI/{__version__}",
        description="User-Agent header sent with every request",
    )

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize the base URL so paths join cleanly."""
        return v.rstrip("/")


# =============================================================================
# Cache / Auth / Logging
# =============================================================================


class CacheSettings(BaseModel):
    """Persistent cache settings."""

    dir: Path = Field(
        default=TELLET_HOME / "cache",
        description="Directory holding one JSON file per cached key",
    )
    enabled: bool = Field(
        default=True,
        description="Use cached organization/project listings",
    )


class AuthSettings(BaseModel):
    """Token storage settings."""

    token_path: Path = Field(
        default=TELLET_HOME / "auth.json",
        description="Where the bearer token is cached between runs",
    )


class LoggingConfig(BaseModel):
    """Logging settings."""

    level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR)",
    )
    file: Path | None = Field(
        default=None,
        description="Log file path",
    )
    json_format: bool = Field(
        default=True,
        description="Use JSON format for file logs",
    )
    rich_console: bool = Field(
        default=True,
        description="Use Rich for console output",
    )


# =============================================================================
# Application Configuration
# =============================================================================


class AppConfig(BaseModel):
    """Root application configuration.

    This is the main configuration object loaded from config.yaml.
    """

    api: ClientConfig = Field(default_factory=ClientConfig)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    auth: AuthSettings = Field(default_factory=AuthSettings)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
