"""Configuration loading and validation."""

from .models import (
    DEFAULT_BASE_URL,
    AppConfig,
    AuthSettings,
    CacheSettings,
    ClientConfig,
    LoggingConfig,
    RateLimitWindow,
)
from .loader import ConfigError, default_config_path, load_app_config

__all__ = [
    "DEFAULT_BASE_URL",
    # Config models
    "AppConfig",
    "AuthSettings",
    "CacheSettings",
    "ClientConfig",
    "LoggingConfig",
    "RateLimitWindow",
    # Loaders
    "ConfigError",
    "default_config_path",
    "load_app_config",
]
