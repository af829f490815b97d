"""
Configuration loader for YAML files.

Loads and validates configuration from YAML files into Pydantic models.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from telletadmin.core.errors import TelletError

from .models import TELLET_HOME, AppConfig

_ENV_PATTERN = re.compile(r"\$\{([^}:]+)(?::-([^}]*))?\}")


class ConfigError(TelletError):
    """Configuration loading or validation error."""

    code = "CONFIG_ERROR"
    exit_code = 7

    def __init__(self, message: str, path: Path | None = None, details: str | None = None):
        super().__init__(message, {"path": str(path) if path else None, "details": details})
        self.path = path
        self.reason = details


def _load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file and return its contents as a dictionary.

    Raises:
        ConfigError: If file cannot be read or parsed
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}", path=path, details=str(e)) from e
    except OSError as e:
        raise ConfigError(f"Cannot read {path}", path=path, details=str(e)) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a mapping at the top of {path}", path=path)
    return data


def _expand_env_vars(data: Any) -> Any:
    """Recursively expand ${VAR} and ${VAR:-default} in string values."""
    if isinstance(data, str):
        def replacer(match: re.Match[str]) -> str:
            return os.environ.get(match.group(1), match.group(2) or "")

        return _ENV_PATTERN.sub(replacer, data)
    if isinstance(data, dict):
        return {k: _expand_env_vars(v) for k, v in data.items()}
    if isinstance(data, list):
        return [_expand_env_vars(item) for item in data]
    return data


def default_config_path() -> Path:
    """Config file location, overridable with TELLET_CONFIG."""
    env_path = os.environ.get("TELLET_CONFIG")
    if env_path:
        return Path(env_path).expanduser()
    return TELLET_HOME / "config.yaml"


def load_app_config(
    path: Path | str | None = None,
    expand_env: bool = True,
) -> AppConfig:
    """Load application configuration from YAML file.

    Args:
        path: Path to config.yaml (default: ``default_config_path()``)
        expand_env: Whether to expand environment variables

    Returns:
        Validated AppConfig instance; defaults when the file does not exist

    Raises:
        ConfigError: If configuration is invalid
    """
    path = Path(path).expanduser() if path is not None else default_config_path()

    if not path.exists():
        return AppConfig()

    data = _load_yaml_file(path)

    if expand_env:
        data = _expand_env_vars(data)

    try:
        return AppConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(
            f"Invalid configuration in {path}",
            path=path,
            details=str(e),
        ) from e
