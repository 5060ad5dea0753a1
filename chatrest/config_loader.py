"""Config Loader - Reads the runtime YAML file into a RuntimeConfig.

String values may reference environment variables so tokens stay out of
config files:

    client:
      base_url: ${CHAT_API_URL:-https://chat.example.com/api/v10}
      token: Bot ${CHAT_BOT_TOKEN}

``${NAME}`` must be set; ``${NAME:-fallback}`` uses fallback when NAME is
unset or empty.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from chatrest.models import RuntimeConfig


class ConfigError(Exception):
    """Raised when configuration loading fails."""


_ENV_VAR_PATTERN = re.compile(r"\$\{(?P<name>[A-Za-z_][A-Za-z0-9_]*)(?::-(?P<default>[^}]*))?\}")


def load_runtime_config(config_path: Path) -> RuntimeConfig:
    """Load and validate a runtime config file.

    Raises:
        ConfigError: If the file is missing, is not a YAML mapping, references
            an unset environment variable, or fails validation.
    """
    raw_config = _read_yaml_mapping(Path(config_path))
    expanded = _expand(raw_config, location="")
    try:
        return RuntimeConfig.model_validate(expanded)
    except ValidationError as e:
        raise ConfigError(f"Invalid config structure in {config_path}: {e}") from e


def _read_yaml_mapping(config_path: Path) -> dict[str, Any]:
    if not config_path.is_file():
        raise ConfigError(f"Config file not found: {config_path}")
    try:
        with config_path.open("r", encoding="utf-8") as f:
            loaded = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e
    if not isinstance(loaded, dict):
        raise ConfigError(f"Config file {config_path} must be a YAML mapping at the top level")
    return loaded


def _expand(data: Any, location: str) -> Any:
    """Expand environment references in every string below data."""
    if isinstance(data, str):
        return _expand_string(data, location)
    if isinstance(data, dict):
        return {
            key: _expand(value, f"{location}.{key}" if location else str(key))
            for key, value in data.items()
        }
    if isinstance(data, list):
        return [_expand(item, f"{location}[{i}]") for i, item in enumerate(data)]
    return data


def _expand_string(value: str, location: str) -> str:
    def lookup(match: re.Match) -> str:
        name = match.group("name")
        fallback = match.group("default")
        resolved = os.environ.get(name)
        if resolved:
            return resolved
        if fallback is not None:
            return fallback
        if resolved is None:
            raise ConfigError(f"Environment variable '{name}' used by '{location}' is not set")
        return resolved

    return _ENV_VAR_PATTERN.sub(lookup, value)
