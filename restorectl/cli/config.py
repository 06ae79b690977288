"""YAML configuration loader with env var resolution and Pydantic validation.

Loads config from (priority order):
1. --config <path> CLI flag
2. ./restorectl.yaml (working directory)
3. ~/.restorectl/config.yaml (user home)

Environment variables override YAML: RESTORECTL_<SECTION>_<KEY>.
${VAR} references in YAML values resolve from environment at load time.
"""

import logging
import os
import re
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, field_validator

from restorectl.services.output_buffer import DEFAULT_MAX_OUTPUT_LENGTH

logger = logging.getLogger(__name__)

_ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")
ENV_PREFIX = "RESTORECTL_"


def resolve_env_vars(value: str) -> str:
    """Resolve ${VAR} references in a string from environment variables.

    Args:
        value: String potentially containing ${VAR} references.

    Returns:
        String with all ${VAR} references replaced by their env values.
        Missing env vars resolve to empty string.
    """
    def _replace(match: re.Match) -> str:
        return os.environ.get(match.group(1), "")

    return _ENV_VAR_PATTERN.sub(_replace, value)


def _resolve_env_vars_recursive(data: Any) -> Any:
    """Recursively resolve ${VAR} references in a nested data structure.

    Args:
        data: Dict, list, or scalar value to process.

    Returns:
        Same structure with all string values resolved.
    """
    if isinstance(data, str):
        return resolve_env_vars(data)
    elif isinstance(data, dict):
        return {k: _resolve_env_vars_recursive(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_resolve_env_vars_recursive(item) for item in data]
    return data


class ServerConfig(BaseModel):
    """Where the restore server lives."""

    url: str = "http://127.0.0.1:8080"
    timeout: float = 30.0


class MonitorConfig(BaseModel):
    """Job polling and output buffering."""

    poll_interval: float = Field(default=1.0, gt=0)
    max_output_length: int = Field(default=DEFAULT_MAX_OUTPUT_LENGTH, gt=0)
    truncate_output: bool = True


class SettingsConfig(BaseModel):
    """Location of the persistent settings file.

    None selects settings.json in the platform user-config directory.
    """

    path: str | None = None


class LoggingConfig(BaseModel):
    """Client-side logging."""

    level: str = "warning"
    format: Literal["text", "json"] = "text"
    file: str | None = None

    @field_validator("level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        if value.upper() not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level: {value}")
        return value.lower()


class RestoreCtlConfig(BaseModel):
    """Top-level configuration for the restore client."""

    server: ServerConfig = ServerConfig()
    monitor: MonitorConfig = MonitorConfig()
    settings: SettingsConfig = SettingsConfig()
    logging: LoggingConfig = LoggingConfig()


def _find_config_file() -> Path | None:
    """Search for config file in standard locations.

    Returns:
        Path to config file if found, None otherwise.
    """
    candidates = [
        Path.cwd() / "restorectl.yaml",
        Path.cwd() / "restorectl.yml",
        Path.home() / ".restorectl" / "config.yaml",
        Path.home() / ".restorectl" / "config.yml",
    ]
    for candidate in candidates:
        if candidate.exists():
            return candidate
    return None


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Apply RESTORECTL_<SECTION>_<KEY> env var overrides to config data.

    Matches section names by longest prefix, so
    ``RESTORECTL_MONITOR_POLL_INTERVAL`` maps to section ``monitor``,
    field ``poll_interval``.

    Args:
        data: Parsed YAML config dict.

    Returns:
        Config dict with env var overrides applied.
    """
    known_sections = sorted(
        RestoreCtlConfig.model_fields.keys(), key=len, reverse=True
    )
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        suffix = key[len(ENV_PREFIX):].lower()
        matched_section = None
        matched_field = None
        for section in known_sections:
            section_prefix = section + "_"
            if suffix.startswith(section_prefix):
                matched_section = section
                matched_field = suffix[len(section_prefix):]
                break
        if matched_section is None or not matched_field:
            continue
        if not isinstance(data.get(matched_section), dict):
            data[matched_section] = {}
        # Pydantic coerces numeric strings; only booleans need help here
        if value.lower() in ("true", "false"):
            data[matched_section][matched_field] = value.lower() == "true"
        else:
            data[matched_section][matched_field] = value
    return data


def load_config(config_path: str | None = None) -> RestoreCtlConfig:
    """Load restorectl configuration from YAML file with env var resolution.

    Args:
        config_path: Explicit path to config file. If None, searches
            standard locations (cwd, then ~/.restorectl/).

    Returns:
        Parsed and validated config; defaults (plus env overrides) when no
        file is found.

    Raises:
        FileNotFoundError: An explicit config_path does not exist.
        pydantic.ValidationError: The config content is invalid.
    """
    if config_path:
        path: Path | None = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
    else:
        path = _find_config_file()

    raw_data: dict[str, Any] = {}
    if path is not None:
        logger.info("Loading config from %s", path)
        with open(path) as f:
            raw_data = yaml.safe_load(f) or {}

    data = _resolve_env_vars_recursive(raw_data)
    data = _apply_env_overrides(data)
    return RestoreCtlConfig(**data)
