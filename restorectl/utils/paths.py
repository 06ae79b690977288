"""File path resolution using platformdirs.

Settings go to the platform config directory:
  Linux: ~/.config/restorectl/
  macOS: ~/Library/Application Support/restorectl/
  Windows: %LOCALAPPDATA%/restorectl/
"""

from pathlib import Path

import platformdirs

APP_NAME = "restorectl"


def get_config_dir() -> Path:
    """Return the directory for persistent client settings."""
    return Path(platformdirs.user_config_dir(APP_NAME, appauthor=False))


def get_default_settings_path() -> Path:
    """Return the default settings file path."""
    return get_config_dir() / "settings.json"


def resolve_settings_path(configured: str | None) -> Path:
    """Return the configured settings path, or the platform default."""
    if configured:
        return Path(configured).expanduser()
    return get_default_settings_path()
