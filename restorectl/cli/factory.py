"""Factories wiring config into clients, stores and monitors.

CLI commands never build concrete implementations directly; they ask
these helpers so tests can patch a single seam.
"""

from restorectl.cli.config import RestoreCtlConfig
from restorectl.cli.http_client import HttpClient
from restorectl.services.job_monitor import JobMonitor
from restorectl.services.settings_store import SettingsStore
from restorectl.utils.paths import resolve_settings_path


def get_client(config: RestoreCtlConfig, base_url: str | None = None) -> HttpClient:
    """Create the HTTP client for the configured restore server.

    Args:
        config: Loaded configuration.
        base_url: Overrides ``server.url`` when given (``--server`` flag).

    Returns:
        An unopened HttpClient; use it with ``async with``.
    """
    return HttpClient(
        base_url=base_url or config.server.url,
        timeout=config.server.timeout,
    )


def get_settings_store(config: RestoreCtlConfig) -> SettingsStore:
    """Create the settings store at the configured (or default) path."""
    return SettingsStore(resolve_settings_path(config.settings.path))


def get_monitor(client, config: RestoreCtlConfig) -> JobMonitor:
    """Create a job monitor using the ``monitor`` config section."""
    return JobMonitor(
        client,
        poll_interval=config.monitor.poll_interval,
        max_output_length=config.monitor.max_output_length,
        truncate_output=config.monitor.truncate_output,
    )
