"""Root-level pytest fixtures for all tests.

Every test runs with RESTORECTL_* variables cleared and with the working
directory and home directory pointed at a temporary folder, so a developer's
own restorectl.yaml or settings file never leaks into a run.
"""

import os
from pathlib import Path

import pytest


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests requiring a running restore server"
    )


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch) -> Path:
    """Clear RESTORECTL_* env vars and sandbox cwd and HOME."""
    for key in list(os.environ):
        if key.startswith("RESTORECTL_"):
            monkeypatch.delenv(key, raising=False)
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def settings_path(tmp_path) -> Path:
    """Settings file location inside the test's temp directory."""
    return tmp_path / "state" / "settings.json"


@pytest.fixture
def config_file(tmp_path, settings_path) -> Path:
    """A restorectl.yaml pointing the settings store at ``settings_path``."""
    path = tmp_path / "restorectl-test.yaml"
    path.write_text(
        "server:\n"
        "  url: http://restore.test:8080\n"
        "monitor:\n"
        "  poll_interval: 0.01\n"
        "settings:\n"
        f"  path: {settings_path}\n"
        "logging:\n"
        "  level: warning\n"
    )
    return path
