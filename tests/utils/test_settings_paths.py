"""Tests for platform path resolution."""

from pathlib import Path
from unittest.mock import patch

from restorectl.utils.paths import (
    APP_NAME,
    get_config_dir,
    get_default_settings_path,
    resolve_settings_path,
)


class TestPaths:
    """Tests for platformdirs-backed locations."""

    def test_config_dir_uses_platformdirs(self):
        with patch("restorectl.utils.paths.platformdirs.user_config_dir", return_value="/cfg/x") as mock:
            assert get_config_dir() == Path("/cfg/x")
        mock.assert_called_once_with(APP_NAME, appauthor=False)

    def test_default_settings_file(self):
        assert get_default_settings_path().name == "settings.json"
        assert get_default_settings_path().parent == get_config_dir()

    def test_resolve_configured_path(self, tmp_path):
        assert resolve_settings_path(str(tmp_path / "s.json")) == tmp_path / "s.json"

    def test_resolve_expands_user(self):
        assert resolve_settings_path("~/s.json") == Path.home() / "s.json"

    def test_resolve_default(self):
        assert resolve_settings_path(None) == get_default_settings_path()
