"""Unit tests for XDG path management.

Tests for the paths module that provides XDG-compliant directory paths.
"""

import os
from pathlib import Path
from unittest.mock import patch

from packsync.core.paths import (
    APP_NAME,
    PROJECT_DIR_NAME,
    get_config_dir,
    get_file_manifest_path,
    get_global_state_path,
    get_index_path,
    get_lock_path,
    get_project_state_path,
    get_registry_path,
    get_state_dir,
)


class TestGetConfigDir:
    """Tests for get_config_dir function."""

    def test_default_config_dir(self) -> None:
        """get_config_dir returns default path when XDG_CONFIG_HOME not set."""
        with patch.dict(os.environ, {}, clear=True):
            os.environ.pop("XDG_CONFIG_HOME", None)

            result = get_config_dir()

        assert result == Path.home() / ".config" / APP_NAME

    def test_respects_xdg_config_home(self, tmp_path: Path) -> None:
        """get_config_dir respects XDG_CONFIG_HOME environment variable."""
        with patch.dict(os.environ, {"XDG_CONFIG_HOME": str(tmp_path)}):
            result = get_config_dir()

        assert result == tmp_path / APP_NAME


class TestGetStateDir:
    """Tests for get_state_dir function."""

    def test_default_state_dir(self) -> None:
        """get_state_dir returns default path when XDG_STATE_HOME not set."""
        with patch.dict(os.environ, {}, clear=True):
            os.environ.pop("XDG_STATE_HOME", None)

            result = get_state_dir()

        assert result == Path.home() / ".local" / "state" / APP_NAME

    def test_state_files_live_in_state_dir(self, state_dir: Path) -> None:
        """Global state, index, manifest, registry and lock share the state dir."""
        assert get_global_state_path() == state_dir / "global-state.json"
        assert get_index_path() == state_dir / "index.toml"
        assert get_file_manifest_path() == state_dir / "manifest"
        assert get_registry_path() == state_dir / "registry.toml"
        assert get_lock_path() == state_dir / "lock"


class TestProjectPaths:
    """Tests for per-project paths."""

    def test_project_state_path(self, tmp_path: Path) -> None:
        """Project state lives in the project's own directory."""
        assert get_project_state_path(tmp_path) == tmp_path / PROJECT_DIR_NAME / "state.json"
