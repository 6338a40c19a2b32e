"""Unit tests for engine configuration loading and saving."""

from pathlib import Path

import pytest
from packsync.core.config import (
    ConfigError,
    ConfigParseError,
    EngineConfig,
    load_engine_config,
    save_engine_config,
)
from packsync.core.paths import get_config_path


class TestEngineConfig:
    """Tests for the EngineConfig model."""

    def test_defaults(self) -> None:
        """EngineConfig has sensible defaults."""
        config = EngineConfig()

        assert config.script_timeout_seconds == 30
        assert config.generated_file_name == "AGENTS.local.md"
        assert config.global_generated_file_name == "AGENTS.md"
        assert config.prune_stale_scopes is True

    def test_rejects_out_of_range_timeout(self) -> None:
        """Timeouts outside 1-3600 seconds are rejected."""
        with pytest.raises(ValueError):
            EngineConfig(script_timeout_seconds=0)


class TestLoadEngineConfig:
    """Tests for load_engine_config function."""

    def test_missing_file_gives_defaults(self) -> None:
        """A missing config file yields the defaults."""
        assert load_engine_config() == EngineConfig()

    def test_loads_values(self, tmp_path: Path) -> None:
        """Values from the file override defaults."""
        path = tmp_path / "config.toml"
        path.write_text('script_timeout_seconds = 5\ngenerated_file_name = "NOTES.md"\n')

        config = load_engine_config(path)

        assert config.script_timeout_seconds == 5
        assert config.generated_file_name == "NOTES.md"

    def test_invalid_toml(self, tmp_path: Path) -> None:
        """Malformed TOML raises ConfigParseError."""
        path = tmp_path / "config.toml"
        path.write_text("script_timeout_seconds = \n")

        with pytest.raises(ConfigParseError):
            load_engine_config(path)

    def test_unknown_key(self, tmp_path: Path) -> None:
        """Unknown keys are rejected."""
        path = tmp_path / "config.toml"
        path.write_text("colour = 'blue'\n")

        with pytest.raises(ConfigError, match="Invalid config content"):
            load_engine_config(path)


class TestSaveEngineConfig:
    """Tests for save_engine_config function."""

    def test_round_trip_default_path(self) -> None:
        """A saved config loads back unchanged from the default location."""
        config = EngineConfig(script_timeout_seconds=90, prune_stale_scopes=False)

        saved = save_engine_config(config)

        assert saved == get_config_path()
        assert load_engine_config() == config
