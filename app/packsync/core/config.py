"""Engine configuration.

This module provides the configuration model and I/O functions for the
convergence engine. Configuration is stored in ~/.config/packsync/config.toml;
a missing file means all defaults apply.
"""

import tomllib
from pathlib import Path
from typing import Annotated

import tomli_w
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from packsync.core.errors import PacksyncError
from packsync.core.paths import get_config_path
from packsync.utils.fileio import write_atomic


class EngineConfig(BaseModel):
    """Configuration for the convergence engine.

    Attributes:
        script_timeout_seconds: Timeout for pack scripts and doctor scripts.
        generated_file_name: Generated file name, relative to a project root.
        global_generated_file_name: Generated file name in the global scope.
        prune_stale_scopes: Drop index entries of vanished projects on status.
    """

    model_config = ConfigDict(extra="forbid")

    script_timeout_seconds: Annotated[
        int,
        Field(ge=1, le=3600, description="Pack script timeout in seconds (1-3600)"),
    ] = 30
    generated_file_name: Annotated[
        str,
        Field(min_length=1, description="Generated file in project scopes"),
    ] = "AGENTS.local.md"
    global_generated_file_name: Annotated[
        str,
        Field(min_length=1, description="Generated file in the global scope"),
    ] = "AGENTS.md"
    prune_stale_scopes: Annotated[
        bool,
        Field(description="Prune index entries of projects that no longer exist"),
    ] = True


class ConfigError(PacksyncError):
    """Base exception for engine configuration errors."""


class ConfigParseError(ConfigError):
    """Raised when the config file cannot be parsed."""


def load_engine_config(path: Path | None = None) -> EngineConfig:
    """Load engine configuration from a TOML file.

    Args:
        path: Path to the config file. If None, uses the default config path.

    Returns:
        Validated EngineConfig; defaults if the file does not exist.

    Raises:
        ConfigParseError: If the TOML syntax is invalid.
        ConfigError: If the file cannot be read or doesn't match the schema.
    """
    config_path = path or get_config_path()

    if not config_path.exists():
        return EngineConfig()

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigParseError(f"Invalid TOML syntax: {e}") from e
    except OSError as e:
        raise ConfigError(f"Failed to read config: {e}") from e

    try:
        return EngineConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid config content: {e}") from e


def save_engine_config(config: EngineConfig, path: Path | None = None) -> Path:
    """Save engine configuration to a TOML file atomically.

    Args:
        config: The EngineConfig to save.
        path: Path to save the config. If None, uses the default config path.

    Returns:
        Path where the config was saved.

    Raises:
        ConfigError: If the file cannot be written.
    """
    config_path = path or get_config_path()
    try:
        write_atomic(config_path, tomli_w.dumps(config.model_dump()))
    except OSError as e:
        raise ConfigError(f"Failed to write config: {e}") from e
    return config_path
