"""XDG-compliant path management for packsync.

This module provides standardized paths following the XDG Base Directory
Specification for configuration and state storage, plus the fixed
per-project locations used by project scopes.

XDG defaults:
- Config: ~/.config/packsync/
- State: ~/.local/state/packsync/

Project layout:
- State: <project>/.packsync/state.json
- Copied files: <project>/.packsync/<kind>/
"""

import os
from pathlib import Path

# Application identifier for directory naming
APP_NAME = "packsync"

# Per-project directory holding state and copied pack files
PROJECT_DIR_NAME = ".packsync"

PROJECT_STATE_FILENAME = "state.json"


def _get_xdg_dir(env_var: str, default_subdir: str) -> Path:
    """Get XDG directory respecting environment variable override.

    Args:
        env_var: XDG environment variable name (e.g., "XDG_CONFIG_HOME").
        default_subdir: Default subdirectory under home (e.g., ".config").

    Returns:
        Path to the application-specific directory.
    """
    base = os.environ.get(env_var)
    if base:
        return Path(base) / APP_NAME
    return Path.home() / default_subdir / APP_NAME


def get_config_dir() -> Path:
    """Get the configuration directory path.

    The configuration directory doubles as the target directory of the
    global scope: globally copied pack files and the global generated
    file live here.

    Returns:
        Path to ~/.config/packsync/ (or XDG_CONFIG_HOME/packsync/).
    """
    return _get_xdg_dir("XDG_CONFIG_HOME", ".config")


def get_state_dir() -> Path:
    """Get the state directory path.

    State data includes the global scope state, the scope index, the file
    hash manifest, the pack registry and the process lock.

    Returns:
        Path to ~/.local/state/packsync/ (or XDG_STATE_HOME/packsync/).
    """
    return _get_xdg_dir("XDG_STATE_HOME", ".local/state")


def get_config_path() -> Path:
    """Get the engine configuration file path.

    Returns:
        Path to ~/.config/packsync/config.toml.
    """
    return get_config_dir() / "config.toml"


def get_global_state_path() -> Path:
    """Get the state file path of the global scope.

    Returns:
        Path to ~/.local/state/packsync/global-state.json.
    """
    return get_state_dir() / "global-state.json"


def get_index_path() -> Path:
    """Get the scope index file path.

    Returns:
        Path to ~/.local/state/packsync/index.toml.
    """
    return get_state_dir() / "index.toml"


def get_file_manifest_path() -> Path:
    """Get the file hash manifest path.

    Returns:
        Path to ~/.local/state/packsync/manifest.
    """
    return get_state_dir() / "manifest"


def get_registry_path() -> Path:
    """Get the external pack registry file path.

    Returns:
        Path to ~/.local/state/packsync/registry.toml.
    """
    return get_state_dir() / "registry.toml"


def get_packs_dir() -> Path:
    """Get the directory holding external pack checkouts.

    Returns:
        Path to ~/.local/state/packsync/packs/.
    """
    return get_state_dir() / "packs"


def get_lock_path() -> Path:
    """Get the process lock file path.

    Returns:
        Path to ~/.local/state/packsync/lock.
    """
    return get_state_dir() / "lock"


def get_project_dir(project_root: Path) -> Path:
    """Get the packsync directory inside a project.

    Args:
        project_root: Root directory of the project.

    Returns:
        Path to <project>/.packsync/.
    """
    return project_root / PROJECT_DIR_NAME


def get_project_state_path(project_root: Path) -> Path:
    """Get the state file path of a project scope.

    Args:
        project_root: Root directory of the project.

    Returns:
        Path to <project>/.packsync/state.json.
    """
    return get_project_dir(project_root) / PROJECT_STATE_FILENAME
