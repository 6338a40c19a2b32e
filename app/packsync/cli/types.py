"""Shared helpers for CLI commands.

Loading the engine configuration, the pack catalog and the target scope
is the same for every command; failures end the command with exit code 1.
"""

from pathlib import Path

import typer

from packsync.core.config import EngineConfig, load_engine_config
from packsync.core.errors import PacksyncError
from packsync.core.scope import SyncScope
from packsync.packs.catalog import PackCatalog
from packsync.packs.scripts import ScriptRunner
from packsync.utils.formatting import print_error, print_warning


def get_config() -> EngineConfig:
    """Load the engine configuration, exiting on a malformed file."""
    try:
        return load_engine_config()
    except PacksyncError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e


def get_catalog(config: EngineConfig, project_root: Path | None = None) -> PackCatalog:
    """Load built-in and registered packs.

    Registered packs that could not be loaded are reported as warnings.
    """
    try:
        catalog = PackCatalog.load(
            runner=ScriptRunner(config.script_timeout_seconds),
            project_root=project_root,
        )
    except PacksyncError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e

    for identifier, reason in sorted(catalog.failures.items()):
        print_warning(f"Pack '{identifier}' not loaded: {reason}")
    return catalog


def get_scope(project: Path | None, global_scope: bool, config: EngineConfig) -> SyncScope:
    """Select the global scope or a project scope (the current directory by default)."""
    if global_scope and project is not None:
        print_error("Use either --project or --global, not both.")
        raise typer.Exit(code=1)
    if global_scope:
        return SyncScope.global_(config)
    root = project if project is not None else Path.cwd()
    if not root.is_dir():
        print_error(f"Project directory not found: {root}")
        raise typer.Exit(code=1)
    return SyncScope.project(root, config)
