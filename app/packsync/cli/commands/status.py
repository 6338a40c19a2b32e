"""Status command implementation.

Lists every scope recorded in the index with its configured packs.
"""

import typer

from packsync.cli.types import get_config
from packsync.core.errors import PacksyncError
from packsync.core.index import GLOBAL_SENTINEL, ScopeIndex
from packsync.core.lock import file_lock
from packsync.utils.formatting import (
    console,
    create_scope_table,
    print_error,
    print_info,
    print_warning,
)


def _prune(index: ScopeIndex) -> list[str]:
    """Drop stale project scopes and persist the index under the lock."""
    with file_lock():
        pruned = index.prune_stale()
        if pruned:
            index.save()
    return pruned


def status() -> None:
    """Show the scopes packsync manages and the packs configured in each.

    Project scopes whose directory no longer exists are pruned from the
    index unless pruning is disabled in the configuration.

    Examples:
        packsync status
    """
    config = get_config()

    try:
        index = ScopeIndex.load()
        pruned = _prune(index) if config.prune_stale_scopes else []
    except PacksyncError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e

    for scope in pruned:
        print_warning(f"Removed stale scope: {scope}")

    entries = index.entries
    if not entries:
        print_info("No scopes configured yet.")
        return

    table = create_scope_table()
    for scope in sorted(entries, key=lambda s: (s != GLOBAL_SENTINEL, s)):
        entry = entries[scope]
        label = "[pack.builtin]global[/]" if scope == GLOBAL_SENTINEL else scope
        table.add_row(label, ", ".join(entry.packs) or "-", entry.last_synced or "never")
    console.print(table)
