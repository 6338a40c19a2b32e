"""Rich console formatting utilities.

Provides consistent formatting for CLI output using Rich.
"""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING

from rich.console import Console
from rich.table import Table

from packsync.core.theme import get_theme

if TYPE_CHECKING:
    from packsync.models.check import CheckStatus, FixStatus


def _detect_color_system() -> str | None:
    """Detect the best color system for the current terminal.

    Returns "truecolor" for interactive terminals to enable full hex color support,
    None otherwise to let Rich auto-detect.
    """
    if sys.stdout.isatty():
        return "truecolor"
    return None


# Shared console instances (theme loaded once at import)
console = Console(theme=get_theme(), color_system=_detect_color_system())
err_console = Console(theme=get_theme(), stderr=True, color_system=_detect_color_system())

_STATUS_ICONS = {
    "up_to_date": "✓",
    "outdated": "✗",
    "needs_attention": "!",
    "not_applicable": "-",
}


def _table(title: str) -> Table:
    return Table(
        title=title,
        show_header=True,
        header_style="bold_header",
        border_style="border",
        row_styles=["", "on grey7"],
    )


def create_plan_table(title: str = "Installation Order") -> Table:
    """Create a table listing resolved components in install order.

    Columns: position, component ID, owning pack, and whether the
    component was pulled in as a dependency.
    """
    table = _table(title)
    table.add_column("#", style="muted", justify="right", width=3)
    table.add_column("Component", style="pack.name", no_wrap=True)
    table.add_column("Pack", style="muted")
    table.add_column("", style="added")
    return table


def create_scope_table(title: str = "Configured Scopes") -> Table:
    """Create a table listing scopes from the index."""
    table = _table(title)
    table.add_column("Scope", no_wrap=True)
    table.add_column("Packs", style="text")
    table.add_column("Last synced", style="muted")
    return table


def create_doctor_table(title: str) -> Table:
    """Create a table for doctor check results."""
    table = _table(title)
    table.add_column("", width=2, justify="center")
    table.add_column("Check", no_wrap=True)
    table.add_column("Result", style="text", overflow="fold")
    return table


def format_check_status(status: CheckStatus) -> str:
    """Format a check status as a colored icon."""
    icon = _STATUS_ICONS.get(status.value, "?")
    return f"[status.{status.value}]{icon}[/]"


def format_fix_status(status: FixStatus) -> str:
    """Format a fix status with color markup."""
    style = {"repaired": "success", "not_repairable": "warning", "failed": "error"}
    return f"[{style.get(status.value, 'text')}]{status.value.replace('_', ' ')}[/]"


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[info]{message}[/]")


def print_warning(message: str) -> None:
    """Print a warning message."""
    err_console.print(f"[warning]Warning:[/] {message}")


def print_error(message: str) -> None:
    """Print an error message."""
    err_console.print(f"[error]Error:[/] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[success]{message}[/]")
