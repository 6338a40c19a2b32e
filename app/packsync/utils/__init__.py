"""Utility modules for packsync.

This module exports commonly used utility functions.
"""

from packsync.utils.fileio import write_atomic
from packsync.utils.formatting import (
    console,
    create_doctor_table,
    create_plan_table,
    create_scope_table,
    err_console,
    print_error,
    print_info,
    print_success,
    print_warning,
)
from packsync.utils.shell import CommandResult, command_exists, run_command

__all__ = [
    "CommandResult",
    "command_exists",
    "console",
    "create_doctor_table",
    "create_plan_table",
    "create_scope_table",
    "err_console",
    "print_error",
    "print_info",
    "print_success",
    "print_warning",
    "run_command",
    "write_atomic",
]
