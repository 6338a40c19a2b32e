"""Doctor command implementation.

Validates a scope's generated file, copied files and pack checks, and
optionally repairs what can be repaired.
"""

from pathlib import Path
from typing import Annotated

import typer

from packsync.cli.types import get_catalog, get_config, get_scope
from packsync.core.doctor import DoctorOutcome, collect_checks, run_checks
from packsync.core.errors import PacksyncError
from packsync.core.lock import file_lock
from packsync.core.state import ScopeState
from packsync.models.check import FixStatus
from packsync.utils.formatting import (
    console,
    create_doctor_table,
    format_check_status,
    format_fix_status,
    print_error,
    print_info,
    print_success,
    print_warning,
)


def _print_outcomes(title: str, outcomes: list[DoctorOutcome]) -> None:
    table = create_doctor_table(title)
    for outcome in outcomes:
        reason = outcome.result.reason
        if outcome.fix is not None:
            reason = f"{reason} -> {format_fix_status(outcome.fix.status)}"
            if outcome.fix.reason:
                reason = f"{reason}: {outcome.fix.reason}"
        table.add_row(format_check_status(outcome.result.status), outcome.name, reason)
    console.print(table)


def _is_healthy(outcome: DoctorOutcome) -> bool:
    if outcome.fix is not None:
        return outcome.fix.status == FixStatus.REPAIRED
    return outcome.result.ok


def doctor(
    project: Annotated[
        Path | None,
        typer.Option(
            "--project",
            "-p",
            help="Project directory to check (default: current directory).",
        ),
    ] = None,
    global_scope: Annotated[
        bool,
        typer.Option(
            "--global",
            "-g",
            help="Check the global scope instead of a project.",
        ),
    ] = False,
    fix: Annotated[
        bool,
        typer.Option(
            "--fix",
            help="Repair outdated sections and failing checks where possible.",
        ),
    ] = False,
) -> None:
    """Check that a scope matches what its configured packs would generate.

    Exits with code 1 if any check still fails.

    Examples:
        packsync doctor                    # Check the current project
        packsync doctor --global           # Check the global scope
        packsync doctor --fix              # Repair what can be repaired
    """
    config = get_config()
    scope = get_scope(project, global_scope, config)
    catalog = get_catalog(config, scope.project_root)

    try:
        state = ScopeState.load(scope.state_path)
        if not state.configured_packs:
            print_info(f"No packs configured in {scope.label.lower()} scope.")
            return
        checks = collect_checks(catalog, scope, state)
        if fix:
            with file_lock():
                outcomes = run_checks(checks, fix=True)
        else:
            outcomes = run_checks(checks)
    except PacksyncError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e

    _print_outcomes(f"Doctor: {scope.scope_identifier}{scope.label_suffix}", outcomes)

    failing = [o for o in outcomes if not _is_healthy(o)]
    if failing:
        if not fix:
            print_warning("Run 'packsync doctor --fix' to repair.")
        raise typer.Exit(code=1)
    print_success("All checks passed.")
