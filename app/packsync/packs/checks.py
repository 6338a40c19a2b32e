"""Doctor checks declared by external packs.

Pack manifests declare checks in a small vocabulary (command presence,
path presence, file content, custom scripts). make_check() turns each
definition into an object implementing the DoctorCheck protocol.

Shell script checks follow an exit code convention: 0 up to date,
1 outdated, 2 needs attention, 3 not applicable. Their stdout is the reason.
"""

import logging
import subprocess
from pathlib import Path

from packsync.models.check import CheckResult, CheckStatus, DoctorCheck, FixResult, FixStatus
from packsync.packs.manifest import DoctorCheckDefinition
from packsync.packs.sandbox import safe_path
from packsync.packs.scripts import ScriptError, ScriptRunner
from packsync.utils.shell import command_exists, run_command

logger = logging.getLogger(__name__)

_EXIT_CODE_STATUS = {
    0: CheckStatus.UP_TO_DATE,
    1: CheckStatus.OUTDATED,
    2: CheckStatus.NEEDS_ATTENTION,
    3: CheckStatus.NOT_APPLICABLE,
}


def _run_fix(
    runner: ScriptRunner,
    pack_path: Path,
    fix_script: Path | None,
    fix_command: str | None,
) -> FixResult:
    if fix_script is not None:
        try:
            result = runner.run(fix_script, pack_path)
        except ScriptError as e:
            return FixResult(FixStatus.FAILED, str(e))
    elif fix_command is not None:
        result = runner.run_command(fix_command)
    else:
        return FixResult(FixStatus.NOT_REPAIRABLE, "No fix available")

    if result.succeeded:
        return FixResult(FixStatus.REPAIRED, "Fix succeeded")
    return FixResult(FixStatus.FAILED, result.stderr or f"exit code {result.exit_code}")


class CommandExistsCheck:
    """Checks that a command runs, or at least exists on PATH."""

    def __init__(
        self,
        name: str,
        command: str,
        args: list[str],
        runner: ScriptRunner,
        fix_command: str | None = None,
    ) -> None:
        self.name = name
        self.command = command
        self.args = args
        self.runner = runner
        self.fix_command = fix_command

    def check(self) -> CheckResult:
        try:
            if run_command([self.command, *self.args], timeout=10.0).success:
                return CheckResult(CheckStatus.UP_TO_DATE, "available")
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.debug("Running %s failed: %s", self.command, e)
        if command_exists(self.command):
            return CheckResult(CheckStatus.UP_TO_DATE, "installed")
        return CheckResult(CheckStatus.OUTDATED, "not found")

    def fix(self) -> FixResult:
        if self.fix_command is None:
            return FixResult(FixStatus.NOT_REPAIRABLE, "Re-run sync to install dependencies")
        return _run_fix(self.runner, Path.cwd(), None, self.fix_command)


class PathCheck:
    """Checks presence or content of a file or directory."""

    def __init__(self, definition: DoctorCheckDefinition, project_root: Path | None) -> None:
        self.name = definition.name
        self.definition = definition
        self.project_root = project_root

    def _resolve(self) -> Path | None:
        raw = self.definition.path or ""
        if self.definition.scope == "project":
            if self.project_root is None:
                return None
            return self.project_root / raw
        return Path(raw).expanduser()

    def check(self) -> CheckResult:
        path = self._resolve()
        if path is None:
            return CheckResult(
                CheckStatus.NOT_APPLICABLE, "no project root for project-scoped check"
            )

        kind = self.definition.type
        if kind == "file_exists":
            if path.is_file():
                return CheckResult(CheckStatus.UP_TO_DATE, "present")
            return CheckResult(CheckStatus.OUTDATED, "missing")
        if kind == "directory_exists":
            if path.is_dir():
                return CheckResult(CheckStatus.UP_TO_DATE, "present")
            return CheckResult(CheckStatus.OUTDATED, "missing")

        pattern = self.definition.pattern or ""
        try:
            content = path.read_text(encoding="utf-8")
        except OSError:
            if kind == "file_not_contains":
                return CheckResult(CheckStatus.UP_TO_DATE, "file not present (pattern absent)")
            return CheckResult(CheckStatus.OUTDATED, "file not found or unreadable")

        if kind == "file_contains":
            if pattern in content:
                return CheckResult(CheckStatus.UP_TO_DATE, "pattern found")
            return CheckResult(CheckStatus.OUTDATED, "pattern not found")
        if pattern in content:
            return CheckResult(CheckStatus.OUTDATED, "unwanted pattern found")
        return CheckResult(CheckStatus.UP_TO_DATE, "pattern absent")

    def fix(self) -> FixResult:
        return FixResult(FixStatus.NOT_REPAIRABLE, "Re-run sync to restore managed files")


class ShellScriptCheck:
    """Runs a pack script and maps its exit code to a check status."""

    def __init__(
        self,
        name: str,
        script: Path | str,
        pack_path: Path,
        runner: ScriptRunner,
        fix_script: Path | None = None,
        fix_command: str | None = None,
    ) -> None:
        self.name = name
        self.script = script
        self.pack_path = pack_path
        self.runner = runner
        self.fix_script = fix_script
        self.fix_command = fix_command

    def check(self) -> CheckResult:
        if isinstance(self.script, Path):
            try:
                result = self.runner.run(self.script, self.pack_path)
            except ScriptError as e:
                return CheckResult(CheckStatus.OUTDATED, str(e))
        else:
            result = self.runner.run_command(self.script)

        message = result.stdout or self.name
        status = _EXIT_CODE_STATUS.get(result.exit_code)
        if status is None:
            return CheckResult(
                CheckStatus.OUTDATED, f"unexpected exit code {result.exit_code}: {message}"
            )
        return CheckResult(status, message)

    def fix(self) -> FixResult:
        return _run_fix(self.runner, self.pack_path, self.fix_script, self.fix_command)


class MisconfiguredCheck:
    """Stands in for a check whose definition cannot be used."""

    def __init__(self, name: str, reason: str) -> None:
        self.name = name
        self.reason = reason

    def check(self) -> CheckResult:
        return CheckResult(CheckStatus.NEEDS_ATTENTION, f"misconfigured: {self.reason}")

    def fix(self) -> FixResult:
        return FixResult(FixStatus.NOT_REPAIRABLE, f"Fix the pack's manifest: {self.reason}")


def make_check(
    definition: DoctorCheckDefinition,
    pack_path: Path,
    runner: ScriptRunner,
    project_root: Path | None = None,
) -> DoctorCheck:
    """Build a doctor check from its manifest definition.

    Script references are resolved inside the pack directory. A
    shell_script command naming an existing pack file runs that file;
    otherwise it runs inline. An escaping reference yields a
    MisconfiguredCheck.
    """
    if definition.type == "command_exists":
        return CommandExistsCheck(
            definition.name,
            definition.command or "",
            definition.args,
            runner,
            definition.fix_command,
        )

    if definition.type == "shell_script":
        command = definition.command or ""
        script: Path | str = command
        if not Path(command).is_absolute() and (pack_path / command).is_file():
            resolved = safe_path(command, pack_path)
            if resolved is None:
                return MisconfiguredCheck(definition.name, f"script '{command}' escapes pack")
            script = resolved

        fix_script: Path | None = None
        fix_command = definition.fix_command
        if definition.fix_script:
            resolved_fix = safe_path(definition.fix_script, pack_path)
            if resolved_fix is not None and resolved_fix.is_file():
                fix_script = resolved_fix
            elif (pack_path / definition.fix_script).exists():
                return MisconfiguredCheck(
                    definition.name, f"fix script '{definition.fix_script}' escapes pack"
                )
            else:
                fix_command = fix_command or definition.fix_script

        return ShellScriptCheck(
            definition.name, script, pack_path, runner, fix_script, fix_command
        )

    return PathCheck(definition, project_root)
