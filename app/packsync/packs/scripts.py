"""Execution of pack-provided scripts.

Scripts shipped by external packs run only after a containment check
against the pack directory, with packsync's version and the pack path in
their environment, and always under a timeout.
"""

import logging
import os
import stat
import subprocess
from dataclasses import dataclass
from pathlib import Path

from packsync import __version__
from packsync.core.errors import PacksyncError
from packsync.packs.sandbox import is_contained
from packsync.utils.shell import run_command

logger = logging.getLogger(__name__)

VERSION_ENV = "PACKSYNC_VERSION"
PACK_PATH_ENV = "PACKSYNC_PACK_PATH"

DEFAULT_SCRIPT_TIMEOUT = 30.0
DEFAULT_COMMAND_TIMEOUT = 10.0


class ScriptError(PacksyncError):
    """Base exception for script execution errors."""


class ScriptEscapeError(ScriptError):
    """Raised when a script resolves outside its pack directory."""


class ScriptNotFoundError(ScriptError):
    """Raised when a script does not exist."""


class ScriptTimeoutError(ScriptError):
    """Raised when a script exceeds its timeout.

    Attributes:
        timeout: The exceeded timeout in seconds.
    """

    def __init__(self, script: str, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(f"Script '{script}' timed out after {int(timeout)} seconds")


@dataclass(frozen=True, slots=True)
class ScriptResult:
    """Outcome of a script that ran to completion.

    Attributes:
        exit_code: Process exit code.
        stdout: Standard output, trailing newlines removed.
        stderr: Standard error, trailing newlines removed.
    """

    exit_code: int
    stdout: str
    stderr: str

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0


class ScriptRunner:
    """Runs pack scripts and inline commands."""

    def __init__(self, default_timeout: float = DEFAULT_SCRIPT_TIMEOUT) -> None:
        self.default_timeout = default_timeout

    def run(
        self,
        script: Path,
        pack_path: Path,
        *,
        env: dict[str, str] | None = None,
        cwd: Path | None = None,
        timeout: float | None = None,
    ) -> ScriptResult:
        """Run a script file from a pack.

        Args:
            script: Script to run.
            pack_path: Root directory of the pack the script belongs to.
            env: Extra environment variables.
            cwd: Working directory for the script.
            timeout: Timeout in seconds; defaults to the runner's default.

        Returns:
            ScriptResult; a non-zero exit is reported, not raised.

        Raises:
            ScriptEscapeError: If the script resolves outside pack_path.
            ScriptNotFoundError: If the script does not exist or cannot start.
            ScriptTimeoutError: If the script exceeds its timeout.
        """
        resolved_script = script.resolve()
        resolved_pack = pack_path.resolve()
        if not is_contained(resolved_script, resolved_pack):
            raise ScriptEscapeError(
                f"Script '{resolved_script}' escapes pack directory '{resolved_pack}'"
            )
        if not resolved_script.is_file():
            raise ScriptNotFoundError(f"Script not found: '{resolved_script}'")

        self._ensure_executable(resolved_script)

        full_env = dict(env or {})
        full_env[VERSION_ENV] = __version__
        full_env[PACK_PATH_ENV] = str(resolved_pack)

        limit = timeout if timeout is not None else self.default_timeout
        logger.debug("Running script %s (timeout %ss)", resolved_script, limit)
        try:
            result = run_command(
                [str(resolved_script)],
                timeout=limit,
                cwd=str(cwd) if cwd is not None else None,
                env=full_env,
            )
        except subprocess.TimeoutExpired as e:
            raise ScriptTimeoutError(str(resolved_script), limit) from e
        except OSError as e:
            raise ScriptNotFoundError(f"{resolved_script} (launch failed: {e})") from e

        return ScriptResult(
            exit_code=result.returncode,
            stdout=result.stdout.strip("\n"),
            stderr=result.stderr.strip("\n"),
        )

    def run_command(self, command: str, timeout: float = DEFAULT_COMMAND_TIMEOUT) -> ScriptResult:
        """Run an inline command through ``/bin/bash -c``.

        No containment check applies. Failures, including timeouts and launch
        errors, are reported in the result and never raised.

        Args:
            command: Shell command line.
            timeout: Timeout in seconds.

        Returns:
            ScriptResult; exit code 1 with the error in stderr on failure.
        """
        try:
            result = run_command(
                ["/bin/bash", "-c", command],
                timeout=timeout,
                env={VERSION_ENV: __version__},
            )
        except subprocess.TimeoutExpired:
            return ScriptResult(1, "", f"Command timed out after {int(timeout)} seconds")
        except OSError as e:
            return ScriptResult(1, "", f"[launch error] {e}")

        return ScriptResult(
            exit_code=result.returncode,
            stdout=result.stdout.strip("\n"),
            stderr=result.stderr.strip("\n"),
        )

    @staticmethod
    def _ensure_executable(path: Path) -> None:
        if os.access(path, os.X_OK):
            return
        try:
            mode = path.stat().st_mode
            path.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        except OSError as e:
            logger.warning("Could not set executable permission on '%s': %s", path, e)
