"""Unit tests for pack script execution."""

import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest
from packsync import __version__
from packsync.packs.scripts import (
    PACK_PATH_ENV,
    VERSION_ENV,
    ScriptEscapeError,
    ScriptNotFoundError,
    ScriptResult,
    ScriptRunner,
    ScriptTimeoutError,
)
from packsync.utils.shell import CommandResult


@pytest.fixture
def pack(tmp_path: Path) -> Path:
    path = tmp_path / "pack"
    path.mkdir()
    return path


def _script(pack: Path, body: str, name: str = "check.sh") -> Path:
    script = pack / name
    script.write_text(f"#!/bin/sh\n{body}\n")
    return script


class TestScriptRunnerRun:
    """Tests for ScriptRunner.run."""

    def test_runs_with_environment(self, pack: Path) -> None:
        """Scripts see the tool version and pack path and are made executable."""
        script = _script(pack, f'echo "${VERSION_ENV} ${PACK_PATH_ENV}"\nexit 3')

        result = ScriptRunner().run(script, pack)

        assert result.exit_code == 3
        assert not result.succeeded
        assert result.stdout == f"{__version__} {pack.resolve()}"

    def test_extra_env_and_cwd(self, pack: Path, tmp_path: Path) -> None:
        """Extra variables and the working directory are passed through."""
        script = _script(pack, 'echo "$TEAM $(pwd -P)"')

        result = ScriptRunner().run(script, pack, env={"TEAM": "web"}, cwd=tmp_path)

        assert result.succeeded
        assert result.stdout == f"web {tmp_path.resolve()}"

    def test_escaping_script(self, pack: Path, tmp_path: Path) -> None:
        """A script outside the pack is never run."""
        outside = _script(tmp_path, "echo hi", name="outside.sh")

        with pytest.raises(ScriptEscapeError):
            ScriptRunner().run(outside, pack)

    def test_missing_script(self, pack: Path) -> None:
        """A missing script raises ScriptNotFoundError."""
        with pytest.raises(ScriptNotFoundError):
            ScriptRunner().run(pack / "nope.sh", pack)

    def test_timeout_is_raised(self, pack: Path) -> None:
        """A timeout is an error, distinct from a non-zero exit."""
        script = _script(pack, "sleep 5")

        with (
            patch(
                "packsync.packs.scripts.run_command",
                side_effect=subprocess.TimeoutExpired(cmd="check.sh", timeout=2),
            ),
            pytest.raises(ScriptTimeoutError) as exc_info,
        ):
            ScriptRunner(default_timeout=2).run(script, pack)

        assert exc_info.value.timeout == 2
        assert "timed out after 2 seconds" in str(exc_info.value)

    def test_nonzero_exit_is_reported(self, pack: Path) -> None:
        """A failing script returns its exit code and trimmed output."""
        script = _script(pack, "exit 2")

        with patch(
            "packsync.packs.scripts.run_command",
            return_value=CommandResult("broken\n\n", "details\n", 2),
        ) as mock_run:
            result = ScriptRunner().run(script, pack, timeout=5)

        assert result == ScriptResult(2, "broken", "details")
        assert mock_run.call_args.kwargs["timeout"] == 5


class TestScriptRunnerRunCommand:
    """Tests for ScriptRunner.run_command."""

    def test_inline_command(self) -> None:
        """Inline commands run through bash."""
        result = ScriptRunner().run_command("echo hello")

        assert result == ScriptResult(0, "hello", "")

    def test_timeout_is_reported(self) -> None:
        """Inline command timeouts never raise."""
        with patch(
            "packsync.packs.scripts.run_command",
            side_effect=subprocess.TimeoutExpired(cmd="bash", timeout=10),
        ):
            result = ScriptRunner().run_command("sleep 60")

        assert result == ScriptResult(1, "", "Command timed out after 10 seconds")

    def test_launch_error_is_reported(self) -> None:
        """Launch errors end up in stderr."""
        with patch("packsync.packs.scripts.run_command", side_effect=OSError("no bash")):
            result = ScriptRunner().run_command("true")

        assert result.exit_code == 1
        assert result.stderr == "[launch error] no bash"
