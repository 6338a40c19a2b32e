"""Unit tests for shell execution utilities."""

import subprocess
from unittest.mock import MagicMock, patch

import pytest
from packsync.utils.shell import CommandResult, command_exists, run_command


class TestCommandResult:
    """Tests for CommandResult."""

    def test_success(self) -> None:
        """Only a zero exit code counts as success."""
        assert CommandResult(stdout="", stderr="", returncode=0).success
        assert not CommandResult(stdout="", stderr="boom", returncode=2).success


class TestRunCommand:
    """Tests for run_command function."""

    @patch("packsync.utils.shell.subprocess.run")
    def test_captures_output(self, mock_run: MagicMock) -> None:
        """run_command returns captured output and exit code."""
        mock_run.return_value = MagicMock(stdout="out", stderr="err", returncode=3)

        result = run_command(["tool", "--flag"])

        assert result == CommandResult(stdout="out", stderr="err", returncode=3)
        kwargs = mock_run.call_args.kwargs
        assert kwargs["capture_output"] is True
        assert kwargs["stdin"] == subprocess.DEVNULL
        assert kwargs["env"] is None

    @patch("packsync.utils.shell.subprocess.run")
    def test_merges_env(self, mock_run: MagicMock) -> None:
        """Extra environment variables are merged into the current environment."""
        mock_run.return_value = MagicMock(stdout="", stderr="", returncode=0)

        with patch.dict("os.environ", {"EXISTING": "1"}):
            run_command(["tool"], env={"EXTRA": "2"}, cwd="/tmp")

        kwargs = mock_run.call_args.kwargs
        assert kwargs["env"]["EXISTING"] == "1"
        assert kwargs["env"]["EXTRA"] == "2"
        assert kwargs["cwd"] == "/tmp"

    @patch("packsync.utils.shell.subprocess.run")
    def test_timeout_propagates(self, mock_run: MagicMock) -> None:
        """A command exceeding its timeout raises TimeoutExpired."""
        mock_run.side_effect = subprocess.TimeoutExpired(cmd=["sleep"], timeout=1)

        with pytest.raises(subprocess.TimeoutExpired):
            run_command(["sleep", "10"], timeout=1)

    def test_real_command(self) -> None:
        """A real command runs and its output is captured."""
        result = run_command(["sh", "-c", "echo hello"])

        assert result.success
        assert result.stdout == "hello\n"


class TestCommandExists:
    """Tests for command_exists function."""

    @patch("packsync.utils.shell.shutil.which")
    def test_found(self, mock_which: MagicMock) -> None:
        """A command found on PATH exists."""
        mock_which.return_value = "/usr/bin/git"

        assert command_exists("git")

    @patch("packsync.utils.shell.shutil.which")
    def test_not_found(self, mock_which: MagicMock) -> None:
        """A command missing from PATH does not exist."""
        mock_which.return_value = None

        assert not command_exists("no-such-tool")
