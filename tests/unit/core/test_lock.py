"""Unit tests for the process-wide lock."""

from pathlib import Path

import pytest
from packsync.core.lock import LockContentionError, file_lock


class TestFileLock:
    """Tests for file_lock context manager."""

    def test_acquire_and_release(self, tmp_path: Path) -> None:
        """The lock can be taken again after the block exits."""
        lock_path = tmp_path / "state" / "lock"

        with file_lock(lock_path) as held:
            assert held == lock_path
            assert lock_path.exists()

        with file_lock(lock_path):
            pass

    def test_contention_fails_immediately(self, tmp_path: Path) -> None:
        """A second holder gets LockContentionError instead of waiting."""
        lock_path = tmp_path / "lock"

        with file_lock(lock_path), pytest.raises(LockContentionError, match="Another packsync"):
            with file_lock(lock_path):
                pass

    def test_released_after_exception(self, tmp_path: Path) -> None:
        """An exception inside the block still releases the lock."""
        lock_path = tmp_path / "lock"

        with pytest.raises(RuntimeError), file_lock(lock_path):
            raise RuntimeError("boom")

        with file_lock(lock_path):
            pass

    def test_default_path_in_state_dir(self, state_dir: Path) -> None:
        """Without a path the lock lives in the state directory."""
        with file_lock() as held:
            assert held == state_dir / "lock"
