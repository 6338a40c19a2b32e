"""Process-wide exclusive lock.

Writers of global or project state hold a non-blocking exclusive flock on a
fixed lock file for the whole operation. A second writer fails immediately
instead of waiting.
"""

import fcntl
import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from packsync.core.errors import PacksyncError
from packsync.core.paths import get_lock_path

logger = logging.getLogger(__name__)


class LockContentionError(PacksyncError):
    """Raised when another process holds the lock."""


@contextmanager
def file_lock(path: Path | None = None) -> Iterator[Path]:
    """Hold the exclusive packsync lock for the duration of the block.

    Args:
        path: Lock file. Defaults to the lock file in the state directory.

    Yields:
        Path of the held lock file.

    Raises:
        LockContentionError: If the lock is held by another process.
        OSError: If the lock file cannot be opened.
    """
    lock_path = path or get_lock_path()
    lock_path.parent.mkdir(parents=True, exist_ok=True)

    fd = os.open(lock_path, os.O_RDWR | os.O_CREAT, 0o644)
    try:
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError as e:
            raise LockContentionError(
                f"Another packsync process is running (lock held on {lock_path})"
            ) from e
        logger.debug("Acquired lock %s", lock_path)
        try:
            yield lock_path
        finally:
            fcntl.flock(fd, fcntl.LOCK_UN)
            logger.debug("Released lock %s", lock_path)
    finally:
        os.close(fd)
