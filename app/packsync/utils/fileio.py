"""Atomic file writes.

Every persisted file (state, manifest, index, registry, config and the
generated files) is written by first writing a temporary file in the same
directory and then renaming it over the target with os.replace().
"""

import os
from pathlib import Path
from tempfile import NamedTemporaryFile


def write_atomic(path: Path, data: str | bytes) -> None:
    """Write a file atomically.

    Parent directories are created when missing. The temporary file is
    cleaned up on failure and the target is left untouched.

    Args:
        path: Destination file.
        data: Text (written as UTF-8) or raw bytes.

    Raises:
        OSError: If the file cannot be written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = data.encode("utf-8") if isinstance(data, str) else data

    tmp_path: Path | None = None
    try:
        with NamedTemporaryFile(
            mode="wb",
            dir=path.parent,
            delete=False,
            suffix=".tmp",
        ) as f:
            tmp_path = Path(f.name)
            f.write(payload)
        # os.replace() is atomic on POSIX
        os.replace(str(tmp_path), str(path))
    except OSError:
        if tmp_path is not None and tmp_path.exists():
            tmp_path.unlink()
        raise
