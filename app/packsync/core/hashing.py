"""SHA-256 content hashing.

Used by the file manifest for drift detection of copied files and by the
trust manager for script integrity checks.
"""

import hashlib
from pathlib import Path

from packsync.core.errors import PacksyncError

# Read files in 64 KiB chunks
_CHUNK_SIZE = 65536


class HashingError(PacksyncError):
    """Raised when a directory cannot be hashed."""


def sha256_text(text: str) -> str:
    """Hash a string's UTF-8 encoding.

    Args:
        text: Text to hash.

    Returns:
        Lowercase hex digest.
    """
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def sha256_file(path: Path) -> str:
    """Hash the content of a file.

    Args:
        path: File to hash.

    Returns:
        Lowercase hex digest.

    Raises:
        OSError: If the file cannot be read.
    """
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def directory_file_hashes(directory: Path) -> list[tuple[str, str]]:
    """Hash every regular file below a directory.

    Hidden files and directories are skipped. Symlinks are resolved so that
    the relative paths are computed against the real directory location.

    Args:
        directory: Directory to walk.

    Returns:
        Sorted (relative_path, hex_digest) pairs.

    Raises:
        HashingError: If the path is not a directory or a file cannot be read.
    """
    resolved = directory.resolve()
    if not resolved.is_dir():
        raise HashingError(f"Not a directory: {resolved}")

    results: list[tuple[str, str]] = []
    for path in resolved.rglob("*"):
        relative = path.relative_to(resolved)
        if any(part.startswith(".") for part in relative.parts):
            continue
        if not path.is_file():
            continue
        try:
            results.append((relative.as_posix(), sha256_file(path)))
        except OSError as e:
            raise HashingError(f"Cannot hash {path}: {e}") from e

    return sorted(results)
