"""Path containment for pack checkouts.

Every path a pack manifest references is resolved relative to the pack
directory and must stay inside it after symlinks are resolved. All
containment checks go through this module.
"""

import os
from pathlib import Path

from packsync.core.errors import PacksyncError


class PathEscapeError(PacksyncError):
    """Raised when a pack reference resolves outside the pack directory.

    Attributes:
        reference: The reference as written in the manifest.
        base: The pack directory.
    """

    def __init__(self, reference: str, base: Path) -> None:
        self.reference = reference
        self.base = base
        super().__init__(f"Path '{reference}' escapes pack directory '{base}'")


def _is_contained_str(path: str, base: str) -> bool:
    normalized = base if base.endswith(os.sep) else base + os.sep
    return path == base or path.startswith(normalized)


def is_contained(path: Path, base: Path) -> bool:
    """Check whether a path is the base or lies below it.

    Both paths are resolved first, so a symlink pointing outside the base is
    not contained even if its own location is.

    Args:
        path: Path to check.
        base: Containing directory.

    Returns:
        True if path resolves to base or a descendant of base.
    """
    return _is_contained_str(str(path.resolve()), str(base.resolve()))


def safe_path(relative_path: str, base: Path) -> Path | None:
    """Resolve a pack-relative reference, rejecting escapes.

    Args:
        relative_path: Reference from the manifest.
        base: Pack directory.

    Returns:
        The resolved absolute path, or None if the reference is absolute,
        climbs out with ``..`` or resolves outside through a symlink.
    """
    if not relative_path or Path(relative_path).is_absolute():
        return None
    candidate = (base / relative_path).resolve()
    if not _is_contained_str(str(candidate), str(base.resolve())):
        return None
    return candidate


def require_safe_path(relative_path: str, base: Path) -> Path:
    """Like safe_path(), but raise on escape.

    Raises:
        PathEscapeError: If the reference escapes the pack directory.
    """
    resolved = safe_path(relative_path, base)
    if resolved is None:
        raise PathEscapeError(relative_path, base)
    return resolved


def relative_path(full: Path, base: Path) -> str:
    """Express a path relative to a base.

    Returns:
        The relative path, or ``full`` unchanged if it is not below base.
    """
    full_str = str(full)
    base_str = str(base)
    normalized = base_str if base_str.endswith(os.sep) else base_str + os.sep
    if full_str.startswith(normalized):
        return full_str[len(normalized) :]
    return full_str
