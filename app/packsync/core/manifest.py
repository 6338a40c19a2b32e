"""File hash manifest.

The manifest is a global ledger of SHA-256 hashes of the files packsync
copied, used for drift detection, plus a few metadata keys describing the
last installation run. It is stored as sorted ``KEY=VALUE`` lines with the
metadata keys first.
"""

from __future__ import annotations

import logging
from pathlib import Path

from packsync.core.errors import PacksyncError
from packsync.core.hashing import sha256_file
from packsync.utils.fileio import write_atomic

logger = logging.getLogger(__name__)

SOURCE_DIR_KEY = "SOURCE_DIR"
INSTALLED_PACKS_KEY = "INSTALLED_PACKS"
INSTALLED_COMPONENTS_KEY = "INSTALLED_COMPONENTS"

METADATA_KEYS = frozenset({SOURCE_DIR_KEY, INSTALLED_PACKS_KEY, INSTALLED_COMPONENTS_KEY})


class ManifestError(PacksyncError):
    """Base exception for file manifest errors."""


class ManifestParseError(ManifestError):
    """Raised when the manifest file contains a malformed line."""


def _split_list(value: str | None) -> list[str]:
    if not value:
        return []
    return [item for item in value.split(",") if item]


class FileManifest:
    """Hash ledger of installed files plus installation metadata.

    Attributes:
        path: Location of the manifest file.
    """

    def __init__(self, path: Path) -> None:
        """Initialize FileManifest.

        Reads the existing file if present.

        Args:
            path: Location of the manifest file.

        Raises:
            ManifestParseError: If the existing file contains a non-empty
                line without '='.
            ManifestError: If the existing file cannot be read.
        """
        self.path = path
        self._hashes: dict[str, str] = {}
        self._metadata: dict[str, str] = {}
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            return
        try:
            text = self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise ManifestError(f"Failed to read manifest {self.path}: {e}") from e

        for line_num, line in enumerate(text.splitlines(), start=1):
            if not line.strip():
                continue
            key, sep, value = line.partition("=")
            if not sep:
                raise ManifestParseError(
                    f"Malformed manifest line {line_num} in {self.path}: {line!r}"
                )
            if key in METADATA_KEYS:
                self._metadata[key] = value
            else:
                self._hashes[key] = value

    def save(self) -> None:
        """Write the manifest atomically.

        Raises:
            ManifestError: If the file cannot be written.
        """
        lines = [f"{key}={self._metadata[key]}" for key in sorted(self._metadata)]
        lines += [f"{key}={self._hashes[key]}" for key in sorted(self._hashes)]
        try:
            write_atomic(self.path, "\n".join(lines) + "\n" if lines else "")
        except OSError as e:
            raise ManifestError(f"Failed to write manifest {self.path}: {e}") from e

    def initialize(self, source_directory: Path) -> None:
        """Start a new installation run.

        All hash entries and the installed packs are kept. The source
        directory is replaced and the installed components are cleared,
        since each run re-declares the component set it installs.

        Args:
            source_directory: Directory the current run installs from.
        """
        self._metadata[SOURCE_DIR_KEY] = str(source_directory)
        self._metadata.pop(INSTALLED_COMPONENTS_KEY, None)

    def record(self, relative_path: str, source_file: Path) -> None:
        """Record the hash of a source file under its installed path.

        Args:
            relative_path: Installed path relative to the scope.
            source_file: File whose content was installed.

        Raises:
            ManifestError: If the source file cannot be read.
        """
        try:
            digest = sha256_file(source_file)
        except OSError as e:
            raise ManifestError(f"Cannot hash {source_file}: {e}") from e
        self._hashes[relative_path] = digest

    def record_hash(self, relative_path: str, digest: str) -> None:
        """Record a precomputed hash for an installed path."""
        self._hashes[relative_path] = digest

    def forget(self, relative_path: str) -> None:
        """Drop the hash entry of a path, if tracked."""
        self._hashes.pop(relative_path, None)

    def hash_for(self, relative_path: str) -> str | None:
        """Get the recorded hash of a path."""
        return self._hashes.get(relative_path)

    def check(self, relative_path: str, installed_file: Path) -> bool | None:
        """Compare an installed file against its recorded hash.

        Args:
            relative_path: Installed path relative to the scope.
            installed_file: The file on disk.

        Returns:
            True if the file matches, False if it drifted, None if the path
            is untracked or the file cannot be read.
        """
        expected = self._hashes.get(relative_path)
        if expected is None:
            return None
        try:
            actual = sha256_file(installed_file)
        except OSError as e:
            logger.debug("Cannot hash %s: %s", installed_file, e)
            return None
        return actual == expected

    @property
    def tracked_paths(self) -> list[str]:
        """Sorted paths with a recorded hash."""
        return sorted(self._hashes)

    @property
    def source_directory(self) -> str | None:
        """Source directory of the last installation run."""
        return self._metadata.get(SOURCE_DIR_KEY)

    @property
    def installed_packs(self) -> list[str]:
        """Packs installed over all runs, sorted."""
        return _split_list(self._metadata.get(INSTALLED_PACKS_KEY))

    @property
    def installed_components(self) -> list[str]:
        """Components installed in the current run, sorted."""
        return _split_list(self._metadata.get(INSTALLED_COMPONENTS_KEY))

    def record_installed_pack(self, pack_id: str) -> None:
        """Add a pack to the installed packs."""
        self._add_to_list(INSTALLED_PACKS_KEY, pack_id)

    def record_installed_component(self, component_id: str) -> None:
        """Add a component to the installed components."""
        self._add_to_list(INSTALLED_COMPONENTS_KEY, component_id)

    def _add_to_list(self, key: str, item: str) -> None:
        items = set(_split_list(self._metadata.get(key)))
        items.add(item)
        self._metadata[key] = ",".join(sorted(items))
