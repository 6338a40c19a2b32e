"""Registry of external packs known to this machine.

The registry records where each external pack came from, which commit is
checked out, and the script hashes the user approved when trusting it.
It is stored as TOML in the state directory.
"""

import tomllib
from datetime import UTC, datetime
from pathlib import Path
from typing import Annotated, Any

import tomli_w
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from packsync.core.errors import PacksyncError
from packsync.core.paths import get_packs_dir, get_registry_path
from packsync.utils.fileio import write_atomic


class RegistryError(PacksyncError):
    """Base exception for pack registry errors."""


class RegistryParseError(RegistryError):
    """Raised when the registry file cannot be parsed."""


class PackRegistryEntry(BaseModel):
    """A registered external pack.

    Attributes:
        identifier: Pack identifier from its manifest.
        display_name: Human-readable name.
        version: Pack version at registration time.
        source_url: Git URL or local path the pack was added from.
        ref: Requested branch or tag, if any.
        commit_sha: Checked out commit.
        local_path: Checkout directory relative to the packs directory.
        added_at: When the pack was registered (ISO 8601).
        trusted_script_hashes: Hash key to SHA-256 of approved scripts.
    """

    model_config = ConfigDict(extra="forbid")

    identifier: Annotated[str, Field(description="Pack identifier")]
    display_name: Annotated[str, Field(description="Human-readable name")]
    version: Annotated[str, Field(description="Pack version")]
    source_url: Annotated[str, Field(description="Git URL or local path")]
    ref: Annotated[str | None, Field(description="Requested branch or tag")] = None
    commit_sha: Annotated[str, Field(description="Checked out commit")] = ""
    local_path: Annotated[str, Field(description="Checkout directory below packs/")]
    added_at: str = Field(
        default_factory=lambda: datetime.now(UTC).isoformat(),
        description="Registration timestamp (ISO 8601)",
    )
    trusted_script_hashes: dict[str, str] = Field(default_factory=dict)

    def checkout_path(self, packs_dir: Path | None = None) -> Path:
        """Absolute checkout directory of this pack."""
        return (packs_dir or get_packs_dir()) / self.local_path


class PackRegistry:
    """Load, query and persist the external pack registry."""

    def __init__(self, path: Path | None = None, entries: list[PackRegistryEntry] | None = None):
        self.path = path or get_registry_path()
        self._entries: list[PackRegistryEntry] = list(entries or [])

    @classmethod
    def load(cls, path: Path | None = None) -> "PackRegistry":
        """Load the registry.

        A missing or empty file yields an empty registry.

        Raises:
            RegistryParseError: If the file is not valid TOML or does not
                match the schema.
            RegistryError: If the file cannot be read.
        """
        registry_path = path or get_registry_path()
        if not registry_path.exists():
            return cls(registry_path)

        try:
            with open(registry_path, "rb") as f:
                data: dict[str, Any] = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise RegistryParseError(f"Invalid TOML syntax in {registry_path}: {e}") from e
        except OSError as e:
            raise RegistryError(f"Failed to read pack registry: {e}") from e

        try:
            entries = [PackRegistryEntry.model_validate(p) for p in data.get("packs", [])]
        except (ValidationError, TypeError) as e:
            raise RegistryParseError(f"Invalid pack registry {registry_path}: {e}") from e
        return cls(registry_path, entries)

    def save(self) -> None:
        """Write the registry atomically.

        Raises:
            RegistryError: If the file cannot be written.
        """
        data = {
            "packs": [e.model_dump(exclude_none=True) for e in self._entries],
        }
        try:
            write_atomic(self.path, tomli_w.dumps(data))
        except OSError as e:
            raise RegistryError(f"Failed to write pack registry: {e}") from e

    @property
    def entries(self) -> list[PackRegistryEntry]:
        return list(self._entries)

    def pack(self, identifier: str) -> PackRegistryEntry | None:
        for entry in self._entries:
            if entry.identifier == identifier:
                return entry
        return None

    def register(self, entry: PackRegistryEntry) -> None:
        """Add a pack, replacing any entry with the same identifier."""
        self._entries = [e for e in self._entries if e.identifier != entry.identifier]
        self._entries.append(entry)

    def remove(self, identifier: str) -> bool:
        """Remove a pack.

        Returns:
            True if an entry was removed.
        """
        before = len(self._entries)
        self._entries = [e for e in self._entries if e.identifier != identifier]
        return len(self._entries) != before
