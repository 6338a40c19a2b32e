"""Global scope index.

The index maps every scope (the global sentinel or an absolute project
path) to the packs configured in it. The reference counter uses it to find
other scopes that may still need a shared resource.

Storage location: ~/.local/state/packsync/index.toml
"""

from __future__ import annotations

import logging
import tomllib
from datetime import UTC, datetime
from pathlib import Path
from typing import Annotated

import tomli_w
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from packsync.core.errors import PacksyncError
from packsync.core.paths import get_index_path
from packsync.utils.fileio import write_atomic

logger = logging.getLogger(__name__)

# Scope identifier of the global scope
GLOBAL_SENTINEL = "__global__"

# Excluding-scope value meaning "the pack is being removed everywhere"
PACK_REMOVE_SENTINEL = "__pack_remove__"


class ScopeIndexError(PacksyncError):
    """Base exception for index errors."""


class IndexParseError(ScopeIndexError):
    """Raised when the index file cannot be parsed or validated."""


class IndexEntry(BaseModel):
    """Packs configured in one scope.

    Attributes:
        packs: Sorted pack identifiers.
        last_synced: ISO 8601 timestamp of the last sync of the scope.
    """

    model_config = ConfigDict(extra="forbid")

    packs: Annotated[list[str], Field(default_factory=list, description="Configured packs")]
    last_synced: Annotated[str | None, Field(description="Last sync timestamp")] = None


class IndexData(BaseModel):
    """Complete index record keyed by scope identifier."""

    model_config = ConfigDict(extra="forbid")

    scopes: Annotated[
        dict[str, IndexEntry],
        Field(default_factory=dict, description="Entries per scope"),
    ]


class ScopeIndex:
    """Index of configured packs per scope.

    Attributes:
        path: Location of the index file.
        data: The underlying index record.
    """

    def __init__(self, path: Path | None = None, data: IndexData | None = None) -> None:
        """Initialize ScopeIndex.

        Args:
            path: Location of the index file. Defaults to the state directory.
            data: Existing index record. Defaults to an empty index.
        """
        self.path = path or get_index_path()
        self.data = data if data is not None else IndexData()

    @classmethod
    def load(cls, path: Path | None = None) -> ScopeIndex:
        """Load the index.

        Args:
            path: Location of the index file. Defaults to the state directory.

        Returns:
            ScopeIndex with the persisted entries, or an empty index when the
            file is missing or empty.

        Raises:
            IndexParseError: If the file is not valid index TOML.
        """
        index_path = path or get_index_path()
        if not index_path.exists():
            return cls(index_path)

        try:
            with open(index_path, "rb") as f:
                raw = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise IndexParseError(f"Invalid TOML syntax in {index_path}: {e}") from e
        except OSError as e:
            raise IndexParseError(f"Failed to read index {index_path}: {e}") from e

        try:
            data = IndexData.model_validate(raw)
        except ValidationError as e:
            raise IndexParseError(f"Invalid index content in {index_path}: {e}") from e
        return cls(index_path, data)

    def save(self) -> None:
        """Write the index atomically.

        Raises:
            ScopeIndexError: If the file cannot be written.
        """
        payload = {
            "scopes": {
                scope: entry.model_dump(exclude_none=True)
                for scope, entry in sorted(self.data.scopes.items())
            }
        }
        try:
            write_atomic(self.path, tomli_w.dumps(payload))
        except OSError as e:
            raise ScopeIndexError(f"Failed to write index {self.path}: {e}") from e

    @property
    def entries(self) -> dict[str, IndexEntry]:
        """Entries keyed by scope identifier."""
        return self.data.scopes

    def packs_for(self, scope: str) -> list[str]:
        """Packs configured in a scope (empty if the scope is not indexed)."""
        entry = self.data.scopes.get(scope)
        return list(entry.packs) if entry is not None else []

    def upsert(self, scope: str, packs: list[str]) -> None:
        """Set the configured packs of a scope and stamp the sync time."""
        self.data.scopes[scope] = IndexEntry(
            packs=sorted(set(packs)),
            last_synced=datetime.now(UTC).isoformat(),
        )

    def remove(self, scope: str) -> None:
        """Drop a scope from the index."""
        self.data.scopes.pop(scope, None)

    def remove_pack(self, pack_id: str) -> None:
        """Drop a pack from every scope, pruning entries left empty."""
        for scope in list(self.data.scopes):
            entry = self.data.scopes[scope]
            if pack_id not in entry.packs:
                continue
            remaining = [p for p in entry.packs if p != pack_id]
            if remaining:
                entry.packs = remaining
            else:
                del self.data.scopes[scope]

    def scopes_with_pack(self, pack_id: str) -> list[str]:
        """Sorted scopes in which a pack is configured."""
        return sorted(scope for scope, entry in self.data.scopes.items() if pack_id in entry.packs)

    def prune_stale(self) -> list[str]:
        """Drop project scopes whose directory no longer exists.

        The global sentinel is never pruned.

        Returns:
            Sorted list of pruned scope identifiers.
        """
        stale = sorted(
            scope
            for scope in self.data.scopes
            if scope != GLOBAL_SENTINEL and not Path(scope).is_dir()
        )
        for scope in stale:
            logger.warning("Pruning stale scope from index: %s", scope)
            del self.data.scopes[scope]
        return stale
