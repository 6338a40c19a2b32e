"""Per-scope state persistence.

This module provides the ScopeState class that owns one scope's JSON state
file: configured packs, what each pack's installation created, and resolved
placeholder values.

A missing state file means a fresh scope. A file that exists but cannot be
parsed is an error and is never treated as absent, because treating it as
absent would make the next sync forget every artifact it owns.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from pathlib import Path

from pydantic import ValidationError

from packsync import __version__
from packsync.core.errors import PacksyncError
from packsync.models.state import ArtifactRecord, StateData
from packsync.utils.fileio import write_atomic

logger = logging.getLogger(__name__)


class StateError(PacksyncError):
    """Base exception for state file errors."""


class StateParseError(StateError):
    """Raised when an existing state file cannot be parsed or validated."""


class ScopeState:
    """Mutable view of one scope's state file.

    Mutators only ever add information, except remove_pack() which drops a
    pack together with its artifact record. Nothing is written until save()
    is called.

    Attributes:
        path: Location of the JSON state file.
        data: The underlying state record.
    """

    def __init__(self, path: Path, data: StateData | None = None) -> None:
        """Initialize ScopeState.

        Args:
            path: Location of the JSON state file.
            data: Existing state record. Defaults to an empty record.
        """
        self.path = path
        self.data = data if data is not None else StateData()

    @classmethod
    def load(cls, path: Path) -> ScopeState:
        """Load the state of a scope.

        Args:
            path: Location of the JSON state file.

        Returns:
            ScopeState with the persisted record, or an empty record when the
            file does not exist.

        Raises:
            StateParseError: If the file exists but is not valid state JSON.
            StateError: If the file cannot be read.
        """
        if not path.exists():
            logger.debug("No state file at %s, starting fresh", path)
            return cls(path)

        try:
            raw = path.read_text(encoding="utf-8")
        except OSError as e:
            raise StateError(f"Failed to read state file {path}: {e}") from e

        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as e:
            raise StateParseError(f"Corrupt state file {path}: {e}") from e

        try:
            data = StateData.model_validate(payload)
        except ValidationError as e:
            raise StateParseError(f"Invalid state file {path}: {e}") from e

        return cls(path, data)

    def save(self) -> None:
        """Write the state file atomically.

        Stamps the current tool version and timestamp before writing.

        Raises:
            StateError: If the file cannot be written.
        """
        self.data.tool_version = __version__
        self.data.configured_at = datetime.now(UTC).isoformat()
        self.data.configured_packs = sorted(set(self.data.configured_packs))

        text = json.dumps(self.data.model_dump(mode="json"), indent=2, sort_keys=True) + "\n"
        try:
            write_atomic(self.path, text)
        except OSError as e:
            raise StateError(f"Failed to write state file {self.path}: {e}") from e
        logger.debug("Saved state to %s", self.path)

    @property
    def configured_packs(self) -> list[str]:
        """Sorted identifiers of configured packs."""
        return sorted(self.data.configured_packs)

    def is_configured(self, pack_id: str) -> bool:
        """Check whether a pack is configured in this scope."""
        return pack_id in self.data.configured_packs

    def record_pack(self, pack_id: str) -> None:
        """Mark a pack as configured."""
        if pack_id not in self.data.configured_packs:
            self.data.configured_packs.append(pack_id)
            self.data.configured_packs.sort()

    def remove_pack(self, pack_id: str) -> None:
        """Drop a pack and its artifact record."""
        if pack_id in self.data.configured_packs:
            self.data.configured_packs.remove(pack_id)
        self.data.pack_artifacts.pop(pack_id, None)

    def artifacts(self, pack_id: str) -> ArtifactRecord | None:
        """Get the artifact record of a pack, if any."""
        return self.data.pack_artifacts.get(pack_id)

    def set_artifacts(self, pack_id: str, record: ArtifactRecord) -> None:
        """Store the artifact record of a pack, replacing any previous one."""
        self.data.pack_artifacts[pack_id] = record

    def merge_artifacts(self, pack_id: str, record: ArtifactRecord) -> ArtifactRecord:
        """Merge newly created artifacts into a pack's record.

        Args:
            pack_id: Pack that created the artifacts.
            record: Artifacts created by the current run.

        Returns:
            The merged record now stored for the pack.
        """
        existing = self.data.pack_artifacts.get(pack_id)
        merged = existing.merged(record) if existing is not None else record
        self.data.pack_artifacts[pack_id] = merged
        return merged

    def record_values(self, values: dict[str, str]) -> None:
        """Remember resolved placeholder values."""
        self.data.resolved_values.update(values)

    @property
    def resolved_values(self) -> dict[str, str]:
        """Placeholder values resolved so far."""
        return dict(self.data.resolved_values)
