"""Cross-scope resource reference counting.

Before a shared resource (a system package, a plugin or a service entry) is
removed, every other owner has to be ruled out. Ownership is checked in two
tiers:

1. Artifact records of the other packs configured in the global state.
2. Pack declarations of every other (scope, pack) pair in the scope index.

Any doubt (an unreadable state or index file, a pack that cannot be loaded)
answers "still needed". Keeping a resource too long is recoverable; removing
one that another scope relies on is not.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Protocol

from packsync.core.index import (
    GLOBAL_SENTINEL,
    PACK_REMOVE_SENTINEL,
    ScopeIndex,
    ScopeIndexError,
)
from packsync.core.paths import get_global_state_path
from packsync.core.state import ScopeState, StateError
from packsync.models.component import PluginRef
from packsync.models.pack import Pack
from packsync.models.state import ArtifactRecord

logger = logging.getLogger(__name__)


class ResourceKind(str, Enum):
    """Kind of a shared, reference-counted resource."""

    PACKAGE = "package"
    PLUGIN = "plugin"
    SERVICE_ENTRY = "service_entry"


@dataclass(frozen=True, slots=True)
class Resource:
    """A shared resource that several scopes may depend on."""

    kind: ResourceKind
    name: str

    @property
    def display_name(self) -> str:
        """Human-readable description for log output."""
        if self.kind is ResourceKind.PLUGIN:
            return f"plugin '{PluginRef.parse(self.name).bare_name}'"
        if self.kind is ResourceKind.PACKAGE:
            return f"package '{self.name}'"
        return f"service entry '{self.name}'"

    def owned_by(self, record: ArtifactRecord) -> bool:
        """Check whether an artifact record lists this resource."""
        if self.kind is ResourceKind.PACKAGE:
            return self.name in record.packages
        if self.kind is ResourceKind.PLUGIN:
            ref = PluginRef.parse(self.name)
            return any(ref.same_plugin(p) for p in record.plugins)
        return any(entry.name == self.name for entry in record.service_entries)

    def declared_by(self, pack: Pack) -> bool:
        """Check whether a pack declares this resource in its components."""
        if self.kind is ResourceKind.PACKAGE:
            return pack.declares_package(self.name)
        if self.kind is ResourceKind.PLUGIN:
            return pack.declares_plugin(self.name)
        return pack.declares_service_entry(self.name)


class PackLookup(Protocol):
    """Anything that can look up a pack by identifier."""

    def pack(self, identifier: str) -> Pack | None: ...


class ResourceRefCounter:
    """Decides whether a shared resource can be removed safely.

    Attributes:
        catalog: Pack lookup used to read pack declarations.
        global_state_path: State file of the global scope.
        index_path: Location of the scope index.
    """

    def __init__(
        self,
        catalog: PackLookup,
        *,
        global_state_path: Path | None = None,
        index_path: Path | None = None,
    ) -> None:
        """Initialize ResourceRefCounter.

        Args:
            catalog: Pack lookup used to read pack declarations.
            global_state_path: Override for the global state file.
            index_path: Override for the scope index file.
        """
        self.catalog = catalog
        self.global_state_path = global_state_path or get_global_state_path()
        self.index_path = index_path

    def is_still_needed(
        self,
        resource: Resource,
        excluding_scope: str,
        excluding_pack: str,
    ) -> bool:
        """Check whether any owner other than the excluded one needs a resource.

        Args:
            resource: Resource about to be removed.
            excluding_scope: Scope being unconfigured: a project path, the
                global sentinel, or the pack-removal sentinel when the pack is
                removed from every scope.
            excluding_pack: Pack being unconfigured in that scope.

        Returns:
            True if the resource must be kept, False if it is safe to remove.
        """
        return self._owned_globally(
            resource, excluding_scope, excluding_pack
        ) or self._declared_in_index(resource, excluding_scope, excluding_pack)

    def _owned_globally(
        self, resource: Resource, excluding_scope: str, excluding_pack: str
    ) -> bool:
        try:
            state = ScopeState.load(self.global_state_path)
        except StateError as e:
            logger.warning(
                "Could not read global state, keeping %s as a precaution: %s",
                resource.display_name,
                e,
            )
            return True

        skip_own = excluding_scope in (GLOBAL_SENTINEL, PACK_REMOVE_SENTINEL)
        for pack_id in state.configured_packs:
            if skip_own and pack_id == excluding_pack:
                continue
            record = state.artifacts(pack_id)
            if record is not None and resource.owned_by(record):
                logger.debug("%s owned by global pack %s", resource.display_name, pack_id)
                return True
        return False

    def _declared_in_index(
        self, resource: Resource, excluding_scope: str, excluding_pack: str
    ) -> bool:
        try:
            index = ScopeIndex.load(self.index_path)
        except ScopeIndexError as e:
            logger.warning(
                "Could not read scope index, keeping %s as a precaution: %s",
                resource.display_name,
                e,
            )
            return True

        stale: list[str] = []
        needed = False
        for scope, entry in index.entries.items():
            if scope == excluding_scope:
                continue
            if scope != GLOBAL_SENTINEL and not Path(scope).exists():
                stale.append(scope)
                continue
            for pack_id in entry.packs:
                if excluding_scope == PACK_REMOVE_SENTINEL and pack_id == excluding_pack:
                    continue
                if self._pack_declares(pack_id, resource):
                    logger.debug("%s declared by %s in %s", resource.display_name, pack_id, scope)
                    needed = True
                    break
            if needed:
                break

        self._prune(index, stale)
        return needed

    def _pack_declares(self, pack_id: str, resource: Resource) -> bool:
        pack = self.catalog.pack(pack_id)
        if pack is None:
            logger.warning(
                "Pack '%s' cannot be loaded, assuming %s is still needed",
                pack_id,
                resource.display_name,
            )
            return True
        return resource.declared_by(pack)

    def _prune(self, index: ScopeIndex, stale: list[str]) -> None:
        if not stale:
            return
        for scope in stale:
            logger.warning("Project not found: %s, removing from index", scope)
            index.remove(scope)
        try:
            index.save()
        except ScopeIndexError as e:
            logger.warning("Could not persist pruned index entries: %s", e)
