"""Pack catalog.

The catalog is the one place that maps pack identifiers to Pack values.
It is built explicitly, either from given packs or by loading the built-in
packs together with every trusted external pack in the registry. External
packs shadow built-in packs of the same identifier.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

from packsync.core.errors import PacksyncError
from packsync.models.component import Component
from packsync.models.pack import Pack
from packsync.packs.adapter import ExternalPackAdapter
from packsync.packs.builtin import builtin_packs
from packsync.packs.manifest import load_pack_manifest
from packsync.packs.registry import PackRegistry, PackRegistryEntry
from packsync.packs.scripts import ScriptRunner
from packsync.packs.trust import PackTrustManager

logger = logging.getLogger(__name__)


class UnknownPackError(PacksyncError):
    """Raised when a pack identifier is not in the catalog."""

    def __init__(self, identifier: str) -> None:
        self.identifier = identifier
        super().__init__(f"Unknown pack: '{identifier}'")


class PackLoadError(PacksyncError):
    """Base exception for external pack loading errors."""


class PackCheckoutMissingError(PackLoadError):
    """Raised when a registered pack has no checkout on disk."""


class PackTrustError(PackLoadError):
    """Raised when trusted scripts of a pack were modified.

    Attributes:
        modified: Relative paths of the modified scripts.
    """

    def __init__(self, identifier: str, modified: list[str]) -> None:
        self.modified = modified
        super().__init__(
            f"Pack '{identifier}' has modified trusted scripts: {', '.join(modified)}. "
            "Review the changes and trust the pack again."
        )


def load_external_pack(
    entry: PackRegistryEntry,
    packs_dir: Path | None = None,
    runner: ScriptRunner | None = None,
    project_root: Path | None = None,
) -> Pack:
    """Load one registered external pack.

    Args:
        entry: Registry entry of the pack.
        packs_dir: Directory holding pack checkouts.
        runner: Script runner for the pack's doctor checks.
        project_root: Project root for project-scoped doctor checks.

    Returns:
        The adapted pack.

    Raises:
        PackCheckoutMissingError: If the checkout directory does not exist.
        PackTrustError: If trusted scripts changed since they were approved.
        PackManifestError: If pack.toml is missing or invalid.
        OSError: If a template or hook file cannot be read.
    """
    pack_path = entry.checkout_path(packs_dir)
    if not pack_path.is_dir():
        raise PackCheckoutMissingError(f"Pack checkout not found: {pack_path}")

    manifest = load_pack_manifest(pack_path)

    modified = PackTrustManager().verify_trust(entry.trusted_script_hashes, pack_path)
    if modified:
        raise PackTrustError(entry.identifier, modified)

    return ExternalPackAdapter(manifest, pack_path, runner, project_root).to_pack()


class PackCatalog:
    """Identifier-keyed view over built-in and external packs.

    Attributes:
        failures: Load errors of registered packs that were skipped.
    """

    def __init__(
        self,
        builtin: Iterable[Pack] = (),
        external: Iterable[Pack] = (),
    ) -> None:
        self._packs: dict[str, Pack] = {}
        for pack in builtin:
            self._packs[pack.identifier] = pack
        for pack in external:
            if pack.identifier in self._packs:
                logger.debug("External pack '%s' shadows built-in pack", pack.identifier)
            self._packs[pack.identifier] = pack
        self.failures: dict[str, str] = {}

    @classmethod
    def load(
        cls,
        registry_path: Path | None = None,
        packs_dir: Path | None = None,
        runner: ScriptRunner | None = None,
        project_root: Path | None = None,
    ) -> PackCatalog:
        """Build the catalog from built-in packs and the pack registry.

        Registered packs that fail to load are skipped and listed in
        ``failures``; a pack with modified trusted scripts is never loaded.

        Raises:
            RegistryError: If the registry itself cannot be read.
        """
        registry = PackRegistry.load(registry_path)
        external: list[Pack] = []
        failures: dict[str, str] = {}

        for entry in registry.entries:
            try:
                external.append(load_external_pack(entry, packs_dir, runner, project_root))
            except PackTrustError as e:
                logger.error("%s", e)
                failures[entry.identifier] = str(e)
            except (PacksyncError, OSError, UnicodeDecodeError) as e:
                logger.warning("Skipping pack '%s': %s", entry.identifier, e)
                failures[entry.identifier] = str(e)

        catalog = cls(builtin_packs(), external)
        catalog.failures = failures
        return catalog

    def pack(self, identifier: str) -> Pack | None:
        return self._packs.get(identifier)

    def packs(self) -> list[Pack]:
        """All packs, sorted by identifier."""
        return [self._packs[k] for k in sorted(self._packs)]

    def identifiers(self) -> list[str]:
        return sorted(self._packs)

    def all_components(self) -> list[Component]:
        """Components of every pack, in pack then declaration order."""
        return [c for pack in self.packs() for c in pack.components]

    def components_for(self, pack_ids: Iterable[str]) -> list[str]:
        """IDs of the components selected by choosing the given packs.

        Raises:
            UnknownPackError: If a pack identifier is unknown.
        """
        ids: list[str] = []
        for pack_id in pack_ids:
            pack = self._packs.get(pack_id)
            if pack is None:
                raise UnknownPackError(pack_id)
            ids.extend(c.id for c in pack.components)
        return ids

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._packs

    def __len__(self) -> int:
        return len(self._packs)
