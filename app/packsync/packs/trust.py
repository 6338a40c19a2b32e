"""Trust tracking for executable pack content.

Everything in an external pack that can execute code with the user's
privileges is collected as a TrustableItem. When the user accepts a pack,
the hashes of those items are recorded in the registry. Before the pack is
loaded again, the recorded file hashes are re-verified; after an update,
items that are new or changed are surfaced for re-approval.

Hash keys are the pack-relative path for file-backed items and
``"inline:" + sha256(content)`` for inline commands.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from packsync.core.hashing import sha256_file, sha256_text
from packsync.packs.manifest import DoctorCheckDefinition, PackManifest
from packsync.packs.sandbox import safe_path

logger = logging.getLogger(__name__)

INLINE_PREFIX = "inline:"


class TrustableType(str, Enum):
    """Origin of a trustable item."""

    SHELL_COMMAND = "shell_command"
    SERVICE_ENTRY_COMMAND = "service_entry_command"
    DOCTOR_COMMAND = "doctor_command"
    DOCTOR_SCRIPT = "doctor_script"
    FIX_SCRIPT = "fix_script"
    CONFIGURE_SCRIPT = "configure_script"
    HOOK_FRAGMENT = "hook_fragment"


@dataclass(frozen=True, slots=True)
class TrustableItem:
    """Executable content that needs the user's approval.

    Attributes:
        type: Origin of the item.
        content: Script text, or the inline command line.
        relative_path: Pack-relative script path, None for inline commands.
        description: Human-readable description.
    """

    type: TrustableType
    content: str
    relative_path: str | None
    description: str

    @property
    def is_inline(self) -> bool:
        return self.relative_path is None

    @property
    def hash_key(self) -> str:
        """Registry key under which this item's hash is stored."""
        if self.relative_path is not None:
            return self.relative_path
        return INLINE_PREFIX + sha256_text(self.content)


class PackTrustManager:
    """Analyzes, hashes and verifies the executable content of packs."""

    def analyze_scripts(self, manifest: PackManifest, pack_path: Path) -> list[TrustableItem]:
        """Collect all executable content of a pack.

        Args:
            manifest: Validated pack manifest.
            pack_path: Pack checkout directory.

        Returns:
            Trustable items in manifest order.

        Raises:
            OSError: If an existing script file cannot be read.
        """
        items: list[TrustableItem] = []

        for component in manifest.components:
            action = component.install_action
            if action.type == "shell_command":
                items.append(
                    TrustableItem(
                        TrustableType.SHELL_COMMAND,
                        action.command,
                        None,
                        f"{component.display_name}: runs during install",
                    )
                )
            elif action.type == "service_entry":
                items.append(
                    TrustableItem(
                        TrustableType.SERVICE_ENTRY_COMMAND,
                        action.display,
                        None,
                        "Service entry: runs on every session",
                    )
                )
            for check in component.doctor_checks:
                items.extend(self._check_items(check, pack_path))

        if manifest.configure_project is not None:
            script = manifest.configure_project.script
            items.append(
                TrustableItem(
                    TrustableType.CONFIGURE_SCRIPT,
                    self._read_pack_file(script, pack_path),
                    script,
                    "Runs during project configuration",
                )
            )

        for check in manifest.supplementary_doctor_checks:
            items.extend(self._check_items(check, pack_path))

        for hook in manifest.hook_contributions:
            items.append(
                TrustableItem(
                    TrustableType.HOOK_FRAGMENT,
                    self._read_pack_file(hook.fragment_file, pack_path),
                    hook.fragment_file,
                    f"Hook fragment injected into {hook.hook_name}: runs on every session",
                )
            )

        for prompt in manifest.prompts:
            if prompt.type == "script" and prompt.script_command:
                items.append(
                    TrustableItem(
                        TrustableType.SHELL_COMMAND,
                        prompt.script_command,
                        None,
                        f"Prompt script for '{prompt.key}': runs during configure",
                    )
                )

        return items

    def compute_script_hashes(
        self, items: list[TrustableItem], pack_path: Path
    ) -> dict[str, str]:
        """Hash every trustable item.

        File items whose file is missing or escapes the pack are left out,
        so verify_trust() has nothing to compare them against.

        Args:
            items: Items from analyze_scripts().
            pack_path: Pack checkout directory.

        Returns:
            Mapping of hash key to SHA-256 hex digest.

        Raises:
            OSError: If an existing script file cannot be read.
        """
        hashes: dict[str, str] = {}
        for item in items:
            if item.relative_path is None:
                hashes[item.hash_key] = sha256_text(item.content)
                continue
            path = safe_path(item.relative_path, pack_path)
            if path is not None and path.is_file():
                hashes[item.relative_path] = sha256_file(path)
        return hashes

    def verify_trust(self, trusted_hashes: dict[str, str], pack_path: Path) -> list[str]:
        """Find trusted script files that changed since they were approved.

        Inline keys are skipped; inline commands live in the manifest and are
        re-checked by detect_new_scripts() when the pack is updated.

        Args:
            trusted_hashes: Hashes recorded when the pack was trusted.
            pack_path: Pack checkout directory.

        Returns:
            Sorted relative paths of missing, escaping or modified scripts.
            Unreadable files carry the error in the entry.
        """
        modified: list[str] = []
        for relative, expected in trusted_hashes.items():
            if relative.startswith(INLINE_PREFIX):
                continue
            path = safe_path(relative, pack_path)
            if path is None or not path.is_file():
                modified.append(relative)
                continue
            try:
                actual = sha256_file(path)
            except OSError as e:
                modified.append(f"{relative} (unreadable: {e})")
                continue
            if actual != expected:
                modified.append(relative)

        if modified:
            logger.warning("Trusted scripts modified in %s: %s", pack_path, ", ".join(modified))
        return sorted(modified)

    def detect_new_scripts(
        self,
        current_hashes: dict[str, str],
        updated_pack_path: Path,
        manifest: PackManifest,
    ) -> list[TrustableItem]:
        """Find executable content of an updated pack that is not yet trusted.

        Args:
            current_hashes: Hashes recorded when the pack was last trusted.
            updated_pack_path: Checkout of the updated pack.
            manifest: Manifest of the updated pack.

        Returns:
            Items that are new or whose content changed.

        Raises:
            OSError: If an existing script file cannot be read.
        """
        untrusted: list[TrustableItem] = []
        for item in self.analyze_scripts(manifest, updated_pack_path):
            trusted = current_hashes.get(item.hash_key)
            if trusted is None:
                untrusted.append(item)
                continue
            if item.relative_path is None:
                if trusted != sha256_text(item.content):
                    untrusted.append(item)
                continue
            path = safe_path(item.relative_path, updated_pack_path)
            try:
                actual = sha256_file(path) if path is not None else None
            except OSError:
                actual = None
            if actual != trusted:
                untrusted.append(item)
        return untrusted

    def _check_items(self, check: DoctorCheckDefinition, pack_path: Path) -> list[TrustableItem]:
        items: list[TrustableItem] = []

        if check.type == "command_exists" and check.command:
            items.append(
                TrustableItem(
                    TrustableType.DOCTOR_COMMAND,
                    " ".join([check.command, *check.args]),
                    None,
                    f"Doctor check command: {check.name}",
                )
            )

        if check.type == "shell_script" and check.command:
            items.append(
                self._script_or_inline(
                    check.command,
                    pack_path,
                    TrustableType.DOCTOR_SCRIPT,
                    f"Doctor check script: {check.name}",
                )
            )

        if check.fix_command:
            items.append(
                TrustableItem(
                    TrustableType.FIX_SCRIPT,
                    check.fix_command,
                    None,
                    f"Fix command for: {check.name}",
                )
            )

        if check.fix_script:
            items.append(
                self._script_or_inline(
                    check.fix_script,
                    pack_path,
                    TrustableType.FIX_SCRIPT,
                    f"Fix script for: {check.name}",
                )
            )

        return items

    def _script_or_inline(
        self,
        reference: str,
        pack_path: Path,
        item_type: TrustableType,
        description: str,
    ) -> TrustableItem:
        """A reference naming an existing pack file is a script, otherwise inline."""
        path = safe_path(reference, pack_path)
        if path is not None and path.is_file():
            content = path.read_text(encoding="utf-8", errors="replace")
            return TrustableItem(item_type, content, reference, description)
        return TrustableItem(item_type, reference, None, description)

    @staticmethod
    def _read_pack_file(reference: str, pack_path: Path) -> str:
        """Read a referenced pack file; escaping or missing files yield the reference itself."""
        path = safe_path(reference, pack_path)
        if path is None:
            logger.warning("Reference '%s' escapes pack directory %s", reference, pack_path)
            return reference
        if not path.is_file():
            return reference
        return path.read_text(encoding="utf-8", errors="replace")
