"""Diagnosis and repair of a configured scope.

Checks come from three places: the generated file's sections, checks
derived from the configured packs (copied files, packages, hook
fragments), and the supplementary checks packs declare themselves.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from packsync import __version__
from packsync.core.hashing import sha256_text
from packsync.core.manifest import FileManifest, ManifestError
from packsync.core.paths import get_file_manifest_path
from packsync.core.refcount import PackLookup
from packsync.core.scope import SyncScope
from packsync.core.state import ScopeState
from packsync.core.sync import expected_sections
from packsync.models.check import CheckResult, CheckStatus, DoctorCheck, FixResult, FixStatus
from packsync.models.component import PackageInstallAction
from packsync.models.pack import HookContribution
from packsync.templates.hooks import (
    HOOKS_DIRECTORY,
    hook_script_path,
    inject_fragment,
    installed_fragment,
)
from packsync.templates.validator import SectionFreshnessCheck
from packsync.utils.fileio import write_atomic
from packsync.utils.shell import command_exists

logger = logging.getLogger(__name__)

REPAIRABLE_STATUSES = (CheckStatus.OUTDATED, CheckStatus.NEEDS_ATTENTION)


class ManagedFileCheck:
    """Compares a copied pack file against the hash recorded when it was copied."""

    def __init__(self, relative: str, path: Path, key: str, manifest_path: Path) -> None:
        self.name = f"File {relative}"
        self.path = path
        self.key = key
        self.manifest_path = manifest_path

    def check(self) -> CheckResult:
        if not self.path.exists():
            return CheckResult(CheckStatus.OUTDATED, "missing")
        try:
            matches = FileManifest(self.manifest_path).check(self.key, self.path)
        except ManifestError as e:
            return CheckResult(CheckStatus.NEEDS_ATTENTION, f"manifest unreadable: {e}")
        if matches is None:
            return CheckResult(CheckStatus.UP_TO_DATE, "present (untracked)")
        if not matches:
            return CheckResult(CheckStatus.NEEDS_ATTENTION, "modified locally")
        return CheckResult(CheckStatus.UP_TO_DATE, "unchanged")

    def fix(self) -> FixResult:
        return FixResult(FixStatus.NOT_REPAIRABLE, "Re-run sync to restore the file")


class HookFragmentCheck:
    """Compares a pack's injected hook fragment with the pack's current one."""

    def __init__(
        self,
        pack_id: str,
        hook: HookContribution,
        path: Path,
        key: str,
        manifest_path: Path,
    ) -> None:
        self.name = f"Hook {hook.hook_name} ({pack_id})"
        self.pack_id = pack_id
        self.hook = hook
        self.path = path
        self.key = key
        self.manifest_path = manifest_path

    def check(self) -> CheckResult:
        if not self.path.exists():
            return CheckResult(CheckStatus.NOT_APPLICABLE, "hook script not installed")
        try:
            text = self.path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            return CheckResult(CheckStatus.NEEDS_ATTENTION, f"unreadable: {e}")

        installed = installed_fragment(text, self.pack_id)
        if installed is None:
            return CheckResult(CheckStatus.OUTDATED, "fragment missing")
        version, body = installed
        if body != self.hook.script_fragment.strip():
            return CheckResult(CheckStatus.OUTDATED, "fragment differs from pack")
        if version != __version__:
            reason = f"v{version} installed, v{__version__} current"
            return CheckResult(CheckStatus.OUTDATED, reason)
        return CheckResult(CheckStatus.UP_TO_DATE, "fragment current")

    def fix(self) -> FixResult:
        try:
            text = self.path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            return FixResult(FixStatus.FAILED, f"unreadable: {e}")
        updated = inject_fragment(
            text, self.pack_id, self.hook.script_fragment, position=self.hook.position
        )
        if updated is None:
            return FixResult(FixStatus.NOT_REPAIRABLE, "hook script has no extension marker")
        try:
            write_atomic(self.path, updated)
            manifest = FileManifest(self.manifest_path)
            if manifest.hash_for(self.key) is not None:
                manifest.record_hash(self.key, sha256_text(updated))
                manifest.save()
        except (OSError, ManifestError) as e:
            return FixResult(FixStatus.FAILED, str(e))
        return FixResult(FixStatus.REPAIRED, "fragment re-injected")


class PackageCheck:
    """Checks that a package's command is on PATH."""

    def __init__(self, package: str, display_name: str = "") -> None:
        self.name = display_name or f"Package {package}"
        self.package = package

    def check(self) -> CheckResult:
        if command_exists(self.package):
            return CheckResult(CheckStatus.UP_TO_DATE, "installed")
        return CheckResult(CheckStatus.OUTDATED, "not found on PATH")

    def fix(self) -> FixResult:
        return FixResult(FixStatus.NOT_REPAIRABLE, "Re-run sync to install dependencies")


@dataclass(frozen=True, slots=True)
class DoctorOutcome:
    """Result of one check, and of its repair if one was attempted."""

    name: str
    result: CheckResult
    fix: FixResult | None = None


def collect_checks(
    catalog: PackLookup,
    scope: SyncScope,
    state: ScopeState | None = None,
    manifest_path: Path | None = None,
) -> list[DoctorCheck]:
    """Gather every check that applies to a scope.

    Args:
        catalog: Packs available to the scope.
        scope: Scope to diagnose.
        state: Scope state; loaded from disk if None.
        manifest_path: File manifest path; defaults to the state directory's.

    Returns:
        Section freshness first, then derived and pack-declared checks.

    Raises:
        StateParseError: If the scope state file is corrupt.
    """
    state = state or ScopeState.load(scope.state_path)
    manifest_path = manifest_path or get_file_manifest_path()

    checks: list[DoctorCheck] = [
        SectionFreshnessCheck(
            scope.generated_file_path,
            expected_sections(catalog, scope, state),
            name=f"Sections in {scope.generated_file_path.name}",
        )
    ]

    for pack_id in state.configured_packs:
        record = state.artifacts(pack_id)
        if record is not None:
            for relative in record.files:
                checks.append(
                    ManagedFileCheck(
                        relative,
                        scope.target_dir / relative,
                        scope.manifest_key(relative),
                        manifest_path,
                    )
                )

        pack = catalog.pack(pack_id)
        if pack is None:
            logger.warning("Configured pack '%s' is not available, skipping its checks", pack_id)
            continue
        for component in pack.components:
            if isinstance(component.install_action, PackageInstallAction):
                checks.append(
                    PackageCheck(component.install_action.package, component.display_name)
                )
        for hook in pack.hooks:
            checks.append(
                HookFragmentCheck(
                    pack_id,
                    hook,
                    hook_script_path(scope.target_dir, hook.hook_name),
                    scope.manifest_key(f"{HOOKS_DIRECTORY}/{hook.hook_name}.sh"),
                    manifest_path,
                )
            )
        checks.extend(pack.supplementary_checks)

    return checks


def run_checks(checks: list[DoctorCheck], fix: bool = False) -> list[DoctorOutcome]:
    """Run checks and optionally repair the failing ones.

    Args:
        checks: Checks to run, in order.
        fix: Attempt a repair for outdated checks and checks needing attention.

    Returns:
        One outcome per check.
    """
    outcomes: list[DoctorOutcome] = []
    for check in checks:
        result = check.check()
        logger.debug("%s: %s (%s)", check.name, result.status.value, result.reason)
        repair: FixResult | None = None
        if fix and result.status in REPAIRABLE_STATUSES:
            repair = check.fix()
            logger.debug("Fix %s: %s (%s)", check.name, repair.status.value, repair.reason)
        outcomes.append(DoctorOutcome(check.name, result, repair))
    return outcomes
