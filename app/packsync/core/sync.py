"""Convergence of one scope toward a pack selection.

The converger ties the subsystems together. A sync resolves the selected
packs' components, installs what is missing through the injected
installer, copies pack files, writes the generated file's sections,
unconfigures packs that were deselected, and records everything it
created in the scope's state.

Only artifacts a sync actually created are recorded. A package, plugin,
service entry or file that already existed is left alone and never
claimed, so removing the pack later cannot delete it.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

from packsync import __version__
from packsync.core.config import EngineConfig
from packsync.core.hashing import HashingError, directory_file_hashes, sha256_text
from packsync.core.index import PACK_REMOVE_SENTINEL, ScopeIndex, ScopeIndexError
from packsync.core.lock import file_lock
from packsync.core.manifest import FileManifest, ManifestError
from packsync.core.paths import get_file_manifest_path
from packsync.core.refcount import PackLookup, Resource, ResourceKind, ResourceRefCounter
from packsync.core.resolver import ResolvedPlan, resolve
from packsync.core.scope import SyncScope
from packsync.core.settings import (
    HOOKS_KEY,
    SettingsError,
    load_settings,
    merge_settings,
    remove_hook_commands,
    remove_keys,
    save_settings,
)
from packsync.core.state import ScopeState
from packsync.models.component import (
    Component,
    CopyFileAction,
    CopyFileKind,
    GitignoreEntriesAction,
    PackageInstallAction,
    PluginAction,
    PluginRef,
    ServiceEntryAction,
    SettingsMergeAction,
    ShellCommandAction,
)
from packsync.models.pack import Pack
from packsync.models.state import ArtifactRecord, ServiceEntryRef
from packsync.packs.builtin import CORE_TEMPLATE
from packsync.packs.catalog import PackCatalog, UnknownPackError
from packsync.packs.sandbox import safe_path
from packsync.templates.composer import (
    CORE_SECTION,
    remove_section,
    replace_section,
    unpaired_sections,
)
from packsync.templates.engine import substitute
from packsync.templates.hooks import (
    HOOKS_DIRECTORY,
    hook_event_name,
    hook_script_path,
    inject_fragment,
    remove_fragment,
)
from packsync.templates.validator import ExpectedSection
from packsync.utils.fileio import write_atomic

logger = logging.getLogger(__name__)

GLOBAL_SERVICE_SCOPE = "user"
ENABLED_PLUGINS_KEY = "enabledPlugins"


class ArtifactInstaller(Protocol):
    """Side effects the converger delegates to the host environment.

    Mutating methods return True on success. Installers are expected to be
    idempotent: adding what already exists succeeds without changes.
    """

    def is_package_installed(self, name: str) -> bool: ...

    def install_package(self, name: str) -> bool: ...

    def uninstall_package(self, name: str) -> bool: ...

    def is_plugin_installed(self, name: str) -> bool: ...

    def install_plugin(self, name: str) -> bool: ...

    def remove_plugin(self, name: str) -> bool: ...

    def has_service_entry(self, name: str, scope: str) -> bool: ...

    def add_service_entry(self, action: ServiceEntryAction, scope: str) -> bool: ...

    def remove_service_entry(self, name: str, scope: str) -> bool: ...

    def run_shell_command(self, command: str) -> bool: ...

    def add_gitignore_entries(self, entries: Sequence[str]) -> bool: ...


@dataclass(slots=True)
class SyncReport:
    """What a sync or removal did.

    Attributes:
        scope: The converged scope.
        plan: Resolved installation order.
        dry_run: True if nothing was written.
        added_packs: Packs configured for the first time.
        updated_packs: Packs that were already configured.
        removed_packs: Packs unconfigured.
        installed: Artifacts created.
        removed: Artifacts deleted.
        kept: Shared artifacts kept because another owner needs them.
        skipped: Artifacts left untouched (pre-existing, modified, unpaired).
        failures: Operations that failed.
        written_sections: Template sections written to the generated file.
    """

    scope: SyncScope
    plan: ResolvedPlan
    dry_run: bool = False
    added_packs: list[str] = field(default_factory=list)
    updated_packs: list[str] = field(default_factory=list)
    removed_packs: list[str] = field(default_factory=list)
    installed: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    kept: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failures: list[str] = field(default_factory=list)
    written_sections: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


def _empty_plan() -> ResolvedPlan:
    return ResolvedPlan(ordered_components=(), added_dependencies=())


def resolve_values(
    scope: SyncScope, state: ScopeState, values: Mapping[str, str] | None = None
) -> dict[str, str]:
    """Placeholder values for a scope: built-ins, then stored, then explicit values."""
    return {**scope.builtin_values(), **state.resolved_values, **(values or {})}


def expected_sections(
    catalog: PackLookup, scope: SyncScope, state: ScopeState
) -> dict[str, ExpectedSection]:
    """Render what the generated file should contain for the configured packs.

    Args:
        catalog: Pack lookup for the configured packs.
        scope: Scope whose generated file is checked.
        state: State of that scope.

    Returns:
        Expected sections keyed by identifier, core section first. Packs
        missing from the catalog contribute nothing.
    """
    values = resolve_values(scope, state)
    expected = {
        CORE_SECTION: ExpectedSection(
            __version__, substitute(CORE_TEMPLATE, values, emit_warnings=False)
        )
    }
    for pack_id in state.configured_packs:
        pack = catalog.pack(pack_id)
        if pack is None:
            logger.warning("Configured pack '%s' is not available", pack_id)
            continue
        for template in pack.templates:
            expected[template.section_identifier] = ExpectedSection(
                __version__,
                substitute(template.template_content, values, emit_warnings=False),
            )
    return expected


def derived_settings(pack: Pack, target_dir: Path) -> dict[str, Any]:
    """Settings a pack implies without shipping a settings file.

    Hook contributions and copied hook scripts that name an event are
    registered as hook commands. Plugins are enabled by their bare name.

    Args:
        pack: Pack to derive settings for.
        target_dir: Scope directory the hook scripts are installed below.

    Returns:
        Settings object in the shape merge_settings() accepts; empty if the
        pack implies nothing.
    """
    hooks: dict[str, list[dict[str, Any]]] = {}

    def register(event: str, script: Path) -> None:
        group = {"hooks": [{"type": "command", "command": f"bash {script}"}]}
        hooks.setdefault(event, []).append(group)

    for hook in pack.hooks:
        register(hook_event_name(hook.hook_name), hook_script_path(target_dir, hook.hook_name))

    plugins: dict[str, bool] = {}
    for component in pack.components:
        match component.install_action:
            case CopyFileAction(kind=CopyFileKind.HOOK, destination=destination) if (
                component.hook_event
            ):
                register(component.hook_event, target_dir / HOOKS_DIRECTORY / destination)
            case PluginAction(name=name):
                plugins[PluginRef.parse(name).bare_name] = True

    settings: dict[str, Any] = {}
    if hooks:
        settings[HOOKS_KEY] = hooks
    if plugins:
        settings[ENABLED_PLUGINS_KEY] = plugins
    return settings


class Converger:
    """Converges one scope toward a selection of packs.

    Attributes:
        catalog: Packs available for selection.
        installer: Performs package, plugin, service entry and shell effects.
        scope: The scope being converged.
    """

    def __init__(
        self,
        catalog: PackCatalog,
        installer: ArtifactInstaller,
        scope: SyncScope,
        *,
        config: EngineConfig | None = None,
        manifest_path: Path | None = None,
        index_path: Path | None = None,
        global_state_path: Path | None = None,
        lock_path: Path | None = None,
    ) -> None:
        self.catalog = catalog
        self.installer = installer
        self.scope = scope
        self.config = config or EngineConfig()
        self.manifest_path = manifest_path or get_file_manifest_path()
        self.index_path = index_path
        self.lock_path = lock_path
        self.refcounter = ResourceRefCounter(
            catalog, global_state_path=global_state_path, index_path=index_path
        )

    # --- Planning ---------------------------------------------------------------

    def _select(self, pack_ids: Iterable[str]) -> list[Pack]:
        packs: list[Pack] = []
        for pack_id in sorted(set(pack_ids)):
            pack = self.catalog.pack(pack_id)
            if pack is None:
                raise UnknownPackError(pack_id)
            packs.append(pack)
        return packs

    def plan(self, pack_ids: Iterable[str]) -> ResolvedPlan:
        """Resolve the installation order for a pack selection.

        Raises:
            UnknownPackError: If a pack is not in the catalog.
            DependencyCycleError: If component dependencies form a cycle.
            UnknownComponentError: If a dependency is not in the catalog.
        """
        packs = self._select(pack_ids)
        selected = [c.id for pack in packs for c in pack.components]
        return resolve(selected, self.catalog.all_components())

    def _owners(self, packs: list[Pack]) -> dict[str, str]:
        """Map each planned component to the selected pack that pulled it in."""
        all_components = self.catalog.all_components()
        owners: dict[str, str] = {}
        for pack in packs:
            sub_plan = resolve([c.id for c in pack.components], all_components)
            for component in sub_plan.ordered_components:
                owners.setdefault(component.id, pack.identifier)
        return owners

    # --- Sync -------------------------------------------------------------------

    def sync(
        self,
        pack_ids: Iterable[str],
        values: Mapping[str, str] | None = None,
        dry_run: bool = False,
    ) -> SyncReport:
        """Converge the scope toward the given pack selection.

        Args:
            pack_ids: Packs that should be configured after the sync.
            values: Placeholder values overriding stored and built-in ones.
            dry_run: Only compute the plan and pack changes; take no lock
                and write nothing.

        Returns:
            SyncReport describing the changes.

        Raises:
            UnknownPackError: If a pack is not in the catalog.
            ResolverError: If the components cannot be ordered.
            LockContentionError: If another packsync process holds the lock.
            StateParseError: If the scope state file is corrupt.
            ManifestParseError: If the file manifest is corrupt.
        """
        packs = self._select(pack_ids)
        plan = self.plan(p.identifier for p in packs)
        report = SyncReport(self.scope, plan, dry_run=dry_run)

        if dry_run:
            state = ScopeState.load(self.scope.state_path)
            self._classify(state, packs, report)
            return report

        with file_lock(self.lock_path):
            self._converge(packs, plan, dict(values or {}), report)
        return report

    def _classify(self, state: ScopeState, packs: list[Pack], report: SyncReport) -> None:
        selected = {p.identifier for p in packs}
        previous = set(state.configured_packs)
        report.added_packs = sorted(selected - previous)
        report.updated_packs = sorted(selected & previous)
        report.removed_packs = sorted(previous - selected)

    def _converge(
        self,
        packs: list[Pack],
        plan: ResolvedPlan,
        values: dict[str, str],
        report: SyncReport,
    ) -> None:
        state = ScopeState.load(self.scope.state_path)
        self._classify(state, packs, report)
        selected = [p.identifier for p in packs]

        for pack_id in report.removed_packs:
            logger.info("Removing %s%s", pack_id, self.scope.label_suffix)
            self._unconfigure(pack_id, state, report, self.scope.scope_identifier, selected)
        report.removed_packs = [p for p in report.removed_packs if not state.is_configured(p)]

        resolved = resolve_values(self.scope, state, values)
        state.record_values(resolved)

        manifest = FileManifest(self.manifest_path)
        manifest.initialize(self.scope.target_dir)

        owners = self._owners(packs)
        new_packs = set(report.added_packs)
        for component in plan.ordered_components:
            owner = owners[component.id]
            previous = state.artifacts(owner) or ArtifactRecord()
            created = self._install(component, previous, manifest, owner in new_packs, report)
            state.merge_artifacts(owner, created)
            manifest.record_installed_component(component.id)

        for pack in packs:
            if pack.gitignore_entries and not self.installer.add_gitignore_entries(
                pack.gitignore_entries
            ):
                report.failures.append(f"gitignore entries of {pack.identifier}")
            self._inject_hooks(pack, state, manifest, report)
            state.record_pack(pack.identifier)
            manifest.record_installed_pack(pack.identifier)

        self._compose(packs, state, resolved, report)

        state.save()
        manifest.save()
        self._update_index(state.configured_packs, report)

    # --- Installation -------------------------------------------------------------

    def _claim(
        self,
        label: str,
        owned: bool,
        present: Callable[[], bool],
        install: Callable[[], bool],
        report: SyncReport,
    ) -> bool:
        """Install a shared resource; True if this sync created it."""
        if owned:
            if not present() and not install():
                report.failures.append(label)
            return False
        if present():
            logger.debug("%s already present, not claiming it", label)
            report.skipped.append(f"{label} (already present)")
            return False
        if install():
            report.installed.append(label)
            return True
        report.failures.append(label)
        return False

    def _install(
        self,
        component: Component,
        previous: ArtifactRecord,
        manifest: FileManifest,
        is_new_pack: bool,
        report: SyncReport,
    ) -> ArtifactRecord:
        created = ArtifactRecord()
        installer = self.installer
        action = component.install_action

        match action:
            case PackageInstallAction(package=name):
                if self._claim(
                    f"package {name}",
                    name in previous.packages,
                    lambda: installer.is_package_installed(name),
                    lambda: installer.install_package(name),
                    report,
                ):
                    created.packages.append(name)

            case PluginAction(name=name):
                ref = PluginRef.parse(name)
                if self._claim(
                    f"plugin {ref.bare_name}",
                    any(ref.same_plugin(p) for p in previous.plugins),
                    lambda: installer.is_plugin_installed(name),
                    lambda: installer.install_plugin(name),
                    report,
                ):
                    created.plugins.append(name)

            case ServiceEntryAction():
                scope = GLOBAL_SERVICE_SCOPE if self.scope.is_global else action.resolved_scope
                entry = ServiceEntryRef(name=action.name, scope=scope)
                owned = entry in previous.service_entries
                if owned:
                    # Re-register so changed commands or URLs take effect
                    if not installer.add_service_entry(action, scope):
                        report.failures.append(f"service entry {action.name}")
                elif self._claim(
                    f"service entry {action.name}",
                    False,
                    lambda: installer.has_service_entry(action.name, scope),
                    lambda: installer.add_service_entry(action, scope),
                    report,
                ):
                    created.service_entries.append(entry)

            case ShellCommandAction(command=command):
                if not is_new_pack:
                    logger.debug(
                        "Skipping shell command of %s, pack already configured", component.id
                    )
                elif installer.run_shell_command(command):
                    report.installed.append(f"ran {component.id}")
                else:
                    report.failures.append(f"shell command of {component.id}")

            case GitignoreEntriesAction(entries=entries):
                if not installer.add_gitignore_entries(entries):
                    report.failures.append(f"gitignore entries of {component.id}")

            case SettingsMergeAction(source=None):
                pack = self.catalog.pack(component.pack_identifier or "")
                if pack is None:
                    logger.debug("%s has no pack to derive settings from", component.id)
                else:
                    incoming = derived_settings(pack, self.scope.target_dir)
                    self._apply_settings(component, incoming, created, report)

            case SettingsMergeAction(source=source):
                self._merge_settings(component, source, created, report)

            case CopyFileAction():
                self._copy_files(action, previous, manifest, created, report)

        return created

    def _merge_settings(
        self,
        component: Component,
        source: Path,
        created: ArtifactRecord,
        report: SyncReport,
    ) -> None:
        try:
            incoming = json.loads(source.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            report.failures.append(f"settings of {component.id}: {e}")
            return
        if not isinstance(incoming, dict):
            report.failures.append(f"settings of {component.id}: not a JSON object")
            return
        self._apply_settings(component, incoming, created, report)

    def _apply_settings(
        self,
        component: Component,
        incoming: dict[str, Any],
        created: ArtifactRecord,
        report: SyncReport,
    ) -> None:
        if not incoming:
            return
        try:
            settings = load_settings(self.scope.settings_path)
            result = merge_settings(settings, incoming)
            if result.added_keys or result.added_hook_commands:
                save_settings(self.scope.settings_path, settings)
        except SettingsError as e:
            report.failures.append(f"settings of {component.id}: {e}")
            return

        created.settings_keys.extend(result.added_keys)
        created.hook_commands.extend(result.added_hook_commands)
        report.installed.extend(f"setting {k}" for k in result.added_keys)
        report.installed.extend(f"hook {c}" for c in result.added_hook_commands)

    def _copy_files(
        self,
        action: CopyFileAction,
        previous: ArtifactRecord,
        manifest: FileManifest,
        created: ArtifactRecord,
        report: SyncReport,
    ) -> None:
        subdir = action.kind.subdirectory
        root = f"{subdir}/{action.destination}" if subdir else action.destination

        if action.source.is_dir():
            try:
                files = [rel for rel, _ in directory_file_hashes(action.source)]
            except HashingError as e:
                report.failures.append(f"copy {action.source}: {e}")
                return
            pairs = []
            for rel in files:
                source = safe_path(rel, action.source)
                if source is None:
                    logger.warning("'%s' links outside %s, skipping", rel, action.source)
                    report.skipped.append(f"{root}/{rel} (escapes pack directory)")
                    continue
                pairs.append((f"{root}/{rel}", source))
        else:
            pairs = [(root, action.source)]

        for relative, source in pairs:
            destination = safe_path(relative, self.scope.target_dir)
            if destination is None:
                logger.warning(
                    "Destination '%s' escapes %s, skipping", relative, self.scope.target_dir
                )
                report.skipped.append(f"{relative} (escapes target directory)")
                continue

            owned = relative in previous.files
            key = self.scope.manifest_key(relative)
            if destination.exists():
                if not owned:
                    report.skipped.append(f"{relative} (pre-existing file)")
                    continue
                if manifest.check(key, destination) is False:
                    logger.warning("%s was modified locally, leaving it in place", relative)
                    report.skipped.append(f"{relative} (modified locally)")
                    continue

            try:
                write_atomic(destination, source.read_bytes())
                manifest.record(key, source)
            except (OSError, ManifestError) as e:
                report.failures.append(f"copy {relative}: {e}")
                continue

            if not owned:
                created.files.append(relative)
                report.installed.append(f"file {relative}")

    # --- Hook scripts -------------------------------------------------------------

    def _rewrite_hook(self, hook_name: str, text: str, manifest: FileManifest) -> None:
        """Write an edited hook script, keeping a tracked copy's hash current.

        Raises:
            OSError: If the script cannot be written.
        """
        write_atomic(hook_script_path(self.scope.target_dir, hook_name), text)
        key = self.scope.manifest_key(f"{HOOKS_DIRECTORY}/{hook_name}.sh")
        if manifest.hash_for(key) is not None:
            manifest.record_hash(key, sha256_text(text))

    def _inject_hooks(
        self,
        pack: Pack,
        state: ScopeState,
        manifest: FileManifest,
        report: SyncReport,
    ) -> None:
        record = state.artifacts(pack.identifier) or ArtifactRecord()
        injected: list[str] = []
        for hook in pack.hooks:
            path = hook_script_path(self.scope.target_dir, hook.hook_name)
            if not path.exists():
                logger.debug(
                    "Hook %s is not installed, skipping fragment of %s",
                    hook.hook_name,
                    pack.identifier,
                )
                report.skipped.append(f"hook {hook.hook_name} (not installed)")
                continue
            try:
                text = path.read_text(encoding="utf-8")
                updated = inject_fragment(
                    text, pack.identifier, hook.script_fragment, position=hook.position
                )
                if updated is None:
                    logger.error(
                        "Hook %s has no extension marker, cannot add fragment of %s",
                        hook.hook_name,
                        pack.identifier,
                    )
                    report.failures.append(f"hook {hook.hook_name}: extension marker missing")
                    continue
                if updated != text:
                    self._rewrite_hook(hook.hook_name, updated, manifest)
                    report.installed.append(f"hook fragment {hook.hook_name}")
            except (OSError, UnicodeDecodeError) as e:
                report.failures.append(f"hook {hook.hook_name}: {e}")
                continue
            if hook.hook_name not in injected:
                injected.append(hook.hook_name)

        stale = [h for h in record.hook_fragments if h not in injected]
        leftover = self._remove_hook_fragments(pack.identifier, stale, manifest, report)
        state.set_artifacts(
            pack.identifier, record.model_copy(update={"hook_fragments": injected + leftover})
        )

    def _remove_hook_fragments(
        self,
        pack_id: str,
        hook_names: list[str],
        manifest: FileManifest,
        report: SyncReport,
    ) -> list[str]:
        """Remove a pack's fragments from hook scripts.

        Returns:
            Hooks whose fragment could not be removed.
        """
        failed: list[str] = []
        for hook_name in hook_names:
            path = hook_script_path(self.scope.target_dir, hook_name)
            if not path.exists():
                continue
            try:
                text = path.read_text(encoding="utf-8")
                updated = remove_fragment(text, pack_id)
                if updated != text:
                    self._rewrite_hook(hook_name, updated, manifest)
                    report.removed.append(f"hook fragment {hook_name}")
            except (OSError, UnicodeDecodeError) as e:
                report.failures.append(f"hook {hook_name}: {e}")
                failed.append(hook_name)
        return failed

    # --- Generated file -----------------------------------------------------------

    def _compose(
        self,
        packs: list[Pack],
        state: ScopeState,
        values: Mapping[str, str],
        report: SyncReport,
    ) -> None:
        path = self.scope.generated_file_path
        try:
            original = path.read_text(encoding="utf-8") if path.exists() else ""
        except OSError as e:
            report.failures.append(f"read {path.name}: {e}")
            return

        unpaired = set(unpaired_sections(original))
        text = original
        if CORE_SECTION in unpaired:
            report.skipped.append(f"section {CORE_SECTION} (unpaired marker)")
        else:
            core = substitute(CORE_TEMPLATE, values)
            text = replace_section(text, CORE_SECTION, core, __version__)

        for pack in packs:
            record = state.artifacts(pack.identifier) or ArtifactRecord()
            sections: list[str] = []
            for template in pack.templates:
                identifier = template.section_identifier
                if identifier in unpaired:
                    logger.warning(
                        "Section '%s' has an unpaired marker, leaving it alone", identifier
                    )
                    report.skipped.append(f"section {identifier} (unpaired marker)")
                    if identifier in record.template_sections:
                        sections.append(identifier)
                    continue
                rendered = substitute(template.template_content, values)
                text = replace_section(text, identifier, rendered, __version__)
                sections.append(identifier)
                report.written_sections.append(identifier)

            for stale in record.template_sections:
                if stale not in sections:
                    text = remove_section(text, stale)
                    report.removed.append(f"section {stale}")

            state.set_artifacts(
                pack.identifier, record.model_copy(update={"template_sections": sections})
            )

        if text != original:
            try:
                write_atomic(path, text)
            except OSError as e:
                report.failures.append(f"write {path.name}: {e}")

    # --- Removal ------------------------------------------------------------------

    def remove_pack(self, pack_id: str, *, everywhere: bool = False) -> SyncReport:
        """Unconfigure one pack from the scope.

        Args:
            pack_id: Pack to remove.
            everywhere: The pack is being removed from every scope; reference
                counting then ignores its declarations in all scopes.

        Returns:
            SyncReport describing the removal.

        Raises:
            LockContentionError: If another packsync process holds the lock.
            StateParseError: If the scope state file is corrupt.
        """
        report = SyncReport(self.scope, _empty_plan())
        with file_lock(self.lock_path):
            state = ScopeState.load(self.scope.state_path)
            if not state.is_configured(pack_id) and state.artifacts(pack_id) is None:
                report.skipped.append(f"pack {pack_id} (not configured)")
                return report

            refcount_scope = PACK_REMOVE_SENTINEL if everywhere else self.scope.scope_identifier
            remaining = [p for p in state.configured_packs if p != pack_id]
            self._unconfigure(pack_id, state, report, refcount_scope, remaining)
            if not state.is_configured(pack_id):
                report.removed_packs.append(pack_id)
            state.save()
            self._update_index(state.configured_packs, report)
        return report

    def _needed_in_scope(self, resource: Resource, remaining_packs: Iterable[str]) -> bool:
        for pack_id in remaining_packs:
            pack = self.catalog.pack(pack_id)
            if pack is None or resource.declared_by(pack):
                return True
        return False

    def _still_needed(
        self,
        resource: Resource,
        pack_id: str,
        refcount_scope: str,
        remaining_packs: list[str],
    ) -> bool:
        return self._needed_in_scope(resource, remaining_packs) or self.refcounter.is_still_needed(
            resource, refcount_scope, pack_id
        )

    def _unconfigure(
        self,
        pack_id: str,
        state: ScopeState,
        report: SyncReport,
        refcount_scope: str,
        remaining_packs: list[str],
    ) -> None:
        """Reverse the artifacts a pack created in this scope.

        Artifacts that cannot be removed stay in the pack's record so a later
        run retries them; the pack is dropped from the state once its record
        is empty.
        """
        record = state.artifacts(pack_id)
        if record is None:
            state.remove_pack(pack_id)
            return

        remaining = record.model_copy(deep=True)

        for name in record.packages:
            resource = Resource(ResourceKind.PACKAGE, name)
            if self._still_needed(resource, pack_id, refcount_scope, remaining_packs):
                report.kept.append(resource.display_name)
            elif self.installer.uninstall_package(name):
                report.removed.append(resource.display_name)
            else:
                report.failures.append(f"uninstall {resource.display_name}")
                continue
            remaining.packages.remove(name)

        for name in record.plugins:
            resource = Resource(ResourceKind.PLUGIN, name)
            if self._still_needed(resource, pack_id, refcount_scope, remaining_packs):
                report.kept.append(resource.display_name)
            elif self.installer.remove_plugin(name):
                report.removed.append(resource.display_name)
            else:
                report.failures.append(f"remove {resource.display_name}")
                continue
            remaining.plugins.remove(name)

        for entry in record.service_entries:
            resource = Resource(ResourceKind.SERVICE_ENTRY, entry.name)
            if self._still_needed(resource, pack_id, refcount_scope, remaining_packs):
                report.kept.append(resource.display_name)
            elif self.installer.remove_service_entry(entry.name, entry.scope):
                report.removed.append(resource.display_name)
            else:
                report.failures.append(f"remove {resource.display_name}")
                continue
            remaining.service_entries.remove(entry)

        if record.hook_fragments:
            manifest = FileManifest(self.manifest_path)
            remaining.hook_fragments = self._remove_hook_fragments(
                pack_id, record.hook_fragments, manifest, report
            )
            try:
                manifest.save()
            except ManifestError as e:
                report.failures.append(str(e))
        self._remove_files(record, remaining, report)
        self._remove_settings(record, remaining, report)
        self._remove_sections(record, remaining, report)

        if remaining.is_empty:
            state.remove_pack(pack_id)
        else:
            state.set_artifacts(pack_id, remaining)
            logger.warning("Some artifacts of %s could not be removed, re-run to retry", pack_id)

    def _remove_files(
        self, record: ArtifactRecord, remaining: ArtifactRecord, report: SyncReport
    ) -> None:
        if not record.files:
            return
        manifest = FileManifest(self.manifest_path)
        for relative in record.files:
            path = self.scope.target_dir / relative
            key = self.scope.manifest_key(relative)
            if path.exists():
                if manifest.check(key, path) is False:
                    logger.warning("%s was modified locally, leaving it in place", relative)
                    report.kept.append(f"{relative} (modified locally)")
                else:
                    try:
                        path.unlink()
                    except OSError as e:
                        report.failures.append(f"delete {relative}: {e}")
                        continue
                    report.removed.append(f"file {relative}")
            manifest.forget(key)
            remaining.files.remove(relative)
        try:
            manifest.save()
        except ManifestError as e:
            report.failures.append(str(e))

    def _remove_settings(
        self, record: ArtifactRecord, remaining: ArtifactRecord, report: SyncReport
    ) -> None:
        if not record.settings_keys and not record.hook_commands:
            return
        try:
            settings = load_settings(self.scope.settings_path)
            remove_keys(settings, record.settings_keys)
            remove_hook_commands(settings, record.hook_commands)
            save_settings(self.scope.settings_path, settings)
        except SettingsError as e:
            logger.warning("Settings were not cleaned up: %s", e)
            report.failures.append(f"settings cleanup: {e}")
            return
        report.removed.extend(f"setting {k}" for k in record.settings_keys)
        report.removed.extend(f"hook {c}" for c in record.hook_commands)
        remaining.settings_keys = []
        remaining.hook_commands = []

    def _remove_sections(
        self, record: ArtifactRecord, remaining: ArtifactRecord, report: SyncReport
    ) -> None:
        if not record.template_sections:
            return
        path = self.scope.generated_file_path
        if not path.exists():
            remaining.template_sections = []
            return
        try:
            content = path.read_text(encoding="utf-8")
            updated = content
            for identifier in record.template_sections:
                updated = remove_section(updated, identifier)
            if updated != content:
                write_atomic(path, updated)
        except OSError as e:
            report.failures.append(f"update {path.name}: {e}")
            return
        leftover = set(unpaired_sections(updated)) & set(record.template_sections)
        for identifier in leftover:
            report.skipped.append(f"section {identifier} (unpaired marker)")
        report.removed.extend(
            f"section {s}" for s in record.template_sections if s not in leftover
        )
        remaining.template_sections = [s for s in record.template_sections if s in leftover]

    # --- Index --------------------------------------------------------------------

    def _update_index(self, pack_ids: list[str], report: SyncReport) -> None:
        try:
            index = ScopeIndex.load(self.index_path)
            if pack_ids:
                index.upsert(self.scope.scope_identifier, pack_ids)
            else:
                index.remove(self.scope.scope_identifier)
            index.save()
        except ScopeIndexError as e:
            logger.error("Could not update scope index: %s", e)
            report.failures.append(f"scope index: {e}")
