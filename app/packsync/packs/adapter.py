"""Conversion of external pack manifests into Pack values.

Every file reference in the manifest is resolved through the sandbox. A
reference that escapes the pack directory drops only the component,
template or hook that carries it; the rest of the pack still loads.
"""

from __future__ import annotations

import logging
from pathlib import Path

from packsync.models.component import (
    Component,
    CopyFileAction,
    CopyFileKind,
    GitignoreEntriesAction,
    InstallAction,
    PackageInstallAction,
    PluginAction,
    ServiceEntryAction,
    SettingsMergeAction,
    ShellCommandAction,
)
from packsync.models.pack import HookContribution, Pack, PackSource, TemplateContribution
from packsync.packs.checks import make_check
from packsync.packs.manifest import (
    ComponentDefinition,
    InstallActionDefinition,
    PackManifest,
)
from packsync.packs.sandbox import PathEscapeError, require_safe_path
from packsync.packs.scripts import ScriptRunner

logger = logging.getLogger(__name__)


class ExternalPackAdapter:
    """Builds a Pack from a validated manifest and its checkout directory.

    Attributes:
        manifest: The validated pack manifest.
        pack_path: Pack checkout directory.
        rejected: Escaping references encountered by the last to_pack() call.
    """

    def __init__(
        self,
        manifest: PackManifest,
        pack_path: Path,
        runner: ScriptRunner | None = None,
        project_root: Path | None = None,
    ) -> None:
        self.manifest = manifest
        self.pack_path = pack_path
        self.runner = runner or ScriptRunner()
        self.project_root = project_root
        self.rejected: list[PathEscapeError] = []

    @property
    def identifier(self) -> str:
        return self.manifest.identifier

    def to_pack(self) -> Pack:
        """Convert the manifest into a Pack.

        Returns:
            The pack with every escaping reference removed.

        Raises:
            OSError: If a contained template or hook file cannot be read.
                Files that are not valid UTF-8 drop only their template or hook.
        """
        self.rejected = []
        components = tuple(
            c for c in (self._convert_component(d) for d in self.manifest.components) if c
        )
        checks = tuple(
            make_check(d, self.pack_path, self.runner, self.project_root)
            for d in self.manifest.all_doctor_checks()
        )
        return Pack(
            identifier=self.manifest.identifier,
            display_name=self.manifest.display_name,
            description=self.manifest.description,
            version=self.manifest.version,
            components=components,
            templates=self._templates(),
            hooks=self._hooks(),
            gitignore_entries=tuple(self.manifest.gitignore_entries),
            supplementary_checks=checks,
            source=PackSource.EXTERNAL,
            path=self.pack_path,
        )

    def _resolve(self, reference: str, what: str) -> Path | None:
        try:
            return require_safe_path(reference, self.pack_path)
        except PathEscapeError as e:
            logger.warning("%s, skipping %s", e, what)
            self.rejected.append(e)
            return None

    def _read(self, path: Path, what: str) -> str | None:
        try:
            return path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            logger.warning("%s is not valid UTF-8 (%s), skipping %s", path, e.reason, what)
            return None

    def _templates(self) -> tuple[TemplateContribution, ...]:
        templates: list[TemplateContribution] = []
        for definition in self.manifest.templates:
            what = f"template '{definition.section_identifier}'"
            path = self._resolve(definition.content_file, what)
            content = self._read(path, what) if path is not None else None
            if content is None:
                continue
            templates.append(
                TemplateContribution(
                    section_identifier=definition.section_identifier,
                    template_content=content,
                    placeholders=tuple(definition.placeholders),
                )
            )
        return tuple(templates)

    def _hooks(self) -> tuple[HookContribution, ...]:
        hooks: list[HookContribution] = []
        for definition in self.manifest.hook_contributions:
            what = f"hook '{definition.hook_name}'"
            path = self._resolve(definition.fragment_file, what)
            fragment = self._read(path, what) if path is not None else None
            if fragment is None:
                continue
            hooks.append(
                HookContribution(
                    hook_name=definition.hook_name,
                    script_fragment=fragment,
                    position=definition.position,
                )
            )
        return tuple(hooks)

    def _convert_component(self, definition: ComponentDefinition) -> Component | None:
        action = self._convert_action(definition.install_action, definition.id)
        if action is None:
            return None
        return Component(
            id=definition.id,
            install_action=action,
            pack_identifier=self.manifest.identifier,
            dependencies=tuple(definition.dependencies),
            is_required=definition.is_required,
            display_name=definition.display_name,
            description=definition.description,
            hook_event=definition.hook_event,
        )

    def _convert_action(
        self, definition: InstallActionDefinition, component_id: str
    ) -> InstallAction | None:
        match definition.type:
            case "service_entry":
                return ServiceEntryAction(
                    name=definition.name,
                    command=definition.command if definition.transport == "stdio" else None,
                    args=tuple(definition.args),
                    env=dict(definition.env),
                    url=definition.url if definition.transport == "http" else None,
                    scope=definition.scope,
                )
            case "plugin":
                return PluginAction(definition.name)
            case "package":
                return PackageInstallAction(definition.package)
            case "shell_command":
                return ShellCommandAction(definition.command)
            case "gitignore_entries":
                return GitignoreEntriesAction(tuple(definition.entries))
            case "settings_merge":
                return SettingsMergeAction()
            case "settings_file":
                source = self._resolve(definition.source, f"component '{component_id}'")
                return SettingsMergeAction(source) if source is not None else None
            case "copy_pack_file":
                source = self._resolve(definition.source, f"component '{component_id}'")
                if source is None:
                    return None
                return CopyFileAction(
                    source=source,
                    destination=definition.destination,
                    kind=CopyFileKind(definition.file_type),
                )
        return None
