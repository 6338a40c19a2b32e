"""Pack models.

A pack bundles components, template contributions and other artifacts.
Built-in packs are constructed directly in Python; external packs are
produced by the external pack adapter from a validated manifest. Both end
up as the same ``Pack`` value and are told apart only by ``source``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from packsync.models.check import DoctorCheck
from packsync.models.component import (
    Component,
    PackageInstallAction,
    PluginAction,
    PluginRef,
    ServiceEntryAction,
)


class PackSource(str, Enum):
    """Where a pack definition came from."""

    BUILTIN = "builtin"
    EXTERNAL = "external"


@dataclass(frozen=True, slots=True)
class TemplateContribution:
    """Template section contributed by a pack.

    Attributes:
        section_identifier: Marker identifier of the section (e.g. "web").
        template_content: Raw template text with ``__KEY__`` placeholders.
        placeholders: Placeholder tokens the template declares.
    """

    section_identifier: str
    template_content: str
    placeholders: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class HookContribution:
    """Script fragment injected into a named hook script.

    Attributes:
        hook_name: Hook the fragment belongs to (e.g. "session-start").
        script_fragment: Shell fragment text.
        position: "before" or "after" the existing hook body.
    """

    hook_name: str
    script_fragment: str
    position: str = "after"


@dataclass(frozen=True, slots=True)
class Pack:
    """An installable bundle of components and generated content.

    Attributes:
        identifier: Unique pack identifier (e.g. "web").
        display_name: Human-readable name.
        description: Short description.
        version: The single fixed version this pack declares.
        components: Components in declaration order.
        templates: Template sections contributed to the generated file.
        hooks: Hook script fragments.
        gitignore_entries: Entries added to the global gitignore.
        supplementary_checks: Extra doctor checks not derivable from components.
        source: Built-in or externally loaded.
        path: Pack checkout directory for external packs.
    """

    identifier: str
    display_name: str
    description: str = ""
    version: str = "0.0.0"
    components: tuple[Component, ...] = ()
    templates: tuple[TemplateContribution, ...] = ()
    hooks: tuple[HookContribution, ...] = ()
    gitignore_entries: tuple[str, ...] = ()
    supplementary_checks: tuple[DoctorCheck, ...] = field(default_factory=tuple)
    source: PackSource = PackSource.BUILTIN
    path: Path | None = None

    def declares_package(self, name: str) -> bool:
        """Check whether any component installs the given package."""
        return any(
            isinstance(c.install_action, PackageInstallAction) and c.install_action.package == name
            for c in self.components
        )

    def declares_plugin(self, name: str) -> bool:
        """Check whether any component installs the given plugin.

        Plugin references match on their bare name, so ``lint`` and
        ``lint@org/repo`` denote the same plugin.
        """
        ref = PluginRef.parse(name)
        return any(
            isinstance(c.install_action, PluginAction) and ref.same_plugin(c.install_action.name)
            for c in self.components
        )

    def declares_service_entry(self, name: str) -> bool:
        """Check whether any component registers the given service entry."""
        return any(
            isinstance(c.install_action, ServiceEntryAction) and c.install_action.name == name
            for c in self.components
        )

    def section_identifiers(self) -> list[str]:
        """Identifiers of all template sections this pack contributes."""
        return [t.section_identifier for t in self.templates]
