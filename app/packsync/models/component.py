"""Component models for pack-declared installable units.

A component is one installable unit within a pack. Its install action is a
closed set of frozen dataclasses; code dispatching on the action uses
``isinstance`` checks or ``match`` statements over ``InstallAction``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

# Marketplace assumed for plugin references without an explicit "@repo" suffix
OFFICIAL_MARKETPLACE = "official"
OFFICIAL_MARKETPLACE_REPO = "packsync/plugins-official"


class CopyFileKind(str, Enum):
    """Kind of a copied pack file, selecting its target subdirectory.

    Attributes:
        SKILL: Copied below ``skills/``.
        HOOK: Copied below ``hooks/``.
        COMMAND: Copied below ``commands/``.
        GENERIC: Copied directly into the scope's target directory.
    """

    SKILL = "skill"
    HOOK = "hook"
    COMMAND = "command"
    GENERIC = "generic"

    @property
    def subdirectory(self) -> str | None:
        """Target subdirectory name, or None for generic files."""
        if self is CopyFileKind.GENERIC:
            return None
        return f"{self.value}s"


@dataclass(frozen=True, slots=True)
class ServiceEntryAction:
    """Register a named service entry (a long-running helper process or URL).

    Attributes:
        name: Service entry name, unique per scope.
        command: Executable to launch. None for URL-based entries.
        args: Arguments passed to the command.
        env: Environment variables for the command.
        url: Endpoint URL for HTTP entries.
        scope: Registration scope; None means the default "local".
    """

    name: str
    command: str | None = None
    args: tuple[str, ...] = ()
    env: dict[str, str] = field(default_factory=lambda: {})
    url: str | None = None
    scope: str | None = None

    @property
    def resolved_scope(self) -> str:
        """The registration scope, defaulting to "local"."""
        return self.scope or "local"

    @property
    def display(self) -> str:
        """Human-readable command line or URL."""
        if self.url is not None:
            return f"{self.name}: {self.url} (HTTP)"
        return f"{self.name}: {' '.join([self.command or '', *self.args]).strip()}"


@dataclass(frozen=True, slots=True)
class PackageInstallAction:
    """Install a system package through the package manager."""

    package: str


@dataclass(frozen=True, slots=True)
class PluginAction:
    """Install a plugin by its (possibly qualified) name."""

    name: str


@dataclass(frozen=True, slots=True)
class ShellCommandAction:
    """Run an arbitrary shell command. Never reversed on removal."""

    command: str


@dataclass(frozen=True, slots=True)
class CopyFileAction:
    """Copy a file from the pack into the scope's target directory.

    Attributes:
        source: Absolute, sandbox-checked path inside the pack.
        destination: Path relative to the kind's target subdirectory.
        kind: Kind of file, selecting the target subdirectory.
    """

    source: Path
    destination: str
    kind: CopyFileKind = CopyFileKind.GENERIC


@dataclass(frozen=True, slots=True)
class GitignoreEntriesAction:
    """Add entries to the user's global gitignore."""

    entries: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class SettingsMergeAction:
    """Deep-merge settings into the scope's settings file.

    Attributes:
        source: Sandbox-checked settings file inside the pack, or None when
            the settings are derived from other components.
    """

    source: Path | None = None


InstallAction = (
    ServiceEntryAction
    | PackageInstallAction
    | PluginAction
    | ShellCommandAction
    | CopyFileAction
    | GitignoreEntriesAction
    | SettingsMergeAction
)


@dataclass(frozen=True, slots=True)
class Component:
    """Definition of an installable component.

    Attributes:
        id: Globally unique identifier, e.g. "web.lint-server".
        install_action: How the component is installed.
        pack_identifier: Owning pack, or None for engine-level components.
        dependencies: IDs of components that must be installed first.
        is_required: Always installed together with its pack.
        display_name: Short name for output.
        description: Human-readable description.
        hook_event: Settings event a copied hook script is registered under.
    """

    id: str
    install_action: InstallAction
    pack_identifier: str | None = None
    dependencies: tuple[str, ...] = ()
    is_required: bool = False
    display_name: str = ""
    description: str = ""
    hook_event: str | None = None

    def __post_init__(self) -> None:
        """Validate the pack prefix of pack-scoped IDs."""
        if not self.id:
            msg = "Component ID cannot be empty"
            raise ValueError(msg)
        if self.pack_identifier is not None and not self.id.startswith(
            f"{self.pack_identifier}."
        ):
            msg = f"Component ID '{self.id}' must start with '{self.pack_identifier}.'"
            raise ValueError(msg)


@dataclass(frozen=True, slots=True)
class PluginRef:
    """Parsed plugin reference.

    Plugins are declared as ``name``, ``name@marketplace`` or
    ``name@org/repo``. All forms with the same bare name denote one plugin.

    Attributes:
        full_name: The reference as declared.
        bare_name: Plugin name without the marketplace suffix.
        marketplace_repo: Repository the plugin is installed from.
    """

    full_name: str
    bare_name: str
    marketplace_repo: str

    @classmethod
    def parse(cls, full_name: str) -> PluginRef:
        """Parse a plugin reference string.

        Args:
            full_name: Declared plugin reference.

        Returns:
            PluginRef with the bare name and marketplace repository resolved.
        """
        name, sep, repo = full_name.partition("@")
        if not sep:
            return cls(full_name, full_name, OFFICIAL_MARKETPLACE_REPO)
        if repo == OFFICIAL_MARKETPLACE:
            repo = OFFICIAL_MARKETPLACE_REPO
        return cls(full_name, name, repo)

    def same_plugin(self, other: str | PluginRef) -> bool:
        """Check whether another reference names the same plugin."""
        if isinstance(other, str):
            other = PluginRef.parse(other)
        return self.bare_name == other.bare_name
