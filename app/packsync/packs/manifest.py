"""External pack manifest models and loading.

An external pack describes itself in a ``pack.toml`` file at the root of its
checkout. This module defines the Pydantic models for that file and the
function that loads, normalizes and validates it.

Short component IDs and intra-pack dependencies are auto-prefixed with the
pack identifier before validation, so ``id = "lint"`` in pack ``web``
becomes ``web.lint``.
"""

from __future__ import annotations

import re
import tomllib
from pathlib import Path
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from packsync.core.errors import PacksyncError

PACK_MANIFEST_FILENAME = "pack.toml"
SUPPORTED_SCHEMA_VERSION = 1

IDENTIFIER_PATTERN = re.compile(r"^[a-z0-9][a-z0-9-]*$")


class PackManifestError(PacksyncError):
    """Base exception for pack manifest errors."""


class PackManifestNotFoundError(PackManifestError):
    """Raised when a pack directory has no pack.toml."""


class PackManifestParseError(PackManifestError):
    """Raised when pack.toml is not valid TOML."""


class PackManifestValidationError(PackManifestError):
    """Raised when pack.toml does not match the schema."""


# --- Install actions ---------------------------------------------------------


class ServiceEntryDefinition(BaseModel):
    """Service entry registration."""

    model_config = ConfigDict(extra="forbid")

    type: Literal["service_entry"]
    name: str
    command: str | None = None
    args: list[str] = Field(default_factory=list)
    env: dict[str, str] = Field(default_factory=dict)
    transport: Literal["stdio", "http"] = "stdio"
    url: str | None = None
    scope: Literal["local", "user", "project"] | None = None

    @model_validator(mode="after")
    def validate_target(self) -> ServiceEntryDefinition:
        """An HTTP entry needs a URL; a stdio entry needs a command."""
        if self.transport == "http" and not self.url:
            msg = f"Service entry '{self.name}': http transport requires 'url'"
            raise ValueError(msg)
        if self.transport == "stdio" and not self.command:
            msg = f"Service entry '{self.name}': stdio transport requires 'command'"
            raise ValueError(msg)
        return self

    @property
    def display(self) -> str:
        """Command line or URL as shown to the user."""
        if self.transport == "http" and self.url:
            return f"{self.name}: {self.url} (HTTP)"
        return f"{self.name}: {' '.join([self.command or '', *self.args]).strip()}"


class PluginDefinition(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: Literal["plugin"]
    name: str


class PackageDefinition(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: Literal["package"]
    package: str


class ShellCommandDefinition(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: Literal["shell_command"]
    command: str


class GitignoreEntriesDefinition(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: Literal["gitignore_entries"]
    entries: list[str]


class SettingsMergeDefinition(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: Literal["settings_merge"]


class SettingsFileDefinition(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: Literal["settings_file"]
    source: str


class CopyPackFileDefinition(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: Literal["copy_pack_file"]
    source: str
    destination: str
    file_type: Literal["skill", "hook", "command", "generic"] = "generic"


InstallActionDefinition = Annotated[
    ServiceEntryDefinition
    | PluginDefinition
    | PackageDefinition
    | ShellCommandDefinition
    | GitignoreEntriesDefinition
    | SettingsMergeDefinition
    | SettingsFileDefinition
    | CopyPackFileDefinition,
    Field(discriminator="type"),
]


# --- Doctor checks -----------------------------------------------------------

DoctorCheckType = Literal[
    "command_exists",
    "file_exists",
    "directory_exists",
    "file_contains",
    "file_not_contains",
    "shell_script",
]


class DoctorCheckDefinition(BaseModel):
    """Declarative doctor check.

    Attributes:
        type: Kind of check.
        name: Display name.
        command: Command for command_exists; script path or inline command
            for shell_script.
        args: Arguments for command_exists.
        path: Path for the file and directory checks.
        pattern: Substring for file_contains and file_not_contains.
        scope: Whether ``path`` is relative to the project or the home dir.
        fix_command: Inline command run by the repair.
        fix_script: Script path (or inline command) run by the repair.
    """

    model_config = ConfigDict(extra="forbid")

    type: DoctorCheckType
    name: str
    command: str | None = None
    args: list[str] = Field(default_factory=list)
    path: str | None = None
    pattern: str | None = None
    scope: Literal["global", "project"] | None = None
    fix_command: str | None = None
    fix_script: str | None = None

    @model_validator(mode="after")
    def validate_required_fields(self) -> DoctorCheckDefinition:
        """Each check type needs its own set of non-empty fields."""
        required: dict[str, tuple[str, ...]] = {
            "command_exists": ("command",),
            "shell_script": ("command",),
            "file_exists": ("path",),
            "directory_exists": ("path",),
            "file_contains": ("path", "pattern"),
            "file_not_contains": ("path", "pattern"),
        }
        for field_name in required[self.type]:
            if not getattr(self, field_name):
                msg = f"Doctor check '{self.name}': {self.type} requires non-empty '{field_name}'"
                raise ValueError(msg)
        return self


# --- Components, templates, hooks, prompts -------------------------------------


class ComponentDefinition(BaseModel):
    """Installable component of an external pack."""

    model_config = ConfigDict(extra="forbid")

    id: str
    display_name: str
    description: str = ""
    dependencies: list[str] = Field(default_factory=list)
    is_required: bool = False
    hook_event: str | None = None
    install_action: InstallActionDefinition
    doctor_checks: list[DoctorCheckDefinition] = Field(default_factory=list)


class TemplateDefinition(BaseModel):
    """Template section contributed to the generated file."""

    model_config = ConfigDict(extra="forbid")

    section_identifier: str
    content_file: str
    placeholders: list[str] = Field(default_factory=list)


class HookContributionDefinition(BaseModel):
    """Script fragment injected into a named hook."""

    model_config = ConfigDict(extra="forbid")

    hook_name: str
    fragment_file: str
    position: Literal["before", "after"] = "after"


class PromptOption(BaseModel):
    model_config = ConfigDict(extra="forbid")

    value: str
    label: str


class PromptDefinition(BaseModel):
    """Value gathered from the user while configuring a pack."""

    model_config = ConfigDict(extra="forbid")

    key: str
    type: Literal["file_detect", "input", "select", "script"]
    label: str | None = None
    default: str | None = None
    options: list[PromptOption] = Field(default_factory=list)
    detect_patterns: list[str] = Field(default_factory=list)
    script_command: str | None = None


class ConfigureProjectDefinition(BaseModel):
    model_config = ConfigDict(extra="forbid")

    script: str


# --- Root ----------------------------------------------------------------------


class PackManifest(BaseModel):
    """Root model of pack.toml.

    Attributes:
        schema_version: Manifest schema version; only 1 is supported.
        identifier: Pack identifier, lowercase alphanumerics and hyphens.
        display_name: Human-readable name.
        description: Short description.
        version: Pack version.
        components: Installable components.
        templates: Template contributions.
        hook_contributions: Hook script fragments.
        gitignore_entries: Global gitignore entries.
        prompts: Values gathered during configuration.
        configure_project: Script run when configuring a project.
        supplementary_doctor_checks: Pack-level doctor checks.
    """

    model_config = ConfigDict(extra="forbid")

    schema_version: Annotated[int, Field(description="Manifest schema version")]
    identifier: Annotated[str, Field(description="Pack identifier")]
    display_name: Annotated[str, Field(description="Human-readable name")]
    description: Annotated[str, Field(description="Short description")] = ""
    version: Annotated[str, Field(description="Pack version")]
    components: list[ComponentDefinition] = Field(default_factory=list)
    templates: list[TemplateDefinition] = Field(default_factory=list)
    hook_contributions: list[HookContributionDefinition] = Field(default_factory=list)
    gitignore_entries: list[str] = Field(default_factory=list)
    prompts: list[PromptDefinition] = Field(default_factory=list)
    configure_project: ConfigureProjectDefinition | None = None
    supplementary_doctor_checks: list[DoctorCheckDefinition] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def normalize_ids(cls, data: Any) -> Any:
        """Prefix short component IDs, dependencies and section identifiers."""
        if not isinstance(data, dict):
            return data
        identifier = data.get("identifier")
        if not isinstance(identifier, str) or not identifier:
            return data

        prefix = f"{identifier}."

        def qualify(value: Any) -> Any:
            if isinstance(value, str) and "." not in value:
                return prefix + value
            return value

        normalized = dict(data)
        components = data.get("components")
        if isinstance(components, list):
            normalized["components"] = [
                {
                    **c,
                    "id": qualify(c.get("id")),
                    **(
                        {"dependencies": [qualify(d) for d in c["dependencies"]]}
                        if isinstance(c.get("dependencies"), list)
                        else {}
                    ),
                }
                if isinstance(c, dict)
                else c
                for c in components
            ]
        templates = data.get("templates")
        if isinstance(templates, list):
            normalized["templates"] = [
                {**t, "section_identifier": qualify(t.get("section_identifier"))}
                if isinstance(t, dict) and t.get("section_identifier") != identifier
                else t
                for t in templates
            ]
        return normalized

    @model_validator(mode="after")
    def validate_structure(self) -> PackManifest:
        """Check schema version, identifier and cross-field uniqueness."""
        if self.schema_version != SUPPORTED_SCHEMA_VERSION:
            msg = (
                f"Unsupported schema version: {self.schema_version} "
                f"(expected {SUPPORTED_SCHEMA_VERSION})"
            )
            raise ValueError(msg)

        if not IDENTIFIER_PATTERN.match(self.identifier):
            msg = (
                f"Invalid pack identifier '{self.identifier}': must be lowercase "
                "alphanumeric with hyphens"
            )
            raise ValueError(msg)

        prefix = f"{self.identifier}."
        seen: set[str] = set()
        for component in self.components:
            if not component.id.startswith(prefix):
                msg = f"Component ID '{component.id}' must start with '{prefix}'"
                raise ValueError(msg)
            if component.id in seen:
                msg = f"Duplicate component ID: '{component.id}'"
                raise ValueError(msg)
            seen.add(component.id)

        for template in self.templates:
            section = template.section_identifier
            if section != self.identifier and not section.startswith(prefix):
                msg = (
                    f"Template section '{section}' does not match pack "
                    f"identifier '{self.identifier}'"
                )
                raise ValueError(msg)

        keys: set[str] = set()
        for prompt in self.prompts:
            if prompt.key in keys:
                msg = f"Duplicate prompt key: '{prompt.key}'"
                raise ValueError(msg)
            keys.add(prompt.key)

        return self

    def all_doctor_checks(self) -> list[DoctorCheckDefinition]:
        """Component-level checks followed by the supplementary ones."""
        checks = [check for c in self.components for check in c.doctor_checks]
        return checks + list(self.supplementary_doctor_checks)


def load_pack_manifest(pack_dir: Path) -> PackManifest:
    """Load and validate the pack.toml of a pack checkout.

    Args:
        pack_dir: Root directory of the pack.

    Returns:
        Normalized and validated PackManifest.

    Raises:
        PackManifestNotFoundError: If pack.toml does not exist.
        PackManifestParseError: If the TOML syntax is invalid or the file
            is not UTF-8.
        PackManifestValidationError: If the content does not match the schema.
    """
    manifest_path = pack_dir / PACK_MANIFEST_FILENAME
    if not manifest_path.exists():
        raise PackManifestNotFoundError(f"{PACK_MANIFEST_FILENAME} not found at {manifest_path}")

    try:
        with open(manifest_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise PackManifestParseError(f"Invalid TOML syntax in {manifest_path}: {e}") from e
    except UnicodeDecodeError as e:
        raise PackManifestParseError(f"{manifest_path} is not valid UTF-8: {e.reason}") from e
    except OSError as e:
        raise PackManifestError(f"Failed to read {manifest_path}: {e}") from e

    try:
        return PackManifest.model_validate(data)
    except ValidationError as e:
        raise PackManifestValidationError(f"Invalid pack manifest {manifest_path}: {e}") from e
