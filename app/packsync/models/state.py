"""Persisted per-scope state models.

These Pydantic models describe the JSON state file each scope owns: which
packs are configured, what each pack's installation created, and which
placeholder values were resolved.
"""

from __future__ import annotations

from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field


def _merge_unique(existing: list[str], added: list[str]) -> list[str]:
    """Append items not already present, preserving order."""
    result = list(existing)
    for item in added:
        if item not in result:
            result.append(item)
    return result


class ServiceEntryRef(BaseModel):
    """Reference to a registered service entry, kept for later removal.

    Attributes:
        name: Service entry name.
        scope: Registration scope used when the entry was added.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str
    scope: str = "local"


class ArtifactRecord(BaseModel):
    """Ledger of what installing one pack into one scope created.

    Only artifacts this exact (pack, scope) installation produced are
    listed, never artifacts that existed beforehand.

    Attributes:
        service_entries: Service entries registered by this pack.
        files: Scope-relative paths of files copied by this pack.
        template_sections: Section identifiers written to the generated file.
        hook_commands: Hook commands registered in the settings file.
        hook_fragments: Hook scripts this pack injected a fragment into.
        settings_keys: Dotted settings key paths contributed by this pack.
        packages: System packages installed by this pack.
        plugins: Plugins installed by this pack.
    """

    model_config = ConfigDict(extra="forbid")

    service_entries: Annotated[
        list[ServiceEntryRef],
        Field(default_factory=list, description="Registered service entries"),
    ]
    files: Annotated[list[str], Field(default_factory=list, description="Copied files")]
    template_sections: Annotated[
        list[str],
        Field(default_factory=list, description="Generated file sections"),
    ]
    hook_commands: Annotated[
        list[str],
        Field(default_factory=list, description="Registered hook commands"),
    ]
    hook_fragments: Annotated[
        list[str],
        Field(default_factory=list, description="Hook scripts holding a fragment"),
    ]
    settings_keys: Annotated[
        list[str],
        Field(default_factory=list, description="Contributed settings key paths"),
    ]
    packages: Annotated[list[str], Field(default_factory=list, description="Installed packages")]
    plugins: Annotated[list[str], Field(default_factory=list, description="Installed plugins")]

    @property
    def is_empty(self) -> bool:
        """True when the record lists no artifacts at all."""
        return not (
            self.service_entries
            or self.files
            or self.template_sections
            or self.hook_commands
            or self.hook_fragments
            or self.settings_keys
            or self.packages
            or self.plugins
        )

    def merged(self, other: ArtifactRecord) -> ArtifactRecord:
        """Return a new record holding the union of both records.

        Entries already present keep their position; new entries are
        appended in the order they appear in ``other``.

        Args:
            other: Record to merge in.

        Returns:
            Merged record. Neither input is modified.
        """
        entries = list(self.service_entries)
        for ref in other.service_entries:
            if ref not in entries:
                entries.append(ref)
        return ArtifactRecord(
            service_entries=entries,
            files=_merge_unique(self.files, other.files),
            template_sections=_merge_unique(self.template_sections, other.template_sections),
            hook_commands=_merge_unique(self.hook_commands, other.hook_commands),
            hook_fragments=_merge_unique(self.hook_fragments, other.hook_fragments),
            settings_keys=_merge_unique(self.settings_keys, other.settings_keys),
            packages=_merge_unique(self.packages, other.packages),
            plugins=_merge_unique(self.plugins, other.plugins),
        )


class StateData(BaseModel):
    """Complete state record of one scope.

    Attributes:
        tool_version: packsync version that last wrote the file.
        configured_at: ISO 8601 timestamp of the last write.
        configured_packs: Sorted identifiers of configured packs.
        pack_artifacts: Artifact record per configured pack.
        resolved_values: Placeholder values resolved during configuration.
    """

    model_config = ConfigDict(extra="forbid")

    tool_version: Annotated[str | None, Field(description="Writer version")] = None
    configured_at: Annotated[str | None, Field(description="Last write timestamp")] = None
    configured_packs: Annotated[
        list[str],
        Field(default_factory=list, description="Configured pack identifiers"),
    ]
    pack_artifacts: Annotated[
        dict[str, ArtifactRecord],
        Field(default_factory=dict, description="Artifacts per pack"),
    ]
    resolved_values: Annotated[
        dict[str, str],
        Field(default_factory=dict, description="Resolved placeholder values"),
    ]
