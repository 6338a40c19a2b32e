"""Sync scopes.

A scope is the target of one convergence run: either the user-wide global
scope or a single project. It carries every path that differs between the
two, so the converger never branches on which kind it is handling.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from packsync.core.config import EngineConfig
from packsync.core.index import GLOBAL_SENTINEL
from packsync.core.paths import (
    get_config_dir,
    get_global_state_path,
    get_project_dir,
    get_project_state_path,
)

SETTINGS_FILENAME = "settings.json"


@dataclass(frozen=True, slots=True)
class SyncScope:
    """Paths and identity of one sync target.

    Attributes:
        label: "Project" or "Global", for output.
        scope_identifier: Absolute project path, or the global sentinel.
        state_path: JSON state file of the scope.
        generated_file_path: Generated file holding the marker sections.
        settings_path: Settings file the scope's packs merge into.
        target_dir: Directory copied pack files are placed in.
        is_global: Whether this is the global scope.
    """

    label: str
    scope_identifier: str
    state_path: Path
    generated_file_path: Path
    settings_path: Path
    target_dir: Path
    is_global: bool = False

    @classmethod
    def project(cls, root: Path, config: EngineConfig | None = None) -> SyncScope:
        """Create the scope of a project.

        Args:
            root: Project root directory; made absolute.
            config: Engine configuration supplying the generated file name.
        """
        config = config or EngineConfig()
        root = root.resolve()
        project_dir = get_project_dir(root)
        return cls(
            label="Project",
            scope_identifier=str(root),
            state_path=get_project_state_path(root),
            generated_file_path=root / config.generated_file_name,
            settings_path=project_dir / SETTINGS_FILENAME,
            target_dir=project_dir,
        )

    @classmethod
    def global_(cls, config: EngineConfig | None = None) -> SyncScope:
        """Create the global scope, rooted at the config directory."""
        config = config or EngineConfig()
        config_dir = get_config_dir()
        return cls(
            label="Global",
            scope_identifier=GLOBAL_SENTINEL,
            state_path=get_global_state_path(),
            generated_file_path=config_dir / config.global_generated_file_name,
            settings_path=config_dir / SETTINGS_FILENAME,
            target_dir=config_dir,
            is_global=True,
        )

    @property
    def project_root(self) -> Path | None:
        """Project root directory, None for the global scope."""
        if self.is_global:
            return None
        return Path(self.scope_identifier)

    @property
    def label_suffix(self) -> str:
        return " (global)" if self.is_global else ""

    def builtin_values(self) -> dict[str, str]:
        """Placeholder values every scope provides."""
        root = self.project_root
        name = root.name if root is not None else "global"
        return {"REPO_NAME": name, "PROJECT_DIR_NAME": name}

    def manifest_key(self, relative: str) -> str:
        """File manifest key of a file copied into this scope.

        Global files are keyed by their path relative to the target
        directory; project files by their absolute path, so that projects
        never share an entry.
        """
        if self.is_global:
            return relative
        return str(self.target_dir / relative)
