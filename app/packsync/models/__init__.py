"""Data models for packsync.

This module exports the core data structures used throughout the application.
"""

from packsync.models.check import (
    CheckResult,
    CheckStatus,
    DoctorCheck,
    FixResult,
    FixStatus,
)
from packsync.models.component import (
    Component,
    CopyFileAction,
    CopyFileKind,
    GitignoreEntriesAction,
    InstallAction,
    PackageInstallAction,
    PluginAction,
    PluginRef,
    ServiceEntryAction,
    SettingsMergeAction,
    ShellCommandAction,
)
from packsync.models.pack import HookContribution, Pack, PackSource, TemplateContribution
from packsync.models.state import ArtifactRecord, ServiceEntryRef, StateData

__all__ = [
    "ArtifactRecord",
    "CheckResult",
    "CheckStatus",
    "Component",
    "CopyFileAction",
    "CopyFileKind",
    "DoctorCheck",
    "FixResult",
    "FixStatus",
    "GitignoreEntriesAction",
    "HookContribution",
    "InstallAction",
    "Pack",
    "PackSource",
    "PackageInstallAction",
    "PluginAction",
    "PluginRef",
    "ServiceEntryAction",
    "ServiceEntryRef",
    "SettingsMergeAction",
    "ShellCommandAction",
    "StateData",
    "TemplateContribution",
]
