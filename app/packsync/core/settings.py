"""Scope settings file handling.

Packs contribute JSON settings that are deep-merged into a scope's
settings file. Merging never overwrites what is already there: existing
values win, objects are merged one level deep, and hook groups are
deduplicated by their command. The key paths and hook commands a merge
adds are returned so they can be recorded and removed later.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from packsync.core.errors import PacksyncError
from packsync.utils.fileio import write_atomic

logger = logging.getLogger(__name__)

HOOKS_KEY = "hooks"


class SettingsError(PacksyncError):
    """Base exception for settings file errors."""


class SettingsParseError(SettingsError):
    """Raised when a settings file is not a JSON object."""


@dataclass(slots=True)
class MergeResult:
    """Additions made by merge_settings().

    Attributes:
        added_keys: Dotted key paths that did not exist before.
        added_hook_commands: Hook commands that were not registered before.
    """

    added_keys: list[str] = field(default_factory=list)
    added_hook_commands: list[str] = field(default_factory=list)


def load_settings(path: Path) -> dict[str, Any]:
    """Load a settings file.

    Returns:
        The settings object; empty if the file does not exist.

    Raises:
        SettingsParseError: If the file is not a valid JSON object.
        SettingsError: If the file cannot be read.
    """
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8") or "{}")
    except json.JSONDecodeError as e:
        raise SettingsParseError(f"Invalid JSON in {path}: {e}") from e
    except OSError as e:
        raise SettingsError(f"Failed to read {path}: {e}") from e
    if not isinstance(data, dict):
        raise SettingsParseError(f"Settings file {path} must contain a JSON object")
    return data


def save_settings(path: Path, settings: dict[str, Any]) -> None:
    """Write a settings file atomically.

    Raises:
        SettingsError: If the file cannot be written.
    """
    try:
        write_atomic(path, json.dumps(settings, indent=2, sort_keys=True) + "\n")
    except OSError as e:
        raise SettingsError(f"Failed to write {path}: {e}") from e


def _first_command(group: Any) -> str | None:
    if not isinstance(group, dict):
        return None
    hooks = group.get("hooks")
    if isinstance(hooks, list) and hooks and isinstance(hooks[0], dict):
        command = hooks[0].get("command")
        return command if isinstance(command, str) else None
    return None


def _merge_hooks(existing: dict[str, Any], incoming: dict[str, Any], result: MergeResult) -> None:
    for event, groups in incoming.items():
        if not isinstance(groups, list):
            continue
        current = existing.setdefault(event, [])
        if not isinstance(current, list):
            logger.warning("Hook event '%s' is not a list, skipping", event)
            continue
        known = {_first_command(g) for g in current}
        for group in groups:
            command = _first_command(group)
            if command is None or command in known:
                continue
            current.append(group)
            known.add(command)
            result.added_hook_commands.append(command)


def merge_settings(existing: dict[str, Any], incoming: dict[str, Any]) -> MergeResult:
    """Deep-merge incoming settings into existing settings in place.

    Args:
        existing: Current settings; modified.
        incoming: Settings contributed by a pack.

    Returns:
        The key paths and hook commands that were added.
    """
    result = MergeResult()
    for key, value in incoming.items():
        if key == HOOKS_KEY and isinstance(value, dict):
            hooks = existing.setdefault(HOOKS_KEY, {})
            if isinstance(hooks, dict):
                _merge_hooks(hooks, value, result)
            continue

        if key not in existing:
            existing[key] = value
            result.added_keys.append(key)
            continue

        current = existing[key]
        if isinstance(current, dict) and isinstance(value, dict):
            for sub_key, sub_value in value.items():
                if sub_key not in current:
                    current[sub_key] = sub_value
                    result.added_keys.append(f"{key}.{sub_key}")
    return result


def remove_keys(settings: dict[str, Any], key_paths: list[str]) -> None:
    """Remove dotted key paths; an emptied parent object is dropped too."""
    for key_path in key_paths:
        top, _, sub = key_path.partition(".")
        if not sub:
            settings.pop(top, None)
            continue
        parent = settings.get(top)
        if isinstance(parent, dict):
            parent.pop(sub, None)
            if not parent:
                settings.pop(top)


def remove_hook_commands(settings: dict[str, Any], commands: list[str]) -> None:
    """Remove hook groups whose command is one of the given commands."""
    hooks = settings.get(HOOKS_KEY)
    if not isinstance(hooks, dict):
        return
    targets = set(commands)
    for event in list(hooks):
        groups = hooks[event]
        if not isinstance(groups, list):
            continue
        kept = [g for g in groups if _first_command(g) not in targets]
        if kept:
            hooks[event] = kept
        else:
            del hooks[event]
    if not hooks:
        del settings[HOOKS_KEY]
