"""Pack fragments injected into hook scripts.

A hook script accepts pack fragments by carrying an extension marker line::

    # --- packsync:hook-extensions ---

Each pack's fragment is wrapped in a versioned begin/end comment pair and
inserted at that line, indented like the marker. Re-injecting a pack
replaces its block; removing a pack deletes exactly its block. Scripts
without the marker are never edited.
"""

from __future__ import annotations

import re
from pathlib import Path

from packsync import __version__

HOOK_EXTENSION_MARKER = "# --- packsync:hook-extensions ---"
HOOKS_DIRECTORY = "hooks"

_BEGIN_PATTERN = re.compile(r"^[ \t]*# --- packsync:begin (\S+)(?: v(\S+))? ---[ \t]*$")
_END_PATTERN = re.compile(r"^[ \t]*# --- packsync:end (\S+) ---[ \t]*$")


def hook_begin_marker(identifier: str, version: str) -> str:
    return f"# --- packsync:begin {identifier} v{version} ---"


def hook_end_marker(identifier: str) -> str:
    return f"# --- packsync:end {identifier} ---"


def _find_block(lines: list[str], identifier: str) -> tuple[int, int, str | None] | None:
    """Locate a fragment block as (begin index, end index, version)."""
    for start, line in enumerate(lines):
        begin = _BEGIN_PATTERN.match(line)
        if begin is None or begin.group(1) != identifier:
            continue
        for end in range(start + 1, len(lines)):
            match = _END_PATTERN.match(lines[end])
            if match is not None and match.group(1) == identifier:
                return start, end, begin.group(2)
        return None
    return None


def installed_fragment(text: str, identifier: str) -> tuple[str | None, str] | None:
    """Version and trimmed body of an injected fragment, or None if absent."""
    lines = text.split("\n")
    block = _find_block(lines, identifier)
    if block is None:
        return None
    start, end, version = block
    return version, "\n".join(lines[start + 1 : end]).strip()


def remove_fragment(text: str, identifier: str) -> str:
    """Delete a pack's fragment block and one blank line following it.

    Text without a complete block for the identifier is returned unchanged.
    """
    lines = text.split("\n")
    block = _find_block(lines, identifier)
    if block is None:
        return text
    start, end, _ = block
    stop = end + 1
    if stop < len(lines) - 1 and not lines[stop].strip():
        stop += 1
    return "\n".join(lines[:start] + lines[stop:])


def inject_fragment(
    text: str,
    identifier: str,
    fragment: str,
    version: str = __version__,
    position: str = "after",
) -> str | None:
    """Insert or replace a pack's fragment at the extension marker.

    Args:
        text: Hook script content.
        identifier: Owning pack identifier.
        fragment: Script fragment to inject.
        version: Version stamped into the begin marker.
        position: "after" places the block after fragments already present;
            "before" places it ahead of them.

    Returns:
        The updated script, or None if the script has no extension marker.
    """
    lines = remove_fragment(text, identifier).split("\n")
    marker_index = next(
        (i for i, line in enumerate(lines) if line.strip() == HOOK_EXTENSION_MARKER), None
    )
    if marker_index is None:
        return None

    insert_at = marker_index
    if position == "before":
        insert_at = next(
            (i for i in range(marker_index) if _BEGIN_PATTERN.match(lines[i])), marker_index
        )

    marker_line = lines[marker_index]
    indent = marker_line[: len(marker_line) - len(marker_line.lstrip())]
    block = [
        f"{indent}{hook_begin_marker(identifier, version)}",
        *fragment.strip("\n").split("\n"),
        f"{indent}{hook_end_marker(identifier)}",
        "",
    ]
    return "\n".join(lines[:insert_at] + block + lines[insert_at:])


def hook_script_path(target_dir: Path, hook_name: str) -> Path:
    """Installed script of a named hook below a scope's target directory."""
    return target_dir / HOOKS_DIRECTORY / f"{hook_name}.sh"


def hook_event_name(hook_name: str) -> str:
    """Settings event name of a hook ("session_start" -> "SessionStart")."""
    return "".join(part.capitalize() for part in re.split(r"[-_]", hook_name) if part)

