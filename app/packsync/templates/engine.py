"""Placeholder substitution for pack templates.

Templates use ``__KEY__`` placeholders. Lines consisting solely of an edit
hint comment (``<!-- EDIT: ... -->``) are instructions for pack authors and
are stripped from the rendered output.
"""

import logging
import re
from collections.abc import Mapping

logger = logging.getLogger(__name__)

PLACEHOLDER_PATTERN = re.compile(r"__[A-Z][A-Z0-9_]+__")

_EDIT_HINT_PREFIX = "<!-- EDIT:"
_EDIT_HINT_SUFFIX = "-->"


def _is_edit_hint(line: str) -> bool:
    stripped = line.strip()
    return stripped.startswith(_EDIT_HINT_PREFIX) and stripped.endswith(_EDIT_HINT_SUFFIX)


def substitute(template: str, values: Mapping[str, str], emit_warnings: bool = True) -> str:
    """Render a template.

    Every ``__KEY__`` whose key is in ``values`` is replaced; placeholders
    without a value are left verbatim. Edit hint lines are removed.

    Args:
        template: Template text.
        values: Placeholder values keyed by name without underscores.
        emit_warnings: Log a warning when placeholders remain unreplaced.

    Returns:
        Rendered text.
    """
    result = template
    for key, value in values.items():
        result = result.replace(f"__{key}__", value)

    result = "\n".join(line for line in result.split("\n") if not _is_edit_hint(line))

    if emit_warnings:
        unreplaced = find_unreplaced_placeholders(result)
        if unreplaced:
            logger.warning("Unreplaced placeholders found: %s", ", ".join(unreplaced))

    return result


def find_unreplaced_placeholders(text: str) -> list[str]:
    """Find placeholder tokens remaining in a text.

    Args:
        text: Text to scan.

    Returns:
        Distinct placeholder tokens in first-seen order.
    """
    return list(dict.fromkeys(PLACEHOLDER_PATTERN.findall(text)))
