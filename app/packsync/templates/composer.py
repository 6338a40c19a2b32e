"""Marker-based section composition.

A generated file is a sequence of versioned sections owned by packs,
interleaved with free-form user content::

    <!-- packsync:begin core v0.1.0 -->
    ...generated...
    <!-- packsync:end core -->

    My own notes, never touched.

The text is parsed once into an ordered list of spans (user content, a
well-formed section, or an unpaired begin marker) and every edit is a span
replacement. Content outside well-formed marker pairs is reproduced byte
for byte. A section whose begin marker has no matching end marker is never
edited, because the extent of its content is unknown.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from packsync import __version__
from packsync.models.pack import TemplateContribution
from packsync.templates.engine import substitute

CORE_SECTION = "core"

_BEGIN_RE = re.compile(r"^<!-- packsync:begin (\S+) v(\S+) -->$")
_END_RE = re.compile(r"^<!-- packsync:end (\S+) -->$")


def begin_marker(identifier: str, version: str) -> str:
    """Build the begin marker line of a section."""
    return f"<!-- packsync:begin {identifier} v{version} -->"


def end_marker(identifier: str) -> str:
    """Build the end marker line of a section."""
    return f"<!-- packsync:end {identifier} -->"


@dataclass(frozen=True, slots=True)
class Section:
    """A well-formed section parsed from a generated file.

    Attributes:
        identifier: Section identifier, e.g. "core" or "web".
        version: Tool version recorded in the begin marker.
        content: Lines between the markers, trimmed of leading and trailing
            blank lines.
    """

    identifier: str
    version: str
    content: str


@dataclass(frozen=True, slots=True)
class UserSpan:
    """Lines outside any marker pair."""

    lines: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class SectionSpan:
    """A begin/end marker pair with the lines between them."""

    identifier: str
    version: str
    begin_line: str
    body: tuple[str, ...]
    end_line: str

    def render(self) -> list[str]:
        return [self.begin_line, *self.body, self.end_line]


@dataclass(frozen=True, slots=True)
class UnpairedSpan:
    """A begin marker without a matching end marker."""

    identifier: str
    version: str
    begin_line: str


Span = UserSpan | SectionSpan | UnpairedSpan


def _parse_begin(line: str) -> tuple[str, str] | None:
    match = _BEGIN_RE.match(line.strip())
    if match is None:
        return None
    return match.group(1), match.group(2)


def _parse_end(line: str) -> str | None:
    match = _END_RE.match(line.strip())
    return match.group(1) if match is not None else None


def trim_blank_lines(lines: Iterable[str]) -> list[str]:
    """Drop leading and trailing blank lines."""
    result = list(lines)
    while result and not result[0].strip():
        result.pop(0)
    while result and not result[-1].strip():
        result.pop()
    return result


def _content_lines(content: str) -> list[str]:
    return trim_blank_lines(content.split("\n"))


def parse_spans(text: str) -> list[Span]:
    """Split a text into spans in a single pass over its lines.

    A begin marker opens a section. The matching end marker closes it. A
    second begin marker while a section is open, or the end of the text,
    turns the open begin marker into an unpaired span and its lines back
    into user content. End markers that close nothing are user content.

    Args:
        text: Text to parse.

    Returns:
        Spans that render back to exactly ``text``.
    """
    spans: list[Span] = []
    user: list[str] = []
    open_begin: tuple[str, str, str] | None = None
    body: list[str] = []

    def flush_user() -> None:
        if user:
            spans.append(UserSpan(tuple(user)))
            user.clear()

    def abandon_open() -> None:
        nonlocal open_begin
        if open_begin is None:
            return
        identifier, version, line = open_begin
        flush_user()
        spans.append(UnpairedSpan(identifier, version, line))
        user.extend(body)
        body.clear()
        open_begin = None

    for line in text.split("\n"):
        begin = _parse_begin(line)
        if begin is not None:
            abandon_open()
            flush_user()
            open_begin = (begin[0], begin[1], line)
            continue

        end_id = _parse_end(line)
        if open_begin is not None and end_id == open_begin[0]:
            identifier, version, begin_line = open_begin
            spans.append(SectionSpan(identifier, version, begin_line, tuple(body), line))
            body.clear()
            open_begin = None
            continue

        if open_begin is not None:
            body.append(line)
        else:
            user.append(line)

    abandon_open()
    flush_user()
    return spans


def render_spans(spans: Iterable[Span]) -> str:
    """Join spans back into text."""
    lines: list[str] = []
    for span in spans:
        if isinstance(span, UserSpan):
            lines.extend(span.lines)
        elif isinstance(span, SectionSpan):
            lines.extend(span.render())
        else:
            lines.append(span.begin_line)
    return "\n".join(lines)


def _block(identifier: str, content: str, version: str) -> list[str]:
    return [begin_marker(identifier, version), *_content_lines(content), end_marker(identifier)]


def compose(
    core_content: str,
    contributions: Iterable[TemplateContribution] = (),
    values: Mapping[str, str] | None = None,
    version: str = __version__,
) -> str:
    """Compose a generated file from core content and pack contributions.

    Args:
        core_content: Core template rendered into the "core" section.
        contributions: Pack template contributions, one section each.
        values: Placeholder values for all templates.
        version: Tool version written into every begin marker.

    Returns:
        The composed text. Blocks are separated by one blank line.
    """
    values = values or {}
    lines = _block(CORE_SECTION, substitute(core_content, values), version)
    for contribution in contributions:
        rendered = substitute(contribution.template_content, values)
        lines.append("")
        lines.extend(_block(contribution.section_identifier, rendered, version))
    return "\n".join(lines) + "\n"


def parse_sections(text: str) -> list[Section]:
    """Extract the well-formed sections of a text, in document order."""
    return [
        Section(span.identifier, span.version, "\n".join(trim_blank_lines(span.body)))
        for span in parse_spans(text)
        if isinstance(span, SectionSpan)
    ]


def extract_user_content(text: str) -> str:
    """Extract everything outside well-formed marker pairs.

    Unpaired begin markers are dropped; the lines after them are user
    content. A text without markers is returned unchanged.
    """
    spans = parse_spans(text)
    lines: list[str] = []
    for span in spans:
        if isinstance(span, UserSpan):
            lines.extend(span.lines)
    return "\n".join(lines)


def unpaired_sections(text: str) -> list[str]:
    """Identifiers whose begin marker has no matching end marker."""
    return [span.identifier for span in parse_spans(text) if isinstance(span, UnpairedSpan)]


def replace_section(text: str, identifier: str, new_content: str, new_version: str) -> str:
    """Replace the content and version of one section.

    Args:
        text: Existing file content.
        identifier: Section to replace.
        new_content: Rendered section content.
        new_version: Version written into the begin marker.

    Returns:
        The updated text. The input is returned unchanged if the section is
        unpaired. A missing section is appended after one blank line.
    """
    spans = parse_spans(text)
    if any(isinstance(s, UnpairedSpan) and s.identifier == identifier for s in spans):
        return text

    body = tuple(_content_lines(new_content))
    replaced = False
    updated: list[Span] = []
    for span in spans:
        if isinstance(span, SectionSpan) and span.identifier == identifier:
            updated.append(
                SectionSpan(
                    identifier,
                    new_version,
                    begin_marker(identifier, new_version),
                    body,
                    end_marker(identifier),
                )
            )
            replaced = True
        else:
            updated.append(span)

    if replaced:
        return render_spans(updated)
    return _append_block(text, _block(identifier, new_content, new_version))


def _append_block(text: str, block: list[str]) -> str:
    if not text.strip():
        return "\n".join(block) + "\n"
    lines = text.split("\n")
    # Keep a trailing newline at the end of the file
    trailing = lines[-1] == ""
    if trailing:
        lines.pop()
    while lines and not lines[-1].strip():
        lines.pop()
    lines.append("")
    lines.extend(block)
    if trailing:
        lines.append("")
    return "\n".join(lines)


def remove_section(text: str, identifier: str) -> str:
    """Remove one well-formed section and one adjacent blank line.

    The blank line before the section is preferred; the one after it is
    used when there is none before. Unpaired or missing sections leave the
    text unchanged.
    """
    spans = parse_spans(text)
    if any(isinstance(s, UnpairedSpan) and s.identifier == identifier for s in spans):
        return text

    position = next(
        (
            i
            for i, span in enumerate(spans)
            if isinstance(span, SectionSpan) and span.identifier == identifier
        ),
        None,
    )
    if position is None:
        return text

    before = spans[position - 1] if position > 0 else None
    after = spans[position + 1] if position + 1 < len(spans) else None
    updated = list(spans)

    if isinstance(before, UserSpan) and before.lines and not before.lines[-1].strip():
        updated[position - 1] = UserSpan(before.lines[:-1])
    elif (
        isinstance(after, UserSpan)
        and len(after.lines) > 1
        and not after.lines[0].strip()
    ):
        updated[position + 1] = UserSpan(after.lines[1:])
    del updated[position]

    return render_spans(s for s in updated if not (isinstance(s, UserSpan) and not s.lines))
