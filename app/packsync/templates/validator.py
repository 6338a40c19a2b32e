"""Drift detection and repair for generated files.

Compares the sections installed in a generated file against what the
configured packs would render now. Comparison is exact on the section
content (after trimming leading and trailing blank lines), so any manual
edit inside a managed section is reported as drift.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from packsync.models.check import CheckResult, CheckStatus, FixResult, FixStatus
from packsync.templates.composer import (
    parse_sections,
    replace_section,
    trim_blank_lines,
    unpaired_sections,
)
from packsync.utils.fileio import write_atomic

logger = logging.getLogger(__name__)

MISSING_VERSION = "(missing)"
UNMANAGED_DETAIL = "unmanaged section, skipped"


@dataclass(frozen=True, slots=True)
class ExpectedSection:
    """What a section should contain.

    Attributes:
        version: Version the section would be written with.
        content: Rendered section content.
    """

    version: str
    content: str


@dataclass(frozen=True, slots=True)
class SectionStatus:
    """Validation outcome of one section.

    Attributes:
        identifier: Section identifier.
        installed_version: Version found in the file, or "(missing)".
        current_version: Expected version, None for unmanaged sections.
        is_outdated: True when the section needs re-rendering.
        detail: Human-readable explanation.
    """

    identifier: str
    installed_version: str
    current_version: str | None
    is_outdated: bool
    detail: str


@dataclass(frozen=True, slots=True)
class ValidationResult:
    """Validation outcome of a whole file."""

    sections: tuple[SectionStatus, ...] = ()

    @property
    def has_outdated(self) -> bool:
        return any(s.is_outdated for s in self.sections)

    @property
    def outdated_sections(self) -> list[SectionStatus]:
        return [s for s in self.sections if s.is_outdated]

    @property
    def outdated_identifiers(self) -> list[str]:
        return [s.identifier for s in self.sections if s.is_outdated]


@dataclass(frozen=True, slots=True)
class FixOutcome:
    """Result of re-rendering outdated sections.

    Attributes:
        changed: True when the content was modified.
        content: The (possibly) updated content.
        skipped: Outdated sections left untouched because they are unpaired.
    """

    changed: bool
    content: str
    skipped: tuple[str, ...] = field(default_factory=tuple)


def _normalize(content: str) -> str:
    return "\n".join(trim_blank_lines(content.split("\n")))


def validate(text: str, expected: Mapping[str, ExpectedSection]) -> ValidationResult:
    """Validate the sections of a generated text.

    Args:
        text: Generated file content.
        expected: Expected sections keyed by identifier.

    Returns:
        One status per installed section in document order, followed by one
        status per expected section missing from the text.
    """
    installed = parse_sections(text)
    statuses: list[SectionStatus] = []

    for section in installed:
        wanted = expected.get(section.identifier)
        if wanted is None:
            statuses.append(
                SectionStatus(
                    identifier=section.identifier,
                    installed_version=section.version,
                    current_version=None,
                    is_outdated=False,
                    detail=UNMANAGED_DETAIL,
                )
            )
            continue

        outdated = section.content != _normalize(wanted.content)
        detail = (
            f"v{section.version} -> v{wanted.version}"
            if outdated
            else f"v{section.version} up to date"
        )
        statuses.append(
            SectionStatus(
                identifier=section.identifier,
                installed_version=section.version,
                current_version=wanted.version,
                is_outdated=outdated,
                detail=detail,
            )
        )

    present = {s.identifier for s in installed}
    for identifier, wanted in expected.items():
        if identifier not in present:
            statuses.append(
                SectionStatus(
                    identifier=identifier,
                    installed_version=MISSING_VERSION,
                    current_version=wanted.version,
                    is_outdated=True,
                    detail="section not found in file",
                )
            )

    return ValidationResult(tuple(statuses))


def fix(text: str, expected: Mapping[str, ExpectedSection]) -> FixOutcome:
    """Re-render every outdated section of a generated text.

    Missing sections are appended. Sections with an unpaired begin marker
    are skipped and reported.

    Args:
        text: Generated file content.
        expected: Expected sections keyed by identifier.

    Returns:
        FixOutcome; ``changed`` is False when there was nothing to do.
    """
    result = validate(text, expected)
    if not result.has_outdated:
        return FixOutcome(changed=False, content=text)

    unpaired = set(unpaired_sections(text))
    skipped: list[str] = []
    updated = text
    for status in result.outdated_sections:
        if status.identifier in unpaired:
            logger.warning("Skipping unpaired section '%s'", status.identifier)
            skipped.append(status.identifier)
            continue
        wanted = expected[status.identifier]
        updated = replace_section(updated, status.identifier, wanted.content, wanted.version)

    return FixOutcome(changed=updated != text, content=updated, skipped=tuple(skipped))


def validate_file(path: Path, expected: Mapping[str, ExpectedSection]) -> ValidationResult | None:
    """Validate a generated file on disk.

    Returns:
        ValidationResult, or None if the file does not exist or cannot be read.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        logger.debug("Cannot read %s: %s", path, e)
        return None
    return validate(text, expected)


def fix_file(path: Path, expected: Mapping[str, ExpectedSection]) -> FixOutcome:
    """Repair a generated file on disk, writing only when something changed.

    Raises:
        OSError: If the file cannot be read or written.
    """
    text = path.read_text(encoding="utf-8")
    outcome = fix(text, expected)
    if outcome.changed:
        write_atomic(path, outcome.content)
        logger.debug("Rewrote %s", path)
    return outcome


class SectionFreshnessCheck:
    """Doctor check for the managed sections of one generated file."""

    def __init__(
        self,
        path: Path,
        expected: Mapping[str, ExpectedSection],
        name: str | None = None,
    ) -> None:
        self.path = path
        self.expected = dict(expected)
        self._name = name or f"Sections in {path.name}"

    @property
    def name(self) -> str:
        return self._name

    def check(self) -> CheckResult:
        """Diagnose drift without touching the file."""
        if not self.path.exists():
            return CheckResult(CheckStatus.NOT_APPLICABLE, f"File not found: {self.path.name}")

        try:
            text = self.path.read_text(encoding="utf-8")
        except OSError as e:
            return CheckResult(CheckStatus.NEEDS_ATTENTION, f"Cannot read {self.path.name}: {e}")

        result = validate(text, self.expected)
        broken = [i for i in unpaired_sections(text) if i in self.expected]
        if broken:
            return CheckResult(
                CheckStatus.NEEDS_ATTENTION,
                f"Unpaired section markers: {', '.join(broken)}",
            )

        if result.has_outdated:
            outdated = ", ".join(f"{s.identifier} ({s.detail})" for s in result.outdated_sections)
            return CheckResult(CheckStatus.OUTDATED, f"Outdated sections: {outdated}")

        summary = ", ".join(f"{s.identifier} {s.detail}" for s in result.sections)
        return CheckResult(CheckStatus.UP_TO_DATE, summary or "No sections")

    def fix(self) -> FixResult:
        """Re-render outdated sections."""
        if not self.path.exists():
            return FixResult(FixStatus.NOT_REPAIRABLE, f"File not found: {self.path.name}")
        try:
            outcome = fix_file(self.path, self.expected)
        except OSError as e:
            return FixResult(FixStatus.FAILED, f"Could not update {self.path.name}: {e}")

        if outcome.skipped:
            return FixResult(
                FixStatus.NOT_REPAIRABLE,
                f"Unpaired section markers need manual repair: {', '.join(outcome.skipped)}",
            )
        if outcome.changed:
            return FixResult(FixStatus.REPAIRED, f"Updated outdated sections in {self.path.name}")
        return FixResult(FixStatus.REPAIRED, "No changes needed")
