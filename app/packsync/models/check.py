"""Diagnosis and repair outcome models.

Doctor checks report one of a small fixed vocabulary of outcomes with a
human-readable reason, and repairs report one of a second vocabulary.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Protocol


class CheckStatus(str, Enum):
    """Outcome of a diagnostic check.

    Attributes:
        UP_TO_DATE: On-disk state matches what the engine would generate.
        OUTDATED: Drift detected that a repair can resolve.
        NEEDS_ATTENTION: Drift detected that needs manual intervention.
        NOT_APPLICABLE: Nothing to check (e.g. the file does not exist).
    """

    UP_TO_DATE = "up_to_date"
    OUTDATED = "outdated"
    NEEDS_ATTENTION = "needs_attention"
    NOT_APPLICABLE = "not_applicable"


class FixStatus(str, Enum):
    """Outcome of a repair.

    Attributes:
        REPAIRED: The repair was applied (or nothing needed repairing).
        NOT_REPAIRABLE: The problem cannot be repaired automatically.
        FAILED: The repair was attempted and failed.
    """

    REPAIRED = "repaired"
    NOT_REPAIRABLE = "not_repairable"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class CheckResult:
    """Result of running a diagnostic check."""

    status: CheckStatus
    reason: str

    @property
    def ok(self) -> bool:
        """True when the check found nothing to do."""
        return self.status in (CheckStatus.UP_TO_DATE, CheckStatus.NOT_APPLICABLE)


@dataclass(frozen=True, slots=True)
class FixResult:
    """Result of running a repair."""

    status: FixStatus
    reason: str


class DoctorCheck(Protocol):
    """Interface shared by all diagnostic checks."""

    @property
    def name(self) -> str:
        """Display name of the check."""
        ...

    def check(self) -> CheckResult:
        """Diagnose without mutating anything."""
        ...

    def fix(self) -> FixResult:
        """Repair what check() reported."""
        ...
