"""
SessionOrder Severity Resolver

Computes the engine severity of an incident from its category, the
student's grade and what already happened this session.

Key features:
- Grade-aware base severity: identical behavior never scores lower at a
  higher grade band
- Four independent escalation factors, each worth at most +1
- Final severity clamped to 4 (level 5 is administrative only)

Usage:
    resolver = SeverityResolver()
    resolution = resolver.resolve(
        CategoryId.DISRESPECT_TONE,
        grade=9,
        prior_incidents=session_incidents,
        elapsed_seconds=1500,
    )
    resolution.severity    # 3
    resolution.factors     # [EscalationFactor.REPEAT_CATEGORY]
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional, Sequence

from ..models import CategoryId, Incident


MAX_COMPUTED_SEVERITY = 4

# Trailing window for the rapid-succession factor, in session seconds
RECENT_WINDOW_SECONDS = 600
RECENT_INCIDENT_THRESHOLD = 3
REPEAT_CATEGORY_THRESHOLD = 2
LATE_SESSION_SECONDS = 2700
MAJOR_SEVERITY = 3


# Columns: grade <=2, <=5, <=8, <=10, >10
BASE_SEVERITY_TABLE: dict[CategoryId, tuple[int, int, int, int, int]] = {
    CategoryId.FOCUS_OFF_TASK: (1, 1, 1, 2, 2),
    CategoryId.INTERRUPTING: (1, 1, 1, 2, 2),
    CategoryId.DISRESPECT_TONE: (1, 2, 2, 3, 3),
    CategoryId.NON_COMPLIANCE: (1, 1, 2, 2, 3),
    CategoryId.TECH_MISUSE: (1, 1, 2, 2, 2),
    CategoryId.ACADEMIC_INTEGRITY: (1, 2, 2, 3, 3),
    CategoryId.SAFETY_BOUNDARY: (3, 3, 3, 4, 4),
    CategoryId.OTHER: (1, 1, 1, 1, 2),
}


class EscalationFactor(str, Enum):
    """Session conditions that raise severity by one level each."""
    REPEAT_CATEGORY = "repeat_category"      # >=2 prior incidents of the same category
    RAPID_SUCCESSION = "rapid_succession"    # >=3 incidents in the trailing 10 minutes
    LATE_SESSION = "late_session"            # more than 45 minutes in
    PRIOR_MAJOR = "prior_major"              # a prior incident was severity >=3


def severity_band_index(grade: int) -> int:
    """Column of the base severity table for a grade."""
    if grade <= 2:
        return 0
    if grade <= 5:
        return 1
    if grade <= 8:
        return 2
    if grade <= 10:
        return 3
    return 4


def base_severity(category: CategoryId | str, grade: int) -> int:
    """Grade-aware base severity. Unknown categories use the OTHER row."""
    if not isinstance(category, CategoryId):
        category = CategoryId.parse(category) or CategoryId.OTHER
    row = BASE_SEVERITY_TABLE.get(category, BASE_SEVERITY_TABLE[CategoryId.OTHER])
    return row[severity_band_index(grade)]


def escalate(base: int, factors: Iterable[EscalationFactor]) -> int:
    """
    Apply escalation factors to a base severity.

    Each distinct factor adds one level; the result is clamped to 4.
    Order and repetition of factors do not matter.
    """
    return min(MAX_COMPUTED_SEVERITY, base + len(set(factors)))


def detect_factors(
    category: CategoryId,
    prior_incidents: Sequence[Incident],
    elapsed_seconds: int,
) -> list[EscalationFactor]:
    """
    Evaluate which escalation factors apply to a new incident.

    Args:
        category: Category of the new incident
        prior_incidents: Incidents already logged this session
        elapsed_seconds: Session time at the new incident
    """
    factors: list[EscalationFactor] = []

    same_category = sum(1 for i in prior_incidents if i.category == category)
    if same_category >= REPEAT_CATEGORY_THRESHOLD:
        factors.append(EscalationFactor.REPEAT_CATEGORY)

    window_start = elapsed_seconds - RECENT_WINDOW_SECONDS
    recent = 1 + sum(1 for i in prior_incidents if i.time_into_session >= window_start)
    if recent >= RECENT_INCIDENT_THRESHOLD:
        factors.append(EscalationFactor.RAPID_SUCCESSION)

    if elapsed_seconds > LATE_SESSION_SECONDS:
        factors.append(EscalationFactor.LATE_SESSION)

    if any(i.severity >= MAJOR_SEVERITY for i in prior_incidents):
        factors.append(EscalationFactor.PRIOR_MAJOR)

    return factors


@dataclass
class SeverityResolution:
    """Outcome of resolving one incident's severity."""
    category: CategoryId
    grade: int
    base: int
    severity: int
    factors: list[EscalationFactor] = field(default_factory=list)
    reported: Optional[int] = None

    @property
    def escalated(self) -> bool:
        return bool(self.factors)

    def to_dict(self) -> dict:
        return {
            "category": self.category.value,
            "grade": self.grade,
            "base": self.base,
            "severity": self.severity,
            "factors": [f.value for f in self.factors],
            "reported": self.reported,
        }


class SeverityResolver:
    """
    Stateless severity computation.

    The starting point is the larger of the grade-aware base and the
    tutor-reported severity, so a tutor can raise but never lower the
    floor for a category.
    """

    def resolve(
        self,
        category: CategoryId,
        grade: int,
        prior_incidents: Sequence[Incident] = (),
        elapsed_seconds: int = 0,
        reported_severity: Optional[int] = None,
    ) -> SeverityResolution:
        base = base_severity(category, grade)
        start = max(base, reported_severity or 0)
        factors = detect_factors(category, prior_incidents, elapsed_seconds)
        return SeverityResolution(
            category=category,
            grade=grade,
            base=base,
            severity=escalate(start, factors),
            factors=factors,
            reported=reported_severity,
        )
