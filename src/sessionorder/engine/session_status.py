"""
SessionOrder Session Status

The session decision surface, derived independently of any
recommendation: should the session stop, how worried should the tutor
be, and how is progress toward a consequence communicated.

Stop rules (any one is enough):
- total incidents >= 5 and current severity >= 3
- at least one severity-4 incident this session
- at least two safety/boundary incidents this session

The current severity is a policy floor: the larger of the engine-resolved
severity and any advisory severity. An advisory response can raise it but
never lower it.

Countdown messaging differs by age group on purpose. Younger bands (A, B)
get an explicit "N more before consequence" count; older bands get
qualitative ownership language and no number.
"""
from __future__ import annotations

from typing import Mapping, Optional, Sequence

from ..models import (
    BandId,
    CategoryId,
    GradeApproach,
    Incident,
    SessionStatusReport,
    WarningLevel,
)
from .methodology import Methodology
from .severity_resolver import RECENT_WINDOW_SECONDS


STOP_TOTAL_THRESHOLD = 5
STOP_TOTAL_MIN_SEVERITY = 3
CRITICAL_SEVERITY = 4
SAFETY_STOP_COUNT = 2

ORANGE_RECENT_COUNT = 3
YELLOW_RECENT_COUNT = 2
YELLOW_TOTAL_COUNT = 2
YELLOW_SEVERITY = 3

YOUNGER_BANDS = frozenset({BandId.A, BandId.B})

# Cumulative consequence progress per incident severity
PROGRESS_BY_SEVERITY = {1: 10, 2: 25, 3: 50}
PROGRESS_FULL = 100

WARNING_MESSAGES = {
    WarningLevel.GREEN: "Session on track.",
    WarningLevel.YELLOW: "A pattern is starting. Monitor closely and redirect early.",
    WarningLevel.ORANGE: "High concern. Consider a reset break and parent contact.",
}

OLDER_COUNTDOWN_MESSAGES = {
    WarningLevel.GREEN: "You're in control of how this session goes.",
    WarningLevel.YELLOW: "Worth a moment to reset and own your focus.",
    WarningLevel.ORANGE: "This is a decision point. Your choices now decide how the session ends.",
    WarningLevel.RED: "The session can't continue the way it's going.",
}


def grade_approach_for(band_id: BandId) -> GradeApproach:
    if band_id in YOUNGER_BANDS:
        return GradeApproach.EXTERNAL_STRUCTURE
    return GradeApproach.INTERNAL_ACCOUNTABILITY


def consequence_progress(incidents: Sequence[Incident]) -> int:
    """
    Cumulative progress toward a consequence, 0..100.

    Level 1 adds 10, level 2 adds 25, level 3 adds 50; any level 4 or 5
    incident fills the bar.
    """
    progress = 0
    for incident in incidents:
        if incident.severity >= CRITICAL_SEVERITY:
            return PROGRESS_FULL
        progress += PROGRESS_BY_SEVERITY.get(incident.severity, 0)
    return min(PROGRESS_FULL, progress)


def _stop_reason(
    total: int,
    floor_severity: int,
    critical_count: int,
    safety_count: int,
) -> Optional[str]:
    if critical_count >= 1:
        return "Critical (level 4) incident this session"
    if safety_count >= SAFETY_STOP_COUNT:
        return "Multiple safety boundary incidents"
    if total >= STOP_TOTAL_THRESHOLD and floor_severity >= STOP_TOTAL_MIN_SEVERITY:
        return "High incident count with major severity"
    return None


def evaluate_session_status(
    methodology: Methodology,
    band_id: BandId,
    discipline_state: Mapping[str, int],
    incidents: Sequence[Incident],
    current_severity: int = 0,
    advisory_severity: Optional[int] = None,
    elapsed_seconds: Optional[int] = None,
) -> SessionStatusReport:
    """
    Compute the session status after an incident.

    Args:
        methodology: Active methodology
        band_id: Student's grade band
        discipline_state: Counters including the current incident
        incidents: All incidents this session including the current one
        current_severity: Engine-resolved severity of the current incident
        advisory_severity: Severity proposed by a validated advisory, if any
        elapsed_seconds: Session time now; defaults to the latest incident time
    """
    band = methodology.band(band_id)
    total = sum(discipline_state.values())
    floor_severity = max(current_severity, advisory_severity or 0)
    safety_count = discipline_state.get(CategoryId.SAFETY_BOUNDARY.value, 0)

    critical_count = sum(1 for i in incidents if i.severity >= CRITICAL_SEVERITY)
    if floor_severity >= CRITICAL_SEVERITY:
        critical_count = max(critical_count, 1)

    if elapsed_seconds is None:
        elapsed_seconds = max((i.time_into_session for i in incidents), default=0)
    window_start = elapsed_seconds - RECENT_WINDOW_SECONDS
    recent_count = sum(1 for i in incidents if i.time_into_session >= window_start)
    any_major = floor_severity >= YELLOW_SEVERITY or any(
        i.severity >= YELLOW_SEVERITY for i in incidents
    )

    contact_parent = methodology.should_contact_parent(discipline_state, band_id)
    stop_reason = _stop_reason(total, floor_severity, critical_count, safety_count)

    # =========================================================================
    # Warning ladder
    # =========================================================================
    if stop_reason:
        level = WarningLevel.RED
        message = f"Session stop recommended: {stop_reason}."
    elif safety_count >= 1 or recent_count >= ORANGE_RECENT_COUNT or contact_parent:
        level = WarningLevel.ORANGE
        message = WARNING_MESSAGES[level]
    elif total >= YELLOW_TOTAL_COUNT or recent_count >= YELLOW_RECENT_COUNT or any_major:
        level = WarningLevel.YELLOW
        message = WARNING_MESSAGES[level]
    else:
        level = WarningLevel.GREEN
        message = WARNING_MESSAGES[level]

    # =========================================================================
    # Countdown
    # =========================================================================
    approach = grade_approach_for(band_id)
    if approach == GradeApproach.EXTERNAL_STRUCTURE:
        remaining: Optional[int] = max(0, band.session_stop_threshold - total)
        if remaining == 0:
            countdown = "Consequence reached"
        else:
            countdown = f"{remaining} more before consequence"
    else:
        remaining = None
        countdown = OLDER_COUNTDOWN_MESSAGES[level]

    return SessionStatusReport(
        should_stop=stop_reason is not None,
        stop_reason=stop_reason,
        warning_level=level,
        warning_message=message,
        grade_approach=approach,
        incidents_to_consequence=remaining,
        countdown_message=countdown,
        should_contact_parent=contact_parent,
        consequence_progress=consequence_progress(incidents),
    )
