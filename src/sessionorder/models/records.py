"""
SessionOrder Record Models

The four persisted record shapes (student, session, incident, config
timer state) plus the small value types they carry.

Key components:
- Student: A tutored student with a grade in 1..13
- Session: One tutoring session with its discipline counters and timer value
- Incident: A logged behavior incident, enriched once with a recommendation
- TimerState: Persisted timer reconciliation state for one session

All timestamps are epoch milliseconds. Durations are whole seconds.
Serialized keys are camelCase to match the storage and wire shapes.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Optional
from uuid import uuid4

from .enums import CATEGORY_IDS, CategoryId, SessionMode, SessionStatus, Tone
from .recommendation import Recommendation


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def new_id() -> str:
    return str(uuid4())


def empty_discipline_state() -> dict[str, int]:
    """A fresh counter map with every category at zero."""
    return {category_id: 0 for category_id in CATEGORY_IDS}


# =============================================================================
# Student
# =============================================================================

@dataclass
class Student:
    """
    A tutored student.

    Attributes:
        name: Display name (max 100 chars)
        grade: School grade 1..13
        notes: Optional tutor notes (max 500 chars)
        id: Unique identifier
        created_at: Creation time (ms)
        last_session: Start time of the most recent session (ms)
    """
    name: str
    grade: int
    notes: str = ""
    id: str = field(default_factory=new_id)
    created_at: int = field(default_factory=now_ms)
    last_session: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "grade": self.grade,
            "notes": self.notes,
            "createdAt": self.created_at,
            "lastSession": self.last_session,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Student":
        return cls(
            id=data["id"],
            name=data["name"],
            grade=int(data["grade"]),
            notes=data.get("notes") or "",
            created_at=data.get("createdAt", 0),
            last_session=data.get("lastSession"),
        )


# =============================================================================
# Session
# =============================================================================

@dataclass
class Goal:
    """A session goal with a completion flag."""
    text: str
    completed: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {"text": self.text, "completed": self.completed}

    @classmethod
    def from_value(cls, value: Any) -> "Goal":
        # Plain strings are legacy goals that were never toggled
        if isinstance(value, str):
            return cls(text=value)
        return cls(text=value.get("text", ""), completed=bool(value.get("completed", False)))


@dataclass
class DeescalationEntry:
    """A logged de-escalation action."""
    action: str
    timestamp: int
    time_into_session: int
    duration: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "action": self.action,
            "timestamp": self.timestamp,
            "timeIntoSession": self.time_into_session,
        }
        if self.duration is not None:
            result["duration"] = self.duration
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DeescalationEntry":
        return cls(
            action=data["action"],
            timestamp=data.get("timestamp", 0),
            time_into_session=data.get("timeIntoSession", 0),
            duration=data.get("duration"),
        )


@dataclass
class Session:
    """
    A tutoring session.

    discipline_state maps every category id to the number of incidents
    logged this session. Counters only ever increase; resolving an
    incident does not undo its count.
    """
    student_id: str
    mode: SessionMode = SessionMode.IN_PERSON
    id: str = field(default_factory=new_id)
    start_time: int = field(default_factory=now_ms)
    end_time: Optional[int] = None
    status: SessionStatus = SessionStatus.ACTIVE
    discipline_state: dict[str, int] = field(default_factory=empty_discipline_state)
    goals: list[Goal] = field(default_factory=list)
    notes: str = ""
    elapsed_seconds: int = 0
    deescalations: list[DeescalationEntry] = field(default_factory=list)

    @property
    def total_incidents(self) -> int:
        return sum(self.discipline_state.values())

    @property
    def is_live(self) -> bool:
        return self.status.is_live

    def count_for(self, category: CategoryId) -> int:
        return self.discipline_state.get(category.value, 0)

    def record_incident(self, category: CategoryId) -> int:
        """Increment the category counter and return the new count."""
        count = self.discipline_state.get(category.value, 0) + 1
        self.discipline_state[category.value] = count
        return count

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "studentId": self.student_id,
            "mode": self.mode.value,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "status": self.status.value,
            "disciplineState": dict(self.discipline_state),
            "goals": [g.to_dict() for g in self.goals],
            "notes": self.notes,
            "elapsedSeconds": self.elapsed_seconds,
            "deescalations": [d.to_dict() for d in self.deescalations],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Session":
        state = empty_discipline_state()
        state.update({k: int(v) for k, v in (data.get("disciplineState") or {}).items()})
        return cls(
            id=data["id"],
            student_id=data["studentId"],
            mode=SessionMode(data.get("mode", SessionMode.IN_PERSON.value)),
            start_time=data.get("startTime", 0),
            end_time=data.get("endTime"),
            status=SessionStatus(data.get("status", SessionStatus.ACTIVE.value)),
            discipline_state=state,
            goals=[Goal.from_value(g) for g in data.get("goals") or []],
            notes=data.get("notes") or "",
            elapsed_seconds=data.get("elapsedSeconds", 0),
            deescalations=[
                DeescalationEntry.from_dict(d) for d in data.get("deescalations") or []
            ],
        )


# =============================================================================
# Incident
# =============================================================================

@dataclass
class TutorDecision:
    """What the tutor actually did in response to an incident."""
    action: str
    tone: Tone = Tone.NEUTRAL
    script: Optional[str] = None
    followed_recommendation: bool = False
    notes: Optional[str] = None
    timestamp: int = field(default_factory=now_ms)

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.action,
            "tone": self.tone.value,
            "script": self.script,
            "followedRecommendation": self.followed_recommendation,
            "notes": self.notes,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TutorDecision":
        return cls(
            action=data["action"],
            tone=Tone(data.get("tone", Tone.NEUTRAL.value)),
            script=data.get("script"),
            followed_recommendation=bool(data.get("followedRecommendation", False)),
            notes=data.get("notes"),
            timestamp=data.get("timestamp", 0),
        )


@dataclass
class Incident:
    """
    A logged behavior incident.

    Identity fields (id, session_id, category, timestamp) never change
    after creation. The advisory packet attaches at most once and the
    incident resolves at most once.

    Attributes:
        session_id: Owning session
        category: Behavior category
        severity: Engine-resolved severity 1..4
        description: What happened (max 200 chars)
        context: Optional surrounding detail (max 500 chars)
        time_into_session: Session elapsed seconds when logged
        reported_severity: Severity as entered by the tutor
        escalation_factors: Names of the escalation factors applied
    """
    session_id: str
    category: CategoryId
    severity: int
    description: str
    context: str = ""
    id: str = field(default_factory=new_id)
    timestamp: int = field(default_factory=now_ms)
    time_into_session: int = 0
    reported_severity: Optional[int] = None
    escalation_factors: list[str] = field(default_factory=list)
    advisory_packet: Optional[Recommendation] = None
    tutor_decision: Optional[TutorDecision] = None
    resolved: bool = False
    outcome: Optional[str] = None
    resolved_at: Optional[int] = None

    @property
    def is_enriched(self) -> bool:
        return self.advisory_packet is not None

    def attach_packet(self, packet: Recommendation) -> bool:
        """Attach a recommendation. Returns False if one is already attached."""
        if self.advisory_packet is not None:
            return False
        self.advisory_packet = packet
        return True

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "sessionId": self.session_id,
            "category": self.category.value,
            "severity": self.severity,
            "reportedSeverity": self.reported_severity,
            "escalationFactors": list(self.escalation_factors),
            "description": self.description,
            "context": self.context,
            "timestamp": self.timestamp,
            "timeIntoSession": self.time_into_session,
            "aiPacket": self.advisory_packet.to_dict() if self.advisory_packet else None,
            "tutorDecision": self.tutor_decision.to_dict() if self.tutor_decision else None,
            "resolved": self.resolved,
            "outcome": self.outcome,
            "resolvedAt": self.resolved_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Incident":
        packet = data.get("aiPacket")
        decision = data.get("tutorDecision")
        return cls(
            id=data["id"],
            session_id=data["sessionId"],
            category=CategoryId(data["category"]),
            severity=int(data["severity"]),
            reported_severity=data.get("reportedSeverity"),
            escalation_factors=list(data.get("escalationFactors") or []),
            description=data["description"],
            context=data.get("context") or "",
            timestamp=data.get("timestamp", 0),
            time_into_session=data.get("timeIntoSession", 0),
            advisory_packet=Recommendation.from_dict(packet) if packet else None,
            tutor_decision=TutorDecision.from_dict(decision) if decision else None,
            resolved=bool(data.get("resolved", False)),
            outcome=data.get("outcome"),
            resolved_at=data.get("resolvedAt"),
        )


# =============================================================================
# Timer State
# =============================================================================

@dataclass
class TimerState:
    """
    Persisted timer state for one session.

    While running, start_time_ms marks the start of the current segment.
    While paused, start_time_ms is None and all time is banked in
    accumulated_seconds.
    """
    accumulated_seconds: int = 0
    running: bool = False
    start_time_ms: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "accumulatedSeconds": self.accumulated_seconds,
            "timerRunning": self.running,
            "startTimeMs": self.start_time_ms,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TimerState":
        return cls(
            accumulated_seconds=int(data.get("accumulatedSeconds", 0)),
            running=bool(data.get("timerRunning", False)),
            start_time_ms=data.get("startTimeMs"),
        )
