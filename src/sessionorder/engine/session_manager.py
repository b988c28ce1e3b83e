"""
SessionOrder Session Manager

The operator-facing surface: one active session at a time, its timer,
and the incidents logged during it.

Lifecycle:

    no session -> active <-> paused -> completed

Starting a new session ends any live one first. Discipline counters on
the session increment exactly once per logged incident and never
decrement; resolving an incident does not undo its count.

Incident flow (log_and_analyze):
1. Validate input; nothing persists on failure
2. Resolve severity from category, grade and session history
3. Persist the incident and increment its category counter
4. Build the deterministic recommendation, attempt the advisory call,
   attach exactly one packet to the incident
5. Recompute the session status

Usage:
    manager = SessionManager(repository, methodology)
    student = manager.register_student("Sam", grade=4)
    manager.start_session(student.id, mode="online", goals=["Fractions"])
    outcome = await manager.log_and_analyze("INTERRUPTING", 1, "Talked over instructions")
    outcome.status.warning_level
"""
from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Iterable, Mapping, Optional, Union

from ..exceptions import (
    IncidentAlreadyResolvedError,
    IncidentNotFoundError,
    NoActiveSessionError,
    SessionNotFoundError,
    StudentNotFoundError,
    UnknownCategoryError,
)
from ..models import (
    CategoryId,
    DeescalationAction,
    DeescalationEntry,
    Goal,
    GradeBand,
    Incident,
    Recommendation,
    RecordKind,
    Session,
    SessionMode,
    SessionStatus,
    SessionStatusReport,
    Student,
    Tone,
    TutorDecision,
    empty_discipline_state,
    now_ms,
)
from .advisory_client import AdvisoryService
from .events import (
    INCIDENT_ANALYZED,
    INCIDENT_DECISION_RECORDED,
    INCIDENT_LOGGED,
    INCIDENT_RESOLVED,
    SESSION_BREAK_STARTED,
    SESSION_DEESCALATION,
    SESSION_ENDED,
    SESSION_GOALS_UPDATED,
    SESSION_MODE_CHANGED,
    SESSION_STARTED,
    EventBus,
)
from .input_validator import require_valid_incident, require_valid_student
from .methodology import Methodology
from .pattern_analyzer import PatternReport, analyze_patterns
from .recommender import DeterministicRecommender
from .session_status import evaluate_session_status
from .severity_resolver import SeverityResolver
from .timer import SessionTimer

if TYPE_CHECKING:
    from ..storage import Repository

logger = logging.getLogger(__name__)

DEFAULT_BREAK_SECONDS = 60


def format_duration(seconds: int) -> str:
    """M:SS, or H:MM:SS from one hour."""
    hours, rest = divmod(max(0, int(seconds)), 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


@dataclass
class IncidentOutcome:
    """Everything the tutor sees after logging an incident."""
    incident: Incident
    recommendation: Recommendation
    status: SessionStatusReport

    def to_dict(self) -> dict[str, Any]:
        return {
            "incident": self.incident.to_dict(),
            "analysis": self.recommendation.to_dict(),
            "status": self.status.to_dict(),
        }


class SessionManager:
    """
    Owns the single active session.

    Args:
        repository: Record storage
        methodology: Active methodology
        advisory: Recommendation source; deterministic-only if omitted
        events: Event bus for the rendering layer
        clock: Millisecond clock, injectable for tests
    """

    def __init__(
        self,
        repository: "Repository",
        methodology: Methodology,
        advisory: Optional[AdvisoryService] = None,
        events: Optional[EventBus] = None,
        clock: Callable[[], int] = now_ms,
    ):
        self.repository = repository
        self.methodology = methodology
        self.advisory = advisory or AdvisoryService(methodology)
        self.events = events or EventBus()
        self.clock = clock
        self.resolver = SeverityResolver()
        self.recommender = DeterministicRecommender(methodology)

        self.session: Optional[Session] = None
        self.student: Optional[Student] = None
        self.timer: Optional[SessionTimer] = None

    # =========================================================================
    # Students
    # =========================================================================

    def register_student(self, name: str, grade: Union[int, str], notes: str = "") -> Student:
        """
        Create a student.

        Raises:
            StudentValidationError: If name, grade or notes are invalid
        """
        parsed_grade = require_valid_student(name, grade, notes)
        student = Student(
            name=name.strip(),
            grade=parsed_grade,
            notes=notes or "",
            created_at=self.clock(),
        )
        self.repository.put(RecordKind.STUDENT, student.id, student.to_dict())
        logger.info("Student registered", extra={"student_id": student.id})
        return student

    def get_student(self, student_id: str) -> Student:
        data = self.repository.get(RecordKind.STUDENT, student_id)
        if data is None:
            raise StudentNotFoundError(
                message=f"Student not found: {student_id}",
                details={"student_id": student_id},
            )
        return Student.from_dict(data)

    def list_students(self) -> list[Student]:
        students = [Student.from_dict(d) for d in self.repository.all(RecordKind.STUDENT)]
        return sorted(students, key=lambda s: s.name.lower())

    # =========================================================================
    # Session Lifecycle
    # =========================================================================

    @property
    def has_session(self) -> bool:
        return self.session is not None

    @property
    def band(self) -> GradeBand:
        self._require_session()
        return self.methodology.band_for_grade(self.student.grade)

    @property
    def elapsed_seconds(self) -> int:
        return self.timer.seconds if self.timer else 0

    def start_session(
        self,
        student_id: str,
        mode: Union[SessionMode, str] = SessionMode.IN_PERSON,
        goals: Iterable[str] = (),
    ) -> Session:
        """
        Start a session for a student, ending any live session first.

        Raises:
            StudentNotFoundError: If the student does not exist
            ValueError: If mode is not a known session mode
        """
        student = self.get_student(student_id)
        session_mode = SessionMode(mode)
        if self.session is not None:
            self.end_session()

        start = self.clock()
        session = Session(
            student_id=student.id,
            mode=session_mode,
            start_time=start,
            goals=[Goal(text=g) for g in goals],
        )
        student.last_session = start
        self.repository.put(RecordKind.STUDENT, student.id, student.to_dict())

        self.session = session
        self.student = student
        self._save_session()
        self.timer = self._new_timer(session.id)
        self.timer.start()

        logger.info(
            "Session started",
            extra={"session_id": session.id, "band": self.band.id.value},
        )
        self.events.emit(SESSION_STARTED, {
            "session": session.to_dict(),
            "student": student.to_dict(),
        })
        return session

    def end_session(self) -> Optional[Session]:
        """End the live session. Returns None if there was none."""
        if self.session is None:
            return None

        session = self.session
        self.timer.pause()
        session.elapsed_seconds = self.timer.seconds
        session.status = SessionStatus.COMPLETED
        session.end_time = self.clock()
        self._save_session()
        self.timer.clear()

        logger.info(
            "Session ended",
            extra={"session_id": session.id, "elapsed_seconds": session.elapsed_seconds},
        )
        self.events.emit(SESSION_ENDED, {"session": session.to_dict()})

        self.session = None
        self.student = None
        self.timer = None
        return session

    def pause(self) -> Session:
        session = self._require_session()
        self.timer.pause()
        if session.status != SessionStatus.PAUSED:
            session.status = SessionStatus.PAUSED
            self._save_session()
            logger.info("Session paused", extra={"session_id": session.id})
        return session

    def resume(self) -> Session:
        session = self._require_session()
        self.timer.resume()
        if session.status != SessionStatus.ACTIVE:
            session.status = SessionStatus.ACTIVE
            self._save_session()
            logger.info("Session resumed", extra={"session_id": session.id})
        return session

    def toggle_timer(self) -> bool:
        """Pause if running, otherwise resume. Returns the new running state."""
        self._require_session()
        if self.timer.running:
            self.pause()
        else:
            self.resume()
        return self.timer.running

    def tick(self) -> int:
        self._require_session()
        return self.timer.tick()

    def on_visible(self) -> int:
        self._require_session()
        return self.timer.on_visible()

    def restore_active_session(self) -> Optional[Session]:
        """
        Reattach to a live session after a restart.

        Picks the most recently started active or paused session and
        rebuilds its timer from persisted state.
        """
        live = [
            Session.from_dict(d)
            for status in (SessionStatus.ACTIVE, SessionStatus.PAUSED)
            for d in self.repository.find_by(RecordKind.SESSION, "status", status.value)
        ]
        if not live:
            return None

        session = max(live, key=lambda s: s.start_time)
        self.session = session
        self.student = self.get_student(session.student_id)
        self.timer = self._new_timer(session.id)
        self.timer.restore(session.start_time, running=session.status == SessionStatus.ACTIVE)

        logger.info(
            "Session restored",
            extra={"session_id": session.id, "elapsed_seconds": self.timer.seconds},
        )
        return session

    # =========================================================================
    # Session Details
    # =========================================================================

    def set_mode(self, mode: Union[SessionMode, str]) -> Session:
        session = self._require_session()
        session.mode = SessionMode(mode)
        self._save_session()
        self.events.emit(SESSION_MODE_CHANGED, {"mode": session.mode.value})
        return session

    def update_goals(self, goals: Iterable[str]) -> list[Goal]:
        session = self._require_session()
        session.goals = [Goal(text=g) for g in goals]
        self._save_session()
        self._emit_goals()
        return session.goals

    def toggle_goal(self, index: int) -> Goal:
        """
        Flip a goal's completion flag.

        Raises:
            IndexError: If there is no goal at index
        """
        session = self._require_session()
        goal = session.goals[index]
        goal.completed = not goal.completed
        self._save_session()
        self._emit_goals()
        return goal

    def update_notes(self, notes: str) -> Session:
        session = self._require_session()
        session.notes = notes
        self._save_session()
        return session

    def apply_deescalation(
        self,
        action: Union[DeescalationAction, str],
        duration: Optional[int] = None,
    ) -> DeescalationEntry:
        """
        Apply and log a de-escalation action.

        A reset break pauses the timer until end_break(). The other
        actions are logged only.

        Raises:
            ValueError: If action is not a known de-escalation action
        """
        session = self._require_session()
        chosen = DeescalationAction(action)

        if chosen == DeescalationAction.RESET_BREAK:
            duration = duration or DEFAULT_BREAK_SECONDS
            self.pause()
            self.events.emit(SESSION_BREAK_STARTED, {"duration": duration, "type": "reset"})

        entry = DeescalationEntry(
            action=chosen.value,
            timestamp=self.clock(),
            time_into_session=self.timer.seconds,
            duration=duration,
        )
        session.deescalations.append(entry)
        self._save_session()

        logger.info(
            "De-escalation applied: %s", chosen.value,
            extra={"session_id": session.id},
        )
        self.events.emit(SESSION_DEESCALATION, entry.to_dict())
        return entry

    def end_break(self) -> Session:
        return self.resume()

    # =========================================================================
    # Incidents
    # =========================================================================

    def log_incident(
        self,
        category: Union[CategoryId, str],
        severity: Union[int, str],
        description: str,
        context: str = "",
    ) -> Incident:
        """
        Validate, resolve severity, persist and count an incident.

        The returned incident has no packet yet; see enrich_incident.

        Raises:
            NoActiveSessionError: If no session is live
            IncidentValidationError: If any input is invalid
        """
        session = self._require_session()
        category_id, reported = require_valid_incident(
            category, severity, description, context, session_id=session.id
        )

        elapsed = self.timer.tick()
        resolution = self.resolver.resolve(
            category_id,
            grade=self.student.grade,
            prior_incidents=self.session_incidents(),
            elapsed_seconds=elapsed,
            reported_severity=reported,
        )

        incident = Incident(
            session_id=session.id,
            category=category_id,
            severity=resolution.severity,
            description=description,
            context=context or "",
            timestamp=self.clock(),
            time_into_session=elapsed,
            reported_severity=reported,
            escalation_factors=[f.value for f in resolution.factors],
        )
        self._save_incident(incident)
        session.record_incident(category_id)
        self._save_session()

        logger.info(
            "Incident logged",
            extra={
                "session_id": session.id,
                "incident_id": incident.id,
                "category": category_id.value,
                "severity": incident.severity,
            },
        )
        self.events.emit(INCIDENT_LOGGED, {
            "incident": incident.to_dict(),
            "resolution": resolution.to_dict(),
        })
        return incident

    async def enrich_incident(
        self,
        incident_id: str,
        prior_state: Optional[Mapping[str, int]] = None,
    ) -> Recommendation:
        """
        Attach a recommendation to an incident.

        An incident is enriched once; later calls return the packet
        already attached.

        Args:
            incident_id: Incident to enrich
            prior_state: Counters before the incident was logged. Derived
                from earlier incidents in the session if omitted.
        """
        incident = self.get_incident(incident_id)
        if incident.advisory_packet is not None:
            return incident.advisory_packet

        session = self._load_session(incident.session_id)
        student = self.get_student(session.student_id)
        if prior_state is None:
            prior_state = self._prior_state(incident)

        packet = await self.advisory.analyze(incident, student, session, prior_state)

        # Re-read in case the incident changed while the call was in flight
        current = self.get_incident(incident_id)
        if not current.attach_packet(packet):
            return current.advisory_packet
        self._save_incident(current)

        self.events.emit(INCIDENT_ANALYZED, {
            "incidentId": current.id,
            "analysis": packet.to_dict(),
        })
        return packet

    async def log_and_analyze(
        self,
        category: Union[CategoryId, str],
        severity: Union[int, str],
        description: str,
        context: str = "",
    ) -> IncidentOutcome:
        """Log an incident, enrich it, and report the resulting session status."""
        session = self._require_session()
        prior_state = dict(session.discipline_state)

        incident = self.log_incident(category, severity, description, context)
        packet = await self.enrich_incident(incident.id, prior_state)
        incident = self.get_incident(incident.id)

        status = self.session_status(
            current_severity=incident.severity,
            advisory_severity=packet.severity if packet.is_advisory else None,
        )
        return IncidentOutcome(incident=incident, recommendation=packet, status=status)

    def resolve_incident(
        self,
        incident_id: str,
        outcome: str,
        tutor_decision: Optional[str] = None,
    ) -> Incident:
        """
        Mark an incident resolved.

        Raises:
            IncidentNotFoundError: If the incident does not exist
            IncidentAlreadyResolvedError: If it was already resolved
        """
        incident = self.get_incident(incident_id)
        if incident.resolved:
            raise IncidentAlreadyResolvedError(
                message=f"Incident already resolved: {incident_id}",
                details={"incident_id": incident_id},
                session_id=incident.session_id,
            )

        incident.resolved = True
        incident.outcome = outcome
        incident.resolved_at = self.clock()
        if tutor_decision:
            incident.tutor_decision = TutorDecision(
                action=tutor_decision,
                timestamp=self.clock(),
            )
        self._save_incident(incident)

        logger.info(
            "Incident resolved",
            extra={"session_id": incident.session_id, "incident_id": incident.id},
        )
        self.events.emit(INCIDENT_RESOLVED, {"incident": incident.to_dict()})
        return incident

    def record_decision(
        self,
        incident_id: str,
        action: str,
        tone: Union[Tone, str] = Tone.NEUTRAL,
        script: Optional[str] = None,
        followed_recommendation: bool = False,
        notes: Optional[str] = None,
    ) -> Incident:
        """Record what the tutor actually did. Replaces any earlier decision."""
        incident = self.get_incident(incident_id)
        incident.tutor_decision = TutorDecision(
            action=action,
            tone=Tone(tone),
            script=script,
            followed_recommendation=followed_recommendation,
            notes=notes or None,
            timestamp=self.clock(),
        )
        self._save_incident(incident)
        self.events.emit(INCIDENT_DECISION_RECORDED, {"incident": incident.to_dict()})
        return incident

    def get_incident(self, incident_id: str) -> Incident:
        data = self.repository.get(RecordKind.INCIDENT, incident_id)
        if data is None:
            raise IncidentNotFoundError(
                message=f"Incident not found: {incident_id}",
                details={"incident_id": incident_id},
            )
        return Incident.from_dict(data)

    def session_incidents(self, session_id: Optional[str] = None) -> list[Incident]:
        """Incidents of a session (the live one by default), oldest first."""
        if session_id is None:
            session_id = self._require_session().id
        records = self.repository.find_by(RecordKind.INCIDENT, "sessionId", session_id)
        incidents = [Incident.from_dict(r) for r in records]
        return sorted(incidents, key=lambda i: (i.timestamp, i.time_into_session))

    def find_incidents(
        self,
        category: Optional[Union[CategoryId, str]] = None,
        severity: Optional[int] = None,
        resolved: Optional[bool] = None,
        session_id: Optional[str] = None,
        start_ms: Optional[int] = None,
        end_ms: Optional[int] = None,
    ) -> list[Incident]:
        """Incidents across all sessions, filtered, oldest first."""
        records = self.repository.find_range(RecordKind.INCIDENT, "timestamp", start_ms, end_ms)
        incidents = [Incident.from_dict(r) for r in records]
        if category is not None:
            incidents = [i for i in incidents if i.category == CategoryId(category)]
        if severity is not None:
            incidents = [i for i in incidents if i.severity == int(severity)]
        if resolved is not None:
            incidents = [i for i in incidents if i.resolved == resolved]
        if session_id is not None:
            incidents = [i for i in incidents if i.session_id == session_id]
        return incidents

    # =========================================================================
    # Recommendations and Status
    # =========================================================================

    def next_recommendation(self, category: Optional[Union[CategoryId, str]] = None) -> dict[str, Any]:
        """
        What to do if behavior recurs.

        Raises:
            UnknownCategoryError: If category is given but unknown
        """
        session = self._require_session()
        category_id = None
        if category is not None:
            category_id = CategoryId.parse(category)
            if category_id is None:
                raise UnknownCategoryError(
                    message=f"Unknown category: {category}",
                    details={"category": str(category)},
                    session_id=session.id,
                )
        return self.recommender.next_step(session.discipline_state, self.band.id, category_id)

    def session_status(
        self,
        current_severity: Optional[int] = None,
        advisory_severity: Optional[int] = None,
    ) -> SessionStatusReport:
        """
        Current session decision surface.

        current_severity defaults to the severity of the latest incident.
        """
        session = self._require_session()
        incidents = self.session_incidents()
        if current_severity is None:
            current_severity = incidents[-1].severity if incidents else 0

        report = evaluate_session_status(
            self.methodology,
            self.band.id,
            session.discipline_state,
            incidents,
            current_severity=current_severity,
            advisory_severity=advisory_severity,
            elapsed_seconds=self.timer.seconds,
        )
        if report.should_stop:
            logger.warning(
                "Session stop recommended: %s", report.stop_reason,
                extra={"session_id": session.id},
            )
        return report

    def session_summary(self) -> dict[str, Any]:
        session = self._require_session()
        incidents = self.session_incidents()
        seconds = self.timer.tick()
        return {
            "sessionId": session.id,
            "duration": format_duration(seconds),
            "elapsedSeconds": seconds,
            "mode": session.mode.value,
            "status": session.status.value,
            "studentName": self.student.name,
            "studentGrade": self.student.grade,
            "gradeBand": self.band.id.value,
            "totalIncidents": len(incidents),
            "disciplineState": dict(session.discipline_state),
            "goals": [g.to_dict() for g in session.goals],
            "goalsCompleted": sum(1 for g in session.goals if g.completed),
            "deescalations": [d.to_dict() for d in session.deescalations],
            "incidents": [i.to_dict() for i in incidents],
            "sessionStatus": self.session_status().to_dict(),
        }

    def patterns(self, student_id: Optional[str] = None) -> PatternReport:
        """Pattern report over all incidents, or one student's sessions."""
        if student_id is None:
            incidents = [Incident.from_dict(r) for r in self.repository.all(RecordKind.INCIDENT)]
        else:
            incidents = []
            for record in self.repository.find_by(RecordKind.SESSION, "studentId", student_id):
                incidents.extend(self.session_incidents(record["id"]))
        return analyze_patterns(incidents, self.methodology)

    # =========================================================================
    # Internals
    # =========================================================================

    def _require_session(self) -> Session:
        if self.session is None:
            raise NoActiveSessionError(message="No active session")
        return self.session

    def _load_session(self, session_id: str) -> Session:
        if self.session is not None and self.session.id == session_id:
            return self.session
        data = self.repository.get(RecordKind.SESSION, session_id)
        if data is None:
            raise SessionNotFoundError(
                message=f"Session not found: {session_id}",
                session_id=session_id,
            )
        return Session.from_dict(data)

    def _prior_state(self, incident: Incident) -> dict[str, int]:
        """Counters as they stood before an incident, from earlier incidents."""
        earlier = [
            i for i in self.session_incidents(incident.session_id)
            if i.id != incident.id and i.timestamp < incident.timestamp
        ]
        state = empty_discipline_state()
        state.update(Counter(i.category.value for i in earlier))
        return state

    def _new_timer(self, session_id: str) -> SessionTimer:
        return SessionTimer(
            self.repository,
            session_id,
            clock=self.clock,
            events=self.events,
            on_change=self._on_timer_change,
        )

    def _on_timer_change(self, seconds: int) -> None:
        if self.session is not None:
            self.session.elapsed_seconds = seconds
            self._save_session()

    def _save_session(self) -> None:
        self.repository.put(RecordKind.SESSION, self.session.id, self.session.to_dict())

    def _save_incident(self, incident: Incident) -> None:
        self.repository.put(RecordKind.INCIDENT, incident.id, incident.to_dict())

    def _emit_goals(self) -> None:
        self.events.emit(SESSION_GOALS_UPDATED, {
            "goals": [g.to_dict() for g in self.session.goals],
        })
