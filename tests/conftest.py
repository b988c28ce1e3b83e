"""
Pytest configuration and fixtures for SessionOrder tests.

Provides helper factories and common fixtures matching actual model definitions.
"""
import pytest

from sessionorder.engine import Methodology, SessionManager
from sessionorder.models import (
    CategoryId,
    Incident,
    Session,
    SessionMode,
    Student,
)
from sessionorder.packs import load_default_methodology
from sessionorder.storage import InMemoryRepository


# Fixed epoch for deterministic clocks (2024-09-03 15:00:00 UTC)
T0 = 1_725_375_600_000


# =============================================================================
# Factory Helpers
# =============================================================================

class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start: int = T0):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: float = 0, ms: int = 0) -> int:
        self.now += int(seconds * 1000) + ms
        return self.now


def make_student(name: str = "Sam", grade: int = 4, **kwargs) -> Student:
    """Create a Student with required fields."""
    return Student(name=name, grade=grade, created_at=T0, **kwargs)


def make_session(student_id: str = "STU-001", **kwargs) -> Session:
    """Create a Session with required fields."""
    kwargs.setdefault("start_time", T0)
    kwargs.setdefault("mode", SessionMode.IN_PERSON)
    return Session(student_id=student_id, **kwargs)


def make_incident(
    category: CategoryId = CategoryId.FOCUS_OFF_TASK,
    severity: int = 1,
    time_into_session: int = 0,
    session_id: str = "SES-001",
    description: str = "Looked away from the worksheet",
    timestamp: int = None,
    **kwargs,
) -> Incident:
    """Create an Incident with required fields. Timestamp follows session time."""
    if timestamp is None:
        timestamp = T0 + time_into_session * 1000
    return Incident(
        session_id=session_id,
        category=category,
        severity=severity,
        description=description,
        time_into_session=time_into_session,
        timestamp=timestamp,
        **kwargs,
    )


def make_advisory_body(**overrides) -> dict:
    """A response body that satisfies the advisory contract."""
    body = {
        "category": "INTERRUPTING",
        "severity": 2,
        "confidence": 0.82,
        "intentHypothesis": {
            "label": "Seeking attention",
            "confidence": 0.6,
            "alternatives": ["Excitement about the topic"],
        },
        "recommendedResponse": {
            "immediateStep": "Use the hand signal and finish the sentence",
            "ladderAction": "Brief reminder about turn-taking",
            "ladderStepSuggested": 2,
            "restorative": {"type": "practice", "prompt": "Practice waiting for 30 seconds"},
        },
        "script": {
            "gentle": "Hold that thought, I'll come right back to you.",
            "neutral": "Remember our rule: wait, then speak.",
            "firm": "We need to practice waiting before we go on.",
        },
        "preventionTip": "Give a clear signal for when questions are welcome.",
        "fairnessNotes": ["Excitement is not defiance"],
    }
    body.update(overrides)
    return body


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def methodology() -> Methodology:
    return Methodology(load_default_methodology())


@pytest.fixture
def repo() -> InMemoryRepository:
    return InMemoryRepository()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def manager(repo, methodology, clock) -> SessionManager:
    """Deterministic-only manager with a fixed clock."""
    return SessionManager(repo, methodology, clock=clock)


@pytest.fixture
def student(manager) -> Student:
    return manager.register_student("Sam", grade=4)
