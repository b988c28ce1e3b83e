"""
SessionOrder - Incident Escalation & Response Validation for Tutoring Sessions

SessionOrder helps a tutor handle behavior incidents during a session.
It produces RECOMMENDATIONS, not decisions: the tutor decides.

Core Principle: "The tutor decides. SessionOrder recommends and documents."

Key Features:
- Grade-band aware severity and intervention ladders
- Deterministic, policy-compliant recommendations that always work offline
- Optional advisory enrichment whose output is validated and sanitized
  before it is stored or shown
- Session stop, warning and countdown guidance by age group
- Drift-free session timer that survives reloads and backgrounding

Quick Start:
    import asyncio

    from sessionorder import (
        InMemoryRepository, Methodology, SessionManager,
        load_methodology_or_default,
    )

    repo = InMemoryRepository()
    methodology = Methodology(load_methodology_or_default(repo))
    manager = SessionManager(repo, methodology)

    student = manager.register_student("Sam", grade=4)
    manager.start_session(student.id, mode="in-person")

    outcome = asyncio.run(
        manager.log_and_analyze("INTERRUPTING", 1, "Talked over instructions")
    )
    outcome.recommendation.recommended_script
    outcome.status.countdown_message   # "2 more before consequence"

Version: 0.1.0
"""
from __future__ import annotations

__version__ = "0.1.0"

from .config import Settings
from .engine import (
    AdvisoryService,
    DeterministicRecommender,
    EventBus,
    Methodology,
    SessionManager,
    SeverityResolver,
    analyze_patterns,
    evaluate_session_status,
    validate_advisory_response,
)
from .exceptions import SessionOrderError
from .packs import (
    load_default_methodology,
    load_methodology_or_default,
    save_custom_methodology,
)
from .storage import InMemoryRepository, Repository


__all__ = [
    "__version__",
    "Settings",
    "AdvisoryService",
    "DeterministicRecommender",
    "EventBus",
    "Methodology",
    "SessionManager",
    "SeverityResolver",
    "analyze_patterns",
    "evaluate_session_status",
    "validate_advisory_response",
    "SessionOrderError",
    "load_default_methodology",
    "load_methodology_or_default",
    "save_custom_methodology",
    "InMemoryRepository",
    "Repository",
]
