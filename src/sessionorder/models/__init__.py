"""
SessionOrder Models

All domain models for the SessionOrder session discipline engine.

Exports all models organized by category for convenient imports:

    from sessionorder.models import (
        # Enums
        CategoryId, BandId, Tone, SessionStatus,
        # Methodology
        MethodologyConfig, GradeBand, Category, LadderStep,
        # Records
        Student, Session, Incident, TimerState,
        # Recommendation
        Recommendation, SessionStatusReport,
    )
"""
from __future__ import annotations

# =============================================================================
# Enums
# =============================================================================
from .enums import (
    CATEGORY_IDS,
    BandId,
    CategoryId,
    DeescalationAction,
    GradeApproach,
    RecommendationSource,
    RecordKind,
    SessionMode,
    SessionStatus,
    Tone,
    WarningLevel,
)

# =============================================================================
# Methodology
# =============================================================================
from .methodology import (
    Category,
    ConsequencePolicy,
    DeescalationOption,
    GradeBand,
    LadderStep,
    MethodologyConfig,
    RestorativePrompt,
    SeverityLevel,
    UniversalRule,
)

# =============================================================================
# Recommendation
# =============================================================================
from .recommendation import (
    ConsequenceAction,
    IntentHypothesis,
    Recommendation,
    RecommendedResponse,
    RestorativeAction,
    ScriptTrio,
    SessionStatusReport,
)

# =============================================================================
# Records
# =============================================================================
from .records import (
    DeescalationEntry,
    Goal,
    Incident,
    Session,
    Student,
    TimerState,
    TutorDecision,
    empty_discipline_state,
    new_id,
    now_ms,
)


__all__ = [
    # Enums
    "CATEGORY_IDS",
    "BandId",
    "CategoryId",
    "DeescalationAction",
    "GradeApproach",
    "RecommendationSource",
    "RecordKind",
    "SessionMode",
    "SessionStatus",
    "Tone",
    "WarningLevel",
    # Methodology
    "Category",
    "ConsequencePolicy",
    "DeescalationOption",
    "GradeBand",
    "LadderStep",
    "MethodologyConfig",
    "RestorativePrompt",
    "SeverityLevel",
    "UniversalRule",
    # Recommendation
    "ConsequenceAction",
    "IntentHypothesis",
    "Recommendation",
    "RecommendedResponse",
    "RestorativeAction",
    "ScriptTrio",
    "SessionStatusReport",
    # Records
    "DeescalationEntry",
    "Goal",
    "Incident",
    "Session",
    "Student",
    "TimerState",
    "TutorDecision",
    "empty_discipline_state",
    "new_id",
    "now_ms",
]
