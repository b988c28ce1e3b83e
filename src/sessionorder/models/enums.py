"""
SessionOrder Enumerations

All enumeration types used throughout SessionOrder.
Organized by domain area for clarity.

All enums inherit from (str, Enum) for JSON serialization compatibility.
"""
from __future__ import annotations

from enum import Enum


# =============================================================================
# Behavior Categories
# =============================================================================

class CategoryId(str, Enum):
    """The eight fixed behavior categories. OTHER is the catch-all."""
    FOCUS_OFF_TASK = "FOCUS_OFF_TASK"
    INTERRUPTING = "INTERRUPTING"
    DISRESPECT_TONE = "DISRESPECT_TONE"
    NON_COMPLIANCE = "NON_COMPLIANCE"
    TECH_MISUSE = "TECH_MISUSE"
    ACADEMIC_INTEGRITY = "ACADEMIC_INTEGRITY"
    SAFETY_BOUNDARY = "SAFETY_BOUNDARY"
    OTHER = "OTHER"

    @classmethod
    def parse(cls, value: str) -> "CategoryId | None":
        """Return the category for a raw id, or None if it is not one of the eight."""
        try:
            return cls(value)
        except ValueError:
            return None


# Stable iteration order for counters and tables
CATEGORY_IDS: tuple[str, ...] = tuple(c.value for c in CategoryId)


# =============================================================================
# Grade Bands
# =============================================================================

class BandId(str, Enum):
    """Ordered grade bands, early primary through senior high."""
    A = "A"  # Grades 1-2
    B = "B"  # Grades 3-5
    C = "C"  # Grades 6-8
    D = "D"  # Grades 9-10
    E = "E"  # Grades 11-13

    @property
    def index(self) -> int:
        return "ABCDE".index(self.value)


# =============================================================================
# Tones
# =============================================================================

class Tone(str, Enum):
    """Script tones, ordered from softest to firmest."""
    GENTLE = "gentle"
    NEUTRAL = "neutral"
    FIRM = "firm"


# =============================================================================
# Sessions
# =============================================================================

class SessionMode(str, Enum):
    """Where the session takes place."""
    IN_PERSON = "in-person"
    ONLINE = "online"


class SessionStatus(str, Enum):
    """
    Session lifecycle.

    ACTIVE and PAUSED are live states; COMPLETED is terminal.
    """
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"

    @property
    def is_live(self) -> bool:
        return self in (SessionStatus.ACTIVE, SessionStatus.PAUSED)


class DeescalationAction(str, Enum):
    """De-escalation toolkit actions."""
    RESET_BREAK = "reset_break"
    REDUCE_DIFFICULTY = "reduce_difficulty"
    GUIDED_PRACTICE = "guided_practice"
    ACTIVITY_SWITCH = "activity_switch"


# =============================================================================
# Recommendations
# =============================================================================

class RecommendationSource(str, Enum):
    """Provenance of a recommendation."""
    AI = "ai"                        # Validated and sanitized advisory packet
    DETERMINISTIC = "deterministic"  # Locally computed fallback


class WarningLevel(str, Enum):
    """Graduated session warning ladder."""
    GREEN = "green"
    YELLOW = "yellow"
    ORANGE = "orange"
    RED = "red"


class GradeApproach(str, Enum):
    """
    How status messaging is framed for the student's age group.

    Younger students get concrete external structure (explicit counts);
    older students get internal accountability language.
    """
    EXTERNAL_STRUCTURE = "external_structure"
    INTERNAL_ACCOUNTABILITY = "internal_accountability"


# =============================================================================
# Storage
# =============================================================================

class RecordKind(str, Enum):
    """Record kinds at the persistence boundary."""
    STUDENT = "student"
    SESSION = "session"
    INCIDENT = "incident"
    CONFIG = "config"
