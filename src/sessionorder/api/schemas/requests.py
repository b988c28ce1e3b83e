"""Request schemas for the API."""

from typing import Any, Optional

from pydantic import BaseModel, Field

from sessionorder.models import SessionMode


class StudentCreateRequest(BaseModel):
    """
    Register a student.

    Fields are loosely typed on purpose: the engine's own validator
    reports every problem with a stable message.
    """
    name: Any = Field(default=None, description="Student name, max 100 characters")
    grade: Any = Field(default=None, description="School grade 1..13")
    notes: Optional[str] = Field(default="", description="Optional tutor notes, max 500 characters")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"name": "Sam", "grade": 4, "notes": "Prefers visual examples"},
            ]
        }
    }


class SessionStartRequest(BaseModel):
    """Start a session. Any live session is ended first."""
    student_id: str = Field(..., description="Registered student ID")
    mode: SessionMode = Field(default=SessionMode.IN_PERSON, description="in-person|online")
    goals: list[str] = Field(default=[], description="Session goals")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"student_id": "5f0c...", "mode": "online", "goals": ["Fractions", "Reading log"]},
            ]
        }
    }


class IncidentCreateRequest(BaseModel):
    """Log an incident in the active session."""
    category: Any = Field(default=None, description="Category ID, e.g. 'INTERRUPTING'")
    severity: Any = Field(default=None, description="Reported severity 1..4")
    description: Any = Field(default=None, description="What happened, max 200 characters")
    context: Optional[str] = Field(default="", description="Optional context, max 500 characters")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "category": "INTERRUPTING",
                    "severity": 1,
                    "description": "Talked over the explanation twice",
                    "context": "During long division walkthrough",
                },
            ]
        }
    }


class IncidentResolveRequest(BaseModel):
    """Resolve an incident."""
    outcome: str = Field(..., description="How the incident was resolved")
    tutor_decision: Optional[str] = Field(default=None, description="What the tutor did")


class DeescalationRequest(BaseModel):
    """Apply a de-escalation action to the active session."""
    action: str = Field(..., description="reset_break|reduce_difficulty|guided_practice|activity_switch")
    duration: Optional[int] = Field(default=None, description="Break length in seconds")
