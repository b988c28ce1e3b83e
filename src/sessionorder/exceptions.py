"""
SessionOrder Exception Hierarchy

Domain-specific exceptions for in-session discipline tracking.
All exceptions include error codes for tracking and logging.

Exception codes follow the pattern: SO_<CATEGORY>_<SPECIFIC>

Three families:
- Input errors: raised synchronously at the point of creation, nothing persists
- Advisory errors: raised inside the advisory client only, always degraded
  to the deterministic fallback before reaching the operator
- Methodology errors: raised by the pack loader, caught by the
  load-or-default helper which falls back to the built-in configuration
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class SessionOrderError(Exception):
    """
    Base exception for all SessionOrder errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code (SO_*)
        details: Additional context about the error
        session_id: Associated session ID if applicable
    """
    message: str
    code: str = "SO_INTERNAL_ERROR"
    details: dict[str, Any] = field(default_factory=dict)
    session_id: Optional[str] = None

    def __post_init__(self) -> None:
        super().__init__(self.message)

    def __str__(self) -> str:
        parts = [f"[{self.code}] {self.message}"]
        if self.session_id:
            parts.append(f"(session: {self.session_id})")
        return " ".join(parts)

    def to_dict(self) -> dict[str, Any]:
        """Serialize exception for logging/API responses."""
        result: dict[str, Any] = {
            "code": self.code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        if self.session_id:
            result["session_id"] = self.session_id
        return result


# =============================================================================
# Methodology/Pack Errors
# =============================================================================

@dataclass
class MethodologyLoadError(SessionOrderError):
    """Failed to load methodology pack from file or storage."""
    code: str = "SO_METHODOLOGY_LOAD_ERROR"


@dataclass
class MethodologyValidationError(SessionOrderError):
    """Methodology pack schema or invariant validation failed."""
    code: str = "SO_METHODOLOGY_VALIDATION_ERROR"


@dataclass
class MethodologyVersionMismatch(SessionOrderError):
    """Methodology pack schema version is incompatible."""
    code: str = "SO_METHODOLOGY_VERSION_MISMATCH"


# =============================================================================
# Input Errors
# =============================================================================

@dataclass
class IncidentValidationError(SessionOrderError):
    """Incident input failed validation. details["errors"] lists every problem."""
    code: str = "SO_INCIDENT_INVALID"

    @property
    def errors(self) -> list[str]:
        return list(self.details.get("errors", []))


@dataclass
class StudentValidationError(SessionOrderError):
    """Student input failed validation. details["errors"] lists every problem."""
    code: str = "SO_STUDENT_INVALID"

    @property
    def errors(self) -> list[str]:
        return list(self.details.get("errors", []))


@dataclass
class InvalidGradeError(SessionOrderError):
    """Grade is outside 1..13."""
    code: str = "SO_INVALID_GRADE"


@dataclass
class UnknownCategoryError(SessionOrderError):
    """Category id is not one of the fixed categories."""
    code: str = "SO_UNKNOWN_CATEGORY"


# =============================================================================
# Session / Record Errors
# =============================================================================

@dataclass
class NoActiveSessionError(SessionOrderError):
    """Operation requires an active session."""
    code: str = "SO_NO_ACTIVE_SESSION"


@dataclass
class SessionNotFoundError(SessionOrderError):
    """Referenced session does not exist."""
    code: str = "SO_SESSION_NOT_FOUND"


@dataclass
class StudentNotFoundError(SessionOrderError):
    """Referenced student does not exist."""
    code: str = "SO_STUDENT_NOT_FOUND"


@dataclass
class IncidentNotFoundError(SessionOrderError):
    """Referenced incident does not exist."""
    code: str = "SO_INCIDENT_NOT_FOUND"


@dataclass
class IncidentAlreadyResolvedError(SessionOrderError):
    """Incident has already been resolved."""
    code: str = "SO_INCIDENT_RESOLVED"


# =============================================================================
# Advisory Errors
# =============================================================================

@dataclass
class AdvisoryError(SessionOrderError):
    """Advisory collaborator call failed."""
    code: str = "SO_ADVISORY_ERROR"


@dataclass
class AdvisoryUnavailableError(AdvisoryError):
    """Advisory integration is disabled or has no valid endpoint."""
    code: str = "SO_ADVISORY_UNAVAILABLE"


@dataclass
class AdvisoryTimeoutError(AdvisoryError):
    """Advisory call exceeded the client-side timeout."""
    code: str = "SO_ADVISORY_TIMEOUT"


@dataclass
class AdvisoryHTTPError(AdvisoryError):
    """Advisory call returned a non-2xx status or failed in transport."""
    code: str = "SO_ADVISORY_HTTP_ERROR"


@dataclass
class AdvisoryResponseError(AdvisoryError):
    """Advisory response body was not a JSON object."""
    code: str = "SO_ADVISORY_BAD_RESPONSE"
