"""Response schemas for the API."""

from typing import Any, Optional

from pydantic import BaseModel


class HealthResponse(BaseModel):
    """Liveness and configuration summary."""
    healthy: bool
    version: str
    methodology_version: int
    methodology_hash: str
    advisory_enabled: bool
    active_session: bool


class ErrorResponse(BaseModel):
    """Body returned for engine errors."""
    code: str
    message: str
    details: Optional[dict[str, Any]] = None
    session_id: Optional[str] = None


class ActiveSessionResponse(BaseModel):
    """The live session with its student and timer."""
    session: dict[str, Any]
    student: dict[str, Any]
    elapsed_seconds: int
    timer_running: bool
