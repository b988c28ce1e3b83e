"""Session endpoints. There is at most one active session."""

from typing import Optional

from fastapi import APIRouter, HTTPException

from sessionorder.api.schemas.requests import (
    DeescalationRequest,
    IncidentCreateRequest,
    SessionStartRequest,
)
from sessionorder.api.schemas.responses import ActiveSessionResponse
from sessionorder.engine import SessionManager
from sessionorder.exceptions import NoActiveSessionError

router = APIRouter(prefix="/sessions", tags=["Sessions"])

# Shared manager (set by main.py)
manager: SessionManager = None


def set_manager(m: SessionManager):
    global manager
    manager = m


def _active() -> ActiveSessionResponse:
    if not manager.has_session:
        raise NoActiveSessionError(message="No active session")
    return ActiveSessionResponse(
        session=manager.session.to_dict(),
        student=manager.student.to_dict(),
        elapsed_seconds=manager.tick(),
        timer_running=manager.timer.running,
    )


@router.post("", status_code=201, response_model=ActiveSessionResponse)
async def start_session(request: SessionStartRequest):
    """Start a session for a student. Ends any live session first."""
    manager.start_session(request.student_id, request.mode, request.goals)
    return _active()


@router.get("/active", response_model=ActiveSessionResponse)
async def get_active_session():
    return _active()


@router.post("/active/pause", response_model=ActiveSessionResponse)
async def pause_session():
    manager.pause()
    return _active()


@router.post("/active/resume", response_model=ActiveSessionResponse)
async def resume_session():
    manager.resume()
    return _active()


@router.post("/active/end")
async def end_session():
    """End the live session and return its final record."""
    if not manager.has_session:
        raise NoActiveSessionError(message="No active session")
    return manager.end_session().to_dict()


@router.post("/active/incidents", status_code=201)
async def log_incident(request: IncidentCreateRequest):
    """
    Log an incident and get a recommendation.

    Returns the incident, the recommendation (advisory or deterministic),
    and the updated session status.
    """
    outcome = await manager.log_and_analyze(
        request.category,
        request.severity,
        request.description,
        request.context or "",
    )
    return outcome.to_dict()


@router.get("/active/incidents")
async def list_incidents():
    return [i.to_dict() for i in manager.session_incidents()]


@router.get("/active/status")
async def get_status():
    """Stop / warning / countdown status for the live session."""
    return manager.session_status().to_dict()


@router.get("/active/summary")
async def get_summary():
    return manager.session_summary()


@router.get("/active/next")
async def next_recommendation(category: Optional[str] = None):
    """Next ladder step if behavior recurs."""
    return manager.next_recommendation(category)


@router.post("/active/deescalation")
async def apply_deescalation(request: DeescalationRequest):
    try:
        entry = manager.apply_deescalation(request.action, request.duration)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown de-escalation action: {request.action}")
    return entry.to_dict()


@router.post("/active/break/end", response_model=ActiveSessionResponse)
async def end_break():
    manager.end_break()
    return _active()
