"""Incident endpoints."""

from fastapi import APIRouter

from sessionorder.api.schemas.requests import IncidentResolveRequest
from sessionorder.engine import SessionManager

router = APIRouter(prefix="/incidents", tags=["Incidents"])

# Shared manager (set by main.py)
manager: SessionManager = None


def set_manager(m: SessionManager):
    global manager
    manager = m


@router.get("/{incident_id}")
async def get_incident(incident_id: str):
    return manager.get_incident(incident_id).to_dict()


@router.post("/{incident_id}/resolve")
async def resolve_incident(incident_id: str, request: IncidentResolveRequest):
    """Resolve an incident. Resolving twice returns 409."""
    incident = manager.resolve_incident(incident_id, request.outcome, request.tutor_decision)
    return incident.to_dict()
