"""Student endpoints."""

from fastapi import APIRouter

from sessionorder.api.schemas.requests import StudentCreateRequest
from sessionorder.engine import SessionManager

router = APIRouter(prefix="/students", tags=["Students"])

# Shared manager (set by main.py)
manager: SessionManager = None


def set_manager(m: SessionManager):
    global manager
    manager = m


@router.post("", status_code=201)
async def register_student(request: StudentCreateRequest):
    """Register a student. Invalid input returns 400 with every problem listed."""
    student = manager.register_student(request.name, request.grade, request.notes or "")
    return student.to_dict()


@router.get("")
async def list_students():
    return [s.to_dict() for s in manager.list_students()]


@router.get("/{student_id}")
async def get_student(student_id: str):
    return manager.get_student(student_id).to_dict()


@router.get("/{student_id}/patterns")
async def student_patterns(student_id: str):
    """Incident patterns across all of a student's sessions."""
    manager.get_student(student_id)
    return manager.patterns(student_id).to_dict()
