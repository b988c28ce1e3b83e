"""
SessionOrder Input Validation

Checks operator input before anything is created. Every problem is
reported, not just the first, so the form can show them all at once.

Messages are stable strings; callers and tests match on them.
"""
from __future__ import annotations

from typing import Any, Optional

from ..exceptions import IncidentValidationError, StudentValidationError
from ..models import CategoryId
from ..packs.schema import MAX_GRADE, MIN_GRADE


MAX_DESCRIPTION_LENGTH = 200
MAX_CONTEXT_LENGTH = 500
MAX_STUDENT_NAME_LENGTH = 100
MAX_NOTES_LENGTH = 500
MIN_REPORTED_SEVERITY = 1
MAX_REPORTED_SEVERITY = 4


def _as_int(value: Any) -> Optional[int]:
    """Integer value of an int or a numeric string, else None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def validate_incident_input(
    category: Any,
    severity: Any,
    description: Any,
    context: Any = "",
) -> list[str]:
    errors: list[str] = []

    if not category:
        errors.append("Category is required")
    elif CategoryId.parse(category) is None:
        errors.append("Invalid category")

    if severity is None or severity == "" or severity == 0:
        errors.append("Severity is required")
    else:
        level = _as_int(severity)
        if level is None or not MIN_REPORTED_SEVERITY <= level <= MAX_REPORTED_SEVERITY:
            errors.append(f"Severity must be between {MIN_REPORTED_SEVERITY} and {MAX_REPORTED_SEVERITY}")

    if not description or not isinstance(description, str) or not description.strip():
        errors.append("Description is required")
    elif len(description) > MAX_DESCRIPTION_LENGTH:
        errors.append(f"Description must be {MAX_DESCRIPTION_LENGTH} characters or less")

    if context and len(str(context)) > MAX_CONTEXT_LENGTH:
        errors.append(f"Context must be {MAX_CONTEXT_LENGTH} characters or less")

    return errors


def validate_student_input(name: Any, grade: Any, notes: Any = "") -> list[str]:
    errors: list[str] = []

    if not name or not isinstance(name, str) or not name.strip():
        errors.append("Student name is required")
    elif len(name) > MAX_STUDENT_NAME_LENGTH:
        errors.append(f"Student name must be {MAX_STUDENT_NAME_LENGTH} characters or less")

    if grade is None or grade == "" or grade == 0:
        errors.append("Grade is required")
    else:
        value = _as_int(grade)
        if value is None or not MIN_GRADE <= value <= MAX_GRADE:
            errors.append(f"Grade must be between {MIN_GRADE} and {MAX_GRADE}")

    if notes and len(str(notes)) > MAX_NOTES_LENGTH:
        errors.append(f"Notes must be {MAX_NOTES_LENGTH} characters or less")

    return errors


def require_valid_incident(
    category: Any,
    severity: Any,
    description: Any,
    context: Any = "",
    session_id: Optional[str] = None,
) -> tuple[CategoryId, int]:
    """
    Validate incident input and return the parsed (category, severity).

    Raises:
        IncidentValidationError: With every message in details["errors"]
    """
    errors = validate_incident_input(category, severity, description, context)
    if errors:
        raise IncidentValidationError(
            message=", ".join(errors),
            details={"errors": errors},
            session_id=session_id,
        )
    return CategoryId(category), _as_int(severity)


def require_valid_student(name: Any, grade: Any, notes: Any = "") -> int:
    """
    Validate student input and return the parsed grade.

    Raises:
        StudentValidationError: With every message in details["errors"]
    """
    errors = validate_student_input(name, grade, notes)
    if errors:
        raise StudentValidationError(
            message=", ".join(errors),
            details={"errors": errors},
        )
    return _as_int(grade)
