"""
SessionOrder Engine

Core services for incident escalation and response validation.

Services:
- Methodology: Read-only lookups over the loaded configuration
- SeverityResolver: Grade-aware severity with escalation factors
- DeterministicRecommender: Local, policy-compliant recommendations
- evaluate_session_status: Stop / warning / countdown decision surface
- validate_advisory_response: Contract check and sanitization of advisory output
- AdvisoryService: Advisory call with deterministic fallback
- SessionTimer: Drift-free persisted session timer
- SessionManager: The operator-facing session surface
- analyze_patterns: Cross-incident insights

Usage:
    from sessionorder.engine import (
        Methodology,
        SessionManager,
        AdvisoryService,
    )
"""
from __future__ import annotations

from .advisory_client import (
    AdvisoryClient,
    AdvisoryService,
    build_request_payload,
    check_endpoint,
)
from .advisory_validator import (
    ADVISORY_RESPONSE_SCHEMA,
    ValidationResult,
    escape_html,
    sanitize_value,
    validate_advisory_response,
    validate_type,
    validate_value,
)
from .events import ALL_EVENTS, EventBus, EventRecorder
from .input_validator import (
    require_valid_incident,
    require_valid_student,
    validate_incident_input,
    validate_student_input,
)
from .methodology import Methodology
from .pattern_analyzer import PatternReport, analyze_patterns
from .recommender import DeterministicRecommender, select_tone
from .session_manager import IncidentOutcome, SessionManager, format_duration
from .session_status import (
    consequence_progress,
    evaluate_session_status,
    grade_approach_for,
)
from .severity_resolver import (
    BASE_SEVERITY_TABLE,
    EscalationFactor,
    SeverityResolution,
    SeverityResolver,
    base_severity,
    detect_factors,
    escalate,
)
from .timer import SessionTimer, compute_elapsed, timer_key


__all__ = [
    # Advisory
    "AdvisoryClient",
    "AdvisoryService",
    "build_request_payload",
    "check_endpoint",
    "ADVISORY_RESPONSE_SCHEMA",
    "ValidationResult",
    "escape_html",
    "sanitize_value",
    "validate_advisory_response",
    "validate_type",
    "validate_value",
    # Events
    "ALL_EVENTS",
    "EventBus",
    "EventRecorder",
    # Input validation
    "require_valid_incident",
    "require_valid_student",
    "validate_incident_input",
    "validate_student_input",
    # Methodology
    "Methodology",
    # Patterns
    "PatternReport",
    "analyze_patterns",
    # Recommendation
    "DeterministicRecommender",
    "select_tone",
    # Session
    "IncidentOutcome",
    "SessionManager",
    "format_duration",
    "consequence_progress",
    "evaluate_session_status",
    "grade_approach_for",
    # Severity
    "BASE_SEVERITY_TABLE",
    "EscalationFactor",
    "SeverityResolution",
    "SeverityResolver",
    "base_severity",
    "detect_factors",
    "escalate",
    # Timer
    "SessionTimer",
    "compute_elapsed",
    "timer_key",
]
