"""
SessionOrder API

REST surface over the session manager for a single local operator.

Endpoints:
    GET  /health                          - Liveness and configuration summary
    GET  /methodology                     - Active methodology
    GET  /methodology/rules/{band}        - Universal rules for a band
    POST /students                        - Register a student
    POST /sessions                        - Start a session
    GET  /sessions/active                 - Live session and timer
    POST /sessions/active/pause|resume|end
    POST /sessions/active/incidents       - Log and analyze an incident
    GET  /sessions/active/status          - Stop / warning / countdown
    GET  /incidents/{id}                  - Incident record
    POST /incidents/{id}/resolve          - Resolve an incident
"""

import json
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

import sessionorder
from sessionorder.api.routes import incidents, methodology, sessions, students
from sessionorder.api.schemas.responses import ErrorResponse, HealthResponse
from sessionorder.config import Settings
from sessionorder.engine import AdvisoryService, Methodology, SessionManager
from sessionorder.exceptions import (
    IncidentAlreadyResolvedError,
    IncidentNotFoundError,
    IncidentValidationError,
    InvalidGradeError,
    MethodologyLoadError,
    MethodologyValidationError,
    MethodologyVersionMismatch,
    NoActiveSessionError,
    SessionNotFoundError,
    SessionOrderError,
    StudentNotFoundError,
    StudentValidationError,
    UnknownCategoryError,
)
from sessionorder.packs import load_methodology_or_default
from sessionorder.storage import InMemoryRepository, Repository


# =============================================================================
# Logging Setup (Structured JSON)
# =============================================================================

class JSONFormatter(logging.Formatter):
    """JSON log formatter for structured logging."""

    EXTRA_FIELDS = ("session_id", "incident_id", "student_id", "source", "code", "request_id")

    def format(self, record):
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in self.EXTRA_FIELDS:
            if hasattr(record, name):
                log_entry[name] = getattr(record, name)
        return json.dumps(log_entry)


def configure_logging(level: str = "INFO") -> logging.Logger:
    """Install the JSON formatter on the sessionorder logger once."""
    logger = logging.getLogger("sessionorder")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    if not any(isinstance(h.formatter, JSONFormatter) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(JSONFormatter())
        logger.addHandler(handler)
    return logger


# =============================================================================
# Error Mapping
# =============================================================================

STATUS_BY_ERROR: tuple[tuple[type, int], ...] = (
    (IncidentValidationError, 400),
    (StudentValidationError, 400),
    (InvalidGradeError, 400),
    (UnknownCategoryError, 400),
    (MethodologyValidationError, 400),
    (MethodologyVersionMismatch, 400),
    (MethodologyLoadError, 400),
    (NoActiveSessionError, 404),
    (SessionNotFoundError, 404),
    (StudentNotFoundError, 404),
    (IncidentNotFoundError, 404),
    (IncidentAlreadyResolvedError, 409),
)


ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid input"},
    404: {"model": ErrorResponse, "description": "Not found or no active session"},
    409: {"model": ErrorResponse, "description": "Incident already resolved"},
}


def status_for(error: SessionOrderError) -> int:
    for error_type, status in STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return status
    return 500


# =============================================================================
# Application
# =============================================================================

def create_app(
    settings: Optional[Settings] = None,
    repository: Optional[Repository] = None,
    advisory: Optional[AdvisoryService] = None,
) -> FastAPI:
    """
    Build the API.

    Args:
        settings: Runtime settings; read from the environment if omitted
        repository: Record storage; a fresh in-memory store if omitted
        advisory: Recommendation source; built from settings if omitted
    """
    settings = settings or Settings.from_env()
    logger = configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Load the methodology and wire the session manager on startup."""
        repo = repository if repository is not None else InMemoryRepository()
        active = Methodology(load_methodology_or_default(repo, settings.methodology_path))
        service = advisory or AdvisoryService(active, settings=settings)
        manager = SessionManager(repo, active, advisory=service)
        restored = manager.restore_active_session()

        logger.info(
            "SessionOrder API ready",
            extra={"source": "ai" if service.enabled else "deterministic"},
        )
        if restored is not None:
            logger.info("Restored live session", extra={"session_id": restored.id})

        app.state.manager = manager
        methodology.set_methodology(active)
        students.set_manager(manager)
        sessions.set_manager(manager)
        incidents.set_manager(manager)

        yield

        logger.info("Shutting down")

    app = FastAPI(
        title="SessionOrder API",
        description="""
**Incident escalation and response guidance for tutoring sessions.**

SessionOrder turns a logged behavior incident into an age-appropriate,
policy-compliant recommendation. Advisory output, when enabled, is
validated and sanitized before it is stored or shown.

## Quick Start

1. `POST /students` - Register a student
2. `POST /sessions` - Start a session
3. `POST /sessions/active/incidents` - Log an incident
4. `GET /sessions/active/status` - Check stop / warning status
        """,
        version=sessionorder.__version__,
        lifespan=lifespan,
    )

    @app.exception_handler(SessionOrderError)
    async def handle_engine_error(request: Request, exc: SessionOrderError):
        status = status_for(exc)
        if status >= 500:
            logger.error("Unhandled engine error: %s", exc, extra={"code": exc.code})
        return JSONResponse(status_code=status, content=exc.to_dict())

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health():
        """Health check endpoint."""
        manager: SessionManager = app.state.manager
        return HealthResponse(
            healthy=True,
            version=sessionorder.__version__,
            methodology_version=manager.methodology.config.version,
            methodology_hash=manager.methodology.content_hash,
            advisory_enabled=manager.advisory.enabled,
            active_session=manager.has_session,
        )

    for router in (methodology.router, students.router, sessions.router, incidents.router):
        app.include_router(router, responses=ERROR_RESPONSES)

    return app


app = create_app()


def main() -> None:
    import uvicorn
    uvicorn.run(app, host="127.0.0.1", port=8000)


if __name__ == "__main__":
    main()
