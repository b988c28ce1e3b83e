"""
SessionOrder Advisory Client

Talks to the external advisory service and turns whatever comes back into
a Recommendation the tutor can use.

The advisory service is optional and untrusted:
- One POST per incident, bounded by a client-side timeout, no retries
- Transport failures, timeouts, non-2xx responses and malformed JSON all
  degrade to the deterministic recommendation with ai_error set
- A response that fails validation is rejected wholesale and the
  deterministic recommendation carries the validation errors in ai_errors
- AdvisoryService.analyze never raises for advisory problems

Usage:
    service = AdvisoryService(methodology, settings=Settings.from_env())
    packet = await service.analyze(incident, student, session, prior_state)
    packet.source   # RecommendationSource.AI or DETERMINISTIC
"""
from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

import httpx

from ..config import DEFAULT_ADVISORY_TIMEOUT, Settings, clamp_timeout, validate_endpoint
from ..exceptions import (
    AdvisoryError,
    AdvisoryHTTPError,
    AdvisoryResponseError,
    AdvisoryTimeoutError,
    AdvisoryUnavailableError,
)
from ..models import Incident, Recommendation, Session, Student
from .advisory_validator import validate_advisory_response
from .methodology import Methodology
from .recommender import DeterministicRecommender, select_tone

logger = logging.getLogger(__name__)

ANALYZE_PATH = "/analyze"
HEALTH_PATH = "/health"

# Upper bound on how much of an error body is kept in an error message
ERROR_BODY_LIMIT = 200


# =============================================================================
# Request Contract
# =============================================================================

def build_request_payload(
    methodology: Methodology,
    incident: Incident,
    student: Student,
    session: Session,
) -> dict[str, Any]:
    """
    Build the JSON body for POST /analyze.

    Only the grade, never the student's name or notes, leaves the process.
    """
    band = methodology.band_for_grade(student.grade)
    category = methodology.category(incident.category)

    return {
        "student": {
            "grade": student.grade,
            "band": band.id.value,
            "bandName": band.name,
        },
        "session": {
            "mode": session.mode.value,
            "timeIntoSession": incident.time_into_session,
            "disciplineState": dict(session.discipline_state),
        },
        "incident": {
            "category": incident.category.value,
            "categoryLabel": category.label if category else incident.category.value,
            "severityGuess": incident.severity,
            "description": incident.description,
            "context": incident.context or "",
        },
        "methodology": {
            "maxLadderStep": band.max_ladder_step,
            "parentContactThreshold": band.parent_contact_threshold,
            "allowedConsequences": list(category.consequences.allowed) if category else [],
            "notAllowedConsequences": list(category.consequences.not_allowed) if category else [],
            "ladderSummary": methodology.ladder_summary(incident.category, band.id),
        },
    }


# =============================================================================
# HTTP Client
# =============================================================================

class AdvisoryClient:
    """
    Thin async HTTP client for the advisory service.

    Raises the Advisory* exceptions; callers decide how to degrade.

    Args:
        endpoint: Service base URL, https or localhost
        timeout: Seconds per request, clamped to 1..20
        transport: Optional httpx transport (tests pass httpx.MockTransport)
    """

    def __init__(
        self,
        endpoint: str,
        timeout: float = DEFAULT_ADVISORY_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not validate_endpoint(endpoint):
            raise AdvisoryUnavailableError(
                message="Invalid endpoint URL",
                details={"endpoint": endpoint},
            )
        self.endpoint = endpoint.rstrip("/")
        self.timeout = clamp_timeout(timeout)
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.endpoint,
            timeout=self.timeout,
            transport=self._transport,
            headers={"Content-Type": "application/json"},
        )

    async def analyze(self, payload: Mapping[str, Any]) -> Any:
        """
        POST the payload to /analyze and return the decoded JSON body.

        Raises:
            AdvisoryTimeoutError: The request exceeded the timeout
            AdvisoryHTTPError: Transport failure or non-2xx status
            AdvisoryResponseError: Body was not valid JSON
        """
        try:
            async with self._client() as client:
                response = await client.post(ANALYZE_PATH, json=dict(payload))
        except httpx.TimeoutException as e:
            raise AdvisoryTimeoutError(
                message="Request timed out",
                details={"timeout": self.timeout, "error": str(e)},
            )
        except httpx.HTTPError as e:
            raise AdvisoryHTTPError(
                message=f"Advisory request failed: {e}",
                details={"endpoint": self.endpoint},
            )

        if not response.is_success:
            raise AdvisoryHTTPError(
                message=f"Advisory service error {response.status_code}: "
                        f"{response.text[:ERROR_BODY_LIMIT]}",
                details={"status_code": response.status_code},
            )

        try:
            return response.json()
        except (ValueError, RecursionError) as e:
            raise AdvisoryResponseError(
                message="Advisory response was not valid JSON",
                details={"error": str(e)},
            )

    async def test_connection(self) -> dict[str, Any]:
        """GET /health and summarize the result as {success, message}."""
        try:
            async with self._client() as client:
                response = await client.get(HEALTH_PATH)
        except httpx.HTTPError as e:
            return {"success": False, "message": f"Connection failed: {e}"}

        if not response.is_success:
            return {
                "success": False,
                "message": f"Advisory service responded with status {response.status_code}",
            }

        try:
            data = response.json()
        except ValueError:
            data = {}
        version = data.get("version") if isinstance(data, dict) else None
        return {
            "success": True,
            "message": f"Connected successfully. Service version: {version or 'unknown'}",
        }


async def check_endpoint(
    endpoint: str,
    timeout: float = DEFAULT_ADVISORY_TIMEOUT,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> dict[str, Any]:
    """Check an endpoint before saving it. Never raises."""
    if not validate_endpoint(endpoint):
        return {"success": False, "message": "Invalid endpoint URL"}
    return await AdvisoryClient(endpoint, timeout, transport).test_connection()


# =============================================================================
# Advisory Service
# =============================================================================

class AdvisoryService:
    """
    Produces exactly one Recommendation per incident.

    The deterministic recommendation is always built first. An advisory
    packet replaces it only if the call succeeds and the response passes
    validation.
    """

    def __init__(
        self,
        methodology: Methodology,
        settings: Optional[Settings] = None,
        client: Optional[AdvisoryClient] = None,
    ):
        self.methodology = methodology
        self.recommender = DeterministicRecommender(methodology)
        if client is None and settings is not None and settings.advisory_active:
            client = AdvisoryClient(settings.advisory_endpoint, settings.advisory_timeout)
        self.client = client

    @property
    def enabled(self) -> bool:
        return self.client is not None

    def fallback(
        self,
        incident: Incident,
        student: Student,
        prior_state: Mapping[str, int],
    ) -> Recommendation:
        band = self.methodology.band_for_grade(student.grade)
        return self.recommender.recommend(
            incident.category,
            severity=incident.severity,
            discipline_state=prior_state,
            band_id=band.id,
        )

    async def analyze(
        self,
        incident: Incident,
        student: Student,
        session: Session,
        prior_state: Mapping[str, int],
    ) -> Recommendation:
        """
        Recommend a response to an incident.

        Args:
            incident: The persisted incident
            student: Student the session belongs to
            session: Session with counters including this incident
            prior_state: Counters as they were before this incident
        """
        recommendation = self.fallback(incident, student, prior_state)
        log_extra = {"session_id": session.id, "incident_id": incident.id}

        if self.client is None:
            logger.debug("Advisory disabled, using deterministic recommendation", extra=log_extra)
            return recommendation

        try:
            return await self._enrich(recommendation, incident, student, session, prior_state)
        except Exception as e:
            logger.exception(
                "Advisory enrichment failed unexpectedly, using deterministic recommendation",
                extra={**log_extra, "source": "deterministic"},
            )
            recommendation.ai_error = f"Unexpected advisory failure: {type(e).__name__}"
            return recommendation

    async def _enrich(
        self,
        recommendation: Recommendation,
        incident: Incident,
        student: Student,
        session: Session,
        prior_state: Mapping[str, int],
    ) -> Recommendation:
        """Replace the fallback with a validated advisory packet, or annotate why not."""
        log_extra = {"session_id": session.id, "incident_id": incident.id}
        payload = build_request_payload(self.methodology, incident, student, session)
        try:
            body = await self.client.analyze(payload)
        except AdvisoryError as e:
            logger.warning(
                "Advisory call failed, using deterministic recommendation: %s", e.message,
                extra={**log_extra, "code": e.code, "source": "deterministic"},
            )
            recommendation.ai_error = e.message
            return recommendation

        result = validate_advisory_response(body)
        if not result.valid:
            logger.warning(
                "Advisory response rejected with %d validation errors", len(result.errors),
                extra={**log_extra, "source": "deterministic"},
            )
            recommendation.ai_errors = list(result.errors)
            return recommendation

        packet = Recommendation.from_advisory(result.sanitized)
        count = prior_state.get(incident.category.value, 0)
        packet.recommended_tone = select_tone(max(packet.severity, incident.severity), count)
        packet.allowed_consequences = list(recommendation.allowed_consequences)
        packet.blocked_consequences = list(recommendation.blocked_consequences)
        logger.info("Advisory recommendation accepted", extra={**log_extra, "source": "ai"})
        return packet
