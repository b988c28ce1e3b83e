"""
Tests for the REST API.

Each test gets a fresh app over its own in-memory repository, with the
advisory service disabled.
"""
import pytest
from fastapi.testclient import TestClient

from sessionorder.api.main import create_app, status_for
from sessionorder.config import Settings
from sessionorder.exceptions import (
    IncidentAlreadyResolvedError,
    NoActiveSessionError,
    SessionOrderError,
    StudentValidationError,
)
from sessionorder.models import RecordKind
from sessionorder.storage import InMemoryRepository


@pytest.fixture
def repository():
    return InMemoryRepository()


@pytest.fixture
def client(repository):
    app = create_app(settings=Settings(), repository=repository)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def student_id(client):
    response = client.post("/students", json={"name": "Sam", "grade": 4})
    return response.json()["id"]


@pytest.fixture
def live(client, student_id):
    response = client.post("/sessions", json={"student_id": student_id, "mode": "online"})
    assert response.status_code == 201
    return response.json()


def log_incident(client, category="INTERRUPTING", severity=1, description="Talked over"):
    return client.post(
        "/sessions/active/incidents",
        json={"category": category, "severity": severity, "description": description},
    )


# =============================================================================
# Health and Methodology
# =============================================================================

class TestHealth:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["healthy"] is True
        assert data["methodology_version"] == 1
        assert len(data["methodology_hash"]) == 64
        assert data["advisory_enabled"] is False
        assert data["active_session"] is False


class TestMethodologyEndpoints:

    def test_methodology(self, client):
        data = client.get("/methodology").json()
        assert [b["id"] for b in data["gradeBands"]] == ["A", "B", "C", "D", "E"]
        assert len(data["categories"]) == 8

    def test_rules_for_band(self, client):
        response = client.get("/methodology/rules/a")
        assert response.status_code == 200
        assert len(response.json()) > 0

    def test_unknown_band(self, client):
        assert client.get("/methodology/rules/Z").status_code == 404

    def test_category_buttons(self, client):
        buttons = client.get("/methodology/categories", params={"include_other": False}).json()
        assert "OTHER" not in [b["key"] for b in buttons]
        assert len(buttons) == 7


# =============================================================================
# Students
# =============================================================================

class TestStudentEndpoints:

    def test_register(self, client):
        response = client.post("/students", json={"name": "Riley", "grade": "7"})
        assert response.status_code == 201
        assert response.json()["grade"] == 7

    def test_register_invalid(self, client):
        response = client.post("/students", json={"name": "", "grade": 20})
        assert response.status_code == 400
        body = response.json()
        assert body["code"] == "SO_STUDENT_INVALID"
        assert body["details"]["errors"] == [
            "Student name is required",
            "Grade must be between 1 and 13",
        ]

    def test_get_missing(self, client):
        assert client.get("/students/nope").status_code == 404

    def test_patterns_without_incidents(self, client, student_id):
        data = client.get(f"/students/{student_id}/patterns").json()
        assert data == {"hasPatterns": False, "message": "Not enough data for pattern analysis"}


# =============================================================================
# Sessions and Incidents
# =============================================================================

class TestSessionEndpoints:

    def test_no_active_session(self, client):
        response = client.get("/sessions/active")
        assert response.status_code == 404
        assert response.json()["message"] == "No active session"

    def test_start(self, client, live):
        assert live["session"]["status"] == "active"
        assert live["session"]["mode"] == "online"
        assert live["timer_running"] is True
        assert client.get("/health").json()["active_session"] is True

    def test_start_unknown_student(self, client):
        response = client.post("/sessions", json={"student_id": "nope"})
        assert response.status_code == 404

    def test_pause_and_resume(self, client, live):
        paused = client.post("/sessions/active/pause").json()
        assert paused["timer_running"] is False
        assert paused["session"]["status"] == "paused"
        resumed = client.post("/sessions/active/resume").json()
        assert resumed["timer_running"] is True

    def test_end(self, client, live):
        response = client.post("/sessions/active/end")
        assert response.json()["status"] == "completed"
        assert client.post("/sessions/active/end").status_code == 404

    def test_unknown_deescalation(self, client, live):
        response = client.post("/sessions/active/deescalation", json={"action": "detention"})
        assert response.status_code == 400

    def test_reset_break(self, client, live):
        entry = client.post("/sessions/active/deescalation", json={"action": "reset_break"}).json()
        assert entry["duration"] == 60
        assert client.get("/sessions/active").json()["timer_running"] is False


class TestIncidentEndpoints:

    def test_log_incident(self, client, live):
        response = log_incident(client)
        assert response.status_code == 201
        data = response.json()
        assert data["incident"]["category"] == "INTERRUPTING"
        assert data["analysis"]["source"] == "deterministic"
        assert data["status"]["shouldStop"] is False

    def test_log_invalid_incident(self, client, live, repository):
        response = log_incident(client, category="BULLYING", severity=9, description="")
        assert response.status_code == 400
        assert response.json()["details"]["errors"] == [
            "Invalid category",
            "Severity must be between 1 and 4",
            "Description is required",
        ]
        assert repository.all(RecordKind.INCIDENT) == []

    def test_log_without_session(self, client):
        assert log_incident(client).status_code == 404

    def test_two_safety_incidents_stop(self, client, live):
        log_incident(client, "SAFETY_BOUNDARY", 3, "Threw a pencil")
        data = log_incident(client, "SAFETY_BOUNDARY", 3, "Threw another").json()
        assert data["status"]["shouldStop"] is True
        assert client.get("/sessions/active/status").json()["shouldStop"] is True

    def test_resolve_twice_conflicts(self, client, live):
        incident_id = log_incident(client).json()["incident"]["id"]

        first = client.post(f"/incidents/{incident_id}/resolve", json={"outcome": "Apologized"})
        assert first.status_code == 200
        assert first.json()["resolved"] is True

        second = client.post(f"/incidents/{incident_id}/resolve", json={"outcome": "Again"})
        assert second.status_code == 409
        assert second.json()["code"] == "SO_INCIDENT_RESOLVED"

    def test_get_missing_incident(self, client):
        assert client.get("/incidents/nope").status_code == 404

    def test_next_with_unknown_category(self, client, live):
        response = client.get("/sessions/active/next", params={"category": "BULLYING"})
        assert response.status_code == 400

    def test_summary(self, client, live):
        log_incident(client)
        summary = client.get("/sessions/active/summary").json()
        assert summary["totalIncidents"] == 1
        assert summary["gradeBand"] == "B"


# =============================================================================
# Restore and Error Mapping
# =============================================================================

class TestRestoreOnStartup:

    def test_live_session_restored(self, repository, student_id, live):
        app = create_app(settings=Settings(), repository=repository)
        with TestClient(app) as second:
            data = second.get("/sessions/active").json()
        assert data["session"]["id"] == live["session"]["id"]


class TestStatusMapping:

    @pytest.mark.parametrize("error,status", [
        (StudentValidationError(message="x"), 400),
        (NoActiveSessionError(message="x"), 404),
        (IncidentAlreadyResolvedError(message="x"), 409),
        (SessionOrderError(message="x"), 500),
    ])
    def test_status_for(self, error, status):
        assert status_for(error) == status
