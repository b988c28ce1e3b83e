"""
Tests for the in-memory repository.

Tests cover:
- CRUD with copy-in / copy-out isolation
- Secondary index lookups and index maintenance on overwrite / delete
- Range queries sorted by the indexed field
"""
import pytest

from sessionorder.models import RecordKind
from sessionorder.storage import InMemoryRepository, Repository


def incident_record(key, session_id="SES-001", category="OTHER", timestamp=0, resolved=False):
    return {
        "id": key,
        "sessionId": session_id,
        "category": category,
        "severity": 1,
        "timestamp": timestamp,
        "resolved": resolved,
    }


# =============================================================================
# CRUD
# =============================================================================

class TestCrud:
    """Tests for put / get / delete / all."""

    def test_satisfies_protocol(self, repo):
        assert isinstance(repo, Repository)

    def test_put_and_get(self, repo):
        repo.put(RecordKind.STUDENT, "STU-1", {"id": "STU-1", "name": "Sam", "grade": 4})
        assert repo.get(RecordKind.STUDENT, "STU-1")["name"] == "Sam"

    def test_get_missing(self, repo):
        assert repo.get(RecordKind.SESSION, "nope") is None

    def test_kinds_are_separate(self, repo):
        repo.put(RecordKind.CONFIG, "same", {"value": 1})
        assert repo.get(RecordKind.STUDENT, "same") is None

    def test_stored_copy_isolated_from_caller(self, repo):
        record = {"id": "STU-1", "name": "Sam", "grade": 4, "tags": ["a"]}
        repo.put(RecordKind.STUDENT, "STU-1", record)
        record["tags"].append("b")

        fetched = repo.get(RecordKind.STUDENT, "STU-1")
        fetched["name"] = "Changed"

        assert repo.get(RecordKind.STUDENT, "STU-1") == {
            "id": "STU-1", "name": "Sam", "grade": 4, "tags": ["a"],
        }

    def test_delete(self, repo):
        repo.put(RecordKind.CONFIG, "k", {"value": 1})
        assert repo.delete(RecordKind.CONFIG, "k") is True
        assert repo.get(RecordKind.CONFIG, "k") is None
        assert repo.delete(RecordKind.CONFIG, "k") is False

    def test_all(self, repo):
        repo.put(RecordKind.INCIDENT, "I1", incident_record("I1"))
        repo.put(RecordKind.INCIDENT, "I2", incident_record("I2"))
        assert sorted(r["id"] for r in repo.all(RecordKind.INCIDENT)) == ["I1", "I2"]


# =============================================================================
# Indexes
# =============================================================================

class TestIndexes:
    """Tests for secondary index lookups."""

    def test_find_by(self, repo):
        repo.put(RecordKind.INCIDENT, "I1", incident_record("I1", session_id="S1"))
        repo.put(RecordKind.INCIDENT, "I2", incident_record("I2", session_id="S2"))
        repo.put(RecordKind.INCIDENT, "I3", incident_record("I3", session_id="S1"))

        found = repo.find_by(RecordKind.INCIDENT, "sessionId", "S1")
        assert sorted(r["id"] for r in found) == ["I1", "I3"]

    def test_find_by_no_match(self, repo):
        assert repo.find_by(RecordKind.SESSION, "status", "active") == []

    def test_overwrite_moves_index_entry(self, repo):
        repo.put(RecordKind.SESSION, "S1", {"id": "S1", "status": "active"})
        repo.put(RecordKind.SESSION, "S1", {"id": "S1", "status": "completed"})

        assert repo.find_by(RecordKind.SESSION, "status", "active") == []
        assert len(repo.find_by(RecordKind.SESSION, "status", "completed")) == 1

    def test_delete_removes_index_entry(self, repo):
        repo.put(RecordKind.INCIDENT, "I1", incident_record("I1", category="TECH_MISUSE"))
        repo.delete(RecordKind.INCIDENT, "I1")
        assert repo.find_by(RecordKind.INCIDENT, "category", "TECH_MISUSE") == []

    def test_boolean_index(self, repo):
        repo.put(RecordKind.INCIDENT, "I1", incident_record("I1", resolved=True))
        repo.put(RecordKind.INCIDENT, "I2", incident_record("I2"))
        found = repo.find_by(RecordKind.INCIDENT, "resolved", True)
        assert [r["id"] for r in found] == ["I1"]

    def test_unknown_index(self, repo):
        with pytest.raises(KeyError):
            repo.find_by(RecordKind.STUDENT, "favouriteColour", "blue")

    def test_missing_field_not_indexed(self, repo):
        repo.put(RecordKind.STUDENT, "STU-1", {"id": "STU-1", "grade": 4})
        assert repo.find_by(RecordKind.STUDENT, "name", None) == []


class TestFindRange:
    """Tests for range queries."""

    @pytest.fixture
    def timeline(self):
        repo = InMemoryRepository()
        for key, ts in (("I3", 300), ("I1", 100), ("I2", 200), ("I4", 200)):
            repo.put(RecordKind.INCIDENT, key, incident_record(key, timestamp=ts))
        return repo

    def test_sorted_by_index(self, timeline):
        stamps = [r["timestamp"] for r in timeline.find_range(RecordKind.INCIDENT, "timestamp")]
        assert stamps == [100, 200, 200, 300]

    def test_bounds_inclusive(self, timeline):
        found = timeline.find_range(RecordKind.INCIDENT, "timestamp", 200, 300)
        assert sorted(r["id"] for r in found) == ["I2", "I3", "I4"]

    def test_open_ended(self, timeline):
        assert len(timeline.find_range(RecordKind.INCIDENT, "timestamp", low=250)) == 1
        assert len(timeline.find_range(RecordKind.INCIDENT, "timestamp", high=150)) == 1

    def test_returns_copies(self, timeline):
        found = timeline.find_range(RecordKind.INCIDENT, "timestamp")
        found[0]["timestamp"] = 999
        assert timeline.get(RecordKind.INCIDENT, "I1")["timestamp"] == 100
