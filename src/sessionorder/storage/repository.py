"""
SessionOrder Persistence Boundary

Provides the protocol the engine needs from storage and an in-memory
implementation of it.

The engine only requires CRUD by key plus lookup by secondary index over
four record kinds: student, session, incident, config. How records are
physically stored is up to the implementation. Records cross this
boundary as plain dicts in their camelCase storage shape.
"""
from __future__ import annotations

import copy
import threading
from typing import Any, Optional, Protocol, runtime_checkable

from ..models.enums import RecordKind


# Secondary indexes per record kind
INDEXES: dict[RecordKind, tuple[str, ...]] = {
    RecordKind.STUDENT: ("name", "grade"),
    RecordKind.SESSION: ("studentId", "startTime", "status"),
    RecordKind.INCIDENT: ("sessionId", "category", "severity", "timestamp", "resolved"),
    RecordKind.CONFIG: (),
}


@runtime_checkable
class Repository(Protocol):
    """
    Protocol for record storage.

    Keys are record ids for student/session/incident and setting names
    for config (e.g. "methodology", "timer:<session_id>").
    """

    def put(self, kind: RecordKind, key: str, record: dict[str, Any]) -> None:
        """Insert or replace a record."""
        ...

    def get(self, kind: RecordKind, key: str) -> Optional[dict[str, Any]]:
        """Fetch a record by key, or None."""
        ...

    def delete(self, kind: RecordKind, key: str) -> bool:
        """Remove a record. Returns False if it did not exist."""
        ...

    def all(self, kind: RecordKind) -> list[dict[str, Any]]:
        """All records of a kind."""
        ...

    def find_by(self, kind: RecordKind, index: str, value: Any) -> list[dict[str, Any]]:
        """Records whose indexed field equals value."""
        ...

    def find_range(
        self,
        kind: RecordKind,
        index: str,
        low: Any = None,
        high: Any = None,
    ) -> list[dict[str, Any]]:
        """Records whose indexed field is within [low, high], sorted by it."""
        ...


class InMemoryRepository:
    """
    Dict-backed repository with secondary indexes.

    Records are deep-copied on the way in and out so callers can never
    mutate stored state by accident. Writes are serialized with a lock.

    Usage:
        repo = InMemoryRepository()
        repo.put(RecordKind.STUDENT, student.id, student.to_dict())
        repo.find_by(RecordKind.INCIDENT, "sessionId", session.id)
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: dict[RecordKind, dict[str, dict[str, Any]]] = {
            kind: {} for kind in RecordKind
        }
        # (kind, index) -> value -> set of keys
        self._indexes: dict[tuple[RecordKind, str], dict[Any, set[str]]] = {
            (kind, index): {} for kind, names in INDEXES.items() for index in names
        }

    # =========================================================================
    # CRUD
    # =========================================================================

    def put(self, kind: RecordKind, key: str, record: dict[str, Any]) -> None:
        stored = copy.deepcopy(record)
        with self._lock:
            previous = self._records[kind].get(key)
            if previous is not None:
                self._unindex(kind, key, previous)
            self._records[kind][key] = stored
            self._index(kind, key, stored)

    def get(self, kind: RecordKind, key: str) -> Optional[dict[str, Any]]:
        record = self._records[kind].get(key)
        return copy.deepcopy(record) if record is not None else None

    def delete(self, kind: RecordKind, key: str) -> bool:
        with self._lock:
            previous = self._records[kind].pop(key, None)
            if previous is None:
                return False
            self._unindex(kind, key, previous)
            return True

    def all(self, kind: RecordKind) -> list[dict[str, Any]]:
        return [copy.deepcopy(r) for r in self._records[kind].values()]

    # =========================================================================
    # Index Lookups
    # =========================================================================

    def find_by(self, kind: RecordKind, index: str, value: Any) -> list[dict[str, Any]]:
        keys = self._index_for(kind, index).get(value, set())
        records = self._records[kind]
        return [copy.deepcopy(records[k]) for k in keys if k in records]

    def find_range(
        self,
        kind: RecordKind,
        index: str,
        low: Any = None,
        high: Any = None,
    ) -> list[dict[str, Any]]:
        by_value = self._index_for(kind, index)
        matches: list[tuple[Any, dict[str, Any]]] = []
        for value, keys in by_value.items():
            if low is not None and value < low:
                continue
            if high is not None and value > high:
                continue
            for k in keys:
                matches.append((value, self._records[kind][k]))
        matches.sort(key=lambda pair: pair[0])
        return [copy.deepcopy(record) for _, record in matches]

    # =========================================================================
    # Internals
    # =========================================================================

    def _index_for(self, kind: RecordKind, index: str) -> dict[Any, set[str]]:
        try:
            return self._indexes[(kind, index)]
        except KeyError:
            raise KeyError(f"No index '{index}' on {kind.value} records") from None

    def _index(self, kind: RecordKind, key: str, record: dict[str, Any]) -> None:
        for index in INDEXES[kind]:
            value = record.get(index)
            if value is None:
                continue
            self._indexes[(kind, index)].setdefault(value, set()).add(key)

    def _unindex(self, kind: RecordKind, key: str, record: dict[str, Any]) -> None:
        for index in INDEXES[kind]:
            value = record.get(index)
            keys = self._indexes[(kind, index)].get(value)
            if keys is None:
                continue
            keys.discard(key)
            if not keys:
                del self._indexes[(kind, index)][value]
