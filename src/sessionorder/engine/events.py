"""
SessionOrder Events

The rendering boundary. The engine announces state changes as
(event name, plain dict payload) pairs; whatever draws the screen
subscribes. Payloads are JSON-shaped dicts, never live domain objects.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Callable, Optional


logger = logging.getLogger(__name__)

Handler = Callable[[dict[str, Any]], None]


# =============================================================================
# Event Names
# =============================================================================

INCIDENT_LOGGED = "incident:logged"
INCIDENT_ANALYZED = "incident:analyzed"
INCIDENT_RESOLVED = "incident:resolved"
INCIDENT_DECISION_RECORDED = "incident:decisionRecorded"

SESSION_STARTED = "session:started"
SESSION_ENDED = "session:ended"
SESSION_TIMER_TICK = "session:timerTick"
SESSION_TIMER_STARTED = "session:timerStarted"
SESSION_TIMER_PAUSED = "session:timerPaused"
SESSION_MODE_CHANGED = "session:modeChanged"
SESSION_GOALS_UPDATED = "session:goalsUpdated"
SESSION_BREAK_STARTED = "session:breakStarted"
SESSION_DEESCALATION = "session:deescalation"

ALL_EVENTS = frozenset({
    INCIDENT_LOGGED,
    INCIDENT_ANALYZED,
    INCIDENT_RESOLVED,
    INCIDENT_DECISION_RECORDED,
    SESSION_STARTED,
    SESSION_ENDED,
    SESSION_TIMER_TICK,
    SESSION_TIMER_STARTED,
    SESSION_TIMER_PAUSED,
    SESSION_MODE_CHANGED,
    SESSION_GOALS_UPDATED,
    SESSION_BREAK_STARTED,
    SESSION_DEESCALATION,
})


class EventBus:
    """
    Synchronous publish/subscribe.

    Handlers run in subscription order on the emitting thread. A handler
    that raises is logged and skipped; the remaining handlers still run
    and the engine operation that emitted is unaffected.

    Usage:
        bus = EventBus()
        bus.on(INCIDENT_LOGGED, lambda payload: print(payload["incident"]["id"]))
        bus.emit(INCIDENT_LOGGED, {"incident": incident.to_dict()})
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[Handler]] = defaultdict(list)

    def on(self, event: str, handler: Handler) -> None:
        self._handlers[event].append(handler)

    def off(self, event: str, handler: Handler) -> None:
        handlers = self._handlers.get(event)
        if handlers and handler in handlers:
            handlers.remove(handler)

    def emit(self, event: str, payload: Optional[dict[str, Any]] = None) -> None:
        for handler in list(self._handlers.get(event, ())):
            try:
                handler(dict(payload or {}))
            except Exception:
                logger.exception("Event handler failed", extra={"event": event})

    def clear(self) -> None:
        self._handlers.clear()


class EventRecorder:
    """Subscribes to every known event and keeps what it saw, oldest first."""

    def __init__(self, bus: EventBus):
        self.events: list[tuple[str, dict[str, Any]]] = []
        for name in sorted(ALL_EVENTS):
            bus.on(name, self._recorder(name))

    def _recorder(self, name: str) -> Handler:
        def record(payload: dict[str, Any]) -> None:
            self.events.append((name, payload))
        return record

    def names(self) -> list[str]:
        return [name for name, _ in self.events]

    def last(self, name: str) -> Optional[dict[str, Any]]:
        for event, payload in reversed(self.events):
            if event == name:
                return payload
        return None
