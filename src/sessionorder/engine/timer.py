"""
SessionOrder Session Timer

Drift-free session elapsed time that survives reloads and backgrounding.

Elapsed time is never counted tick by tick. It is always derived from
absolute timestamps:

    elapsed = accumulated_seconds + floor((now_ms - start_time_ms) / 1000)

while running, and accumulated_seconds while paused. Ticks only refresh
the derived value, so a missed or delayed tick loses nothing and a
duplicate tick adds nothing.

TimerState is persisted under config key "timer:<session_id>" on start,
on every tick that changes the value, on pause and on resume.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable, Optional

from ..models import RecordKind, TimerState, now_ms
from .events import (
    SESSION_TIMER_PAUSED,
    SESSION_TIMER_STARTED,
    SESSION_TIMER_TICK,
    EventBus,
)

if TYPE_CHECKING:
    from ..storage import Repository

logger = logging.getLogger(__name__)

TIMER_KEY_PREFIX = "timer:"


def timer_key(session_id: str) -> str:
    return f"{TIMER_KEY_PREFIX}{session_id}"


def compute_elapsed(
    accumulated_seconds: int,
    start_time_ms: Optional[int],
    now: int,
    running: bool,
) -> int:
    """
    Elapsed seconds from timer state. Pure.

    A running segment that appears to end before it started (clock moved
    backwards) counts as zero.
    """
    if not running or start_time_ms is None:
        return accumulated_seconds
    segment = max(0, now - start_time_ms) // 1000
    return accumulated_seconds + segment


class SessionTimer:
    """
    Persisted timer for one session.

    Args:
        repository: Where TimerState is persisted
        session_id: Owning session
        clock: Millisecond clock, injectable for tests
        events: Optional bus for timer events
        on_change: Called with the new elapsed value whenever it changes
    """

    def __init__(
        self,
        repository: "Repository",
        session_id: str,
        clock: Callable[[], int] = now_ms,
        events: Optional[EventBus] = None,
        on_change: Optional[Callable[[int], None]] = None,
    ):
        self.repository = repository
        self.session_id = session_id
        self.clock = clock
        self.events = events
        self.on_change = on_change
        self.state = TimerState()
        self.seconds = 0

    @property
    def running(self) -> bool:
        return self.state.running

    @property
    def key(self) -> str:
        return timer_key(self.session_id)

    # =========================================================================
    # Transitions
    # =========================================================================

    def start(self) -> None:
        """Start a fresh running segment. No-op if already running."""
        if self.state.running:
            return
        self.state.running = True
        self.state.start_time_ms = self.clock()
        self._save()
        self.tick()
        self._emit(SESSION_TIMER_STARTED)

    resume = start

    def pause(self) -> None:
        """Fold the running segment into accumulated time. No-op if paused."""
        if not self.state.running:
            return
        self.state.accumulated_seconds = self.elapsed()
        self.state.running = False
        self.state.start_time_ms = None
        self._set_seconds(self.state.accumulated_seconds)
        self._save()
        self._emit(SESSION_TIMER_PAUSED)

    def toggle(self) -> bool:
        """Pause if running, otherwise start. Returns the new running state."""
        if self.state.running:
            self.pause()
        else:
            self.start()
        return self.state.running

    def tick(self) -> int:
        """Refresh the derived value; persist only if it changed."""
        if not self.state.running:
            return self.seconds
        current = self.elapsed()
        if current != self.seconds:
            self._set_seconds(current)
            self._save()
            self._emit(SESSION_TIMER_TICK)
        return self.seconds

    def on_visible(self) -> int:
        """Recompute immediately after the host returns from the background."""
        return self.tick()

    def elapsed(self) -> int:
        return compute_elapsed(
            self.state.accumulated_seconds,
            self.state.start_time_ms,
            self.clock(),
            self.state.running,
        )

    # =========================================================================
    # Persistence
    # =========================================================================

    def restore(self, session_start_ms: int, running: bool = False) -> int:
        """
        Rebuild timer state after a reload.

        Uses the persisted TimerState when present. Otherwise assumes the
        whole wall-clock time since session start was session time, and
        sets running as given.
        """
        stored = self.repository.get(RecordKind.CONFIG, self.key)
        if stored and isinstance(stored.get("value"), dict):
            self.state = TimerState.from_dict(stored["value"])
            if self.state.running and self.state.start_time_ms is None:
                self.state.running = False
        else:
            logger.info(
                "No saved timer state, deriving from session start",
                extra={"session_id": self.session_id},
            )
            since_start = max(0, self.clock() - session_start_ms) // 1000
            self.state = TimerState(
                accumulated_seconds=since_start,
                running=running,
                start_time_ms=self.clock() if running else None,
            )
            self._save()

        self.seconds = self.elapsed()
        if self.on_change is not None:
            self.on_change(self.seconds)
        return self.seconds

    def clear(self) -> None:
        """Forget persisted state, once the session has ended."""
        self.repository.delete(RecordKind.CONFIG, self.key)

    def _save(self) -> None:
        self.repository.put(
            RecordKind.CONFIG,
            self.key,
            {"key": self.key, "value": self.state.to_dict()},
        )

    def _set_seconds(self, value: int) -> None:
        self.seconds = value
        if self.on_change is not None:
            self.on_change(value)

    def _emit(self, event: str) -> None:
        if self.events is not None:
            self.events.emit(event, {"sessionId": self.session_id, "seconds": self.seconds})
