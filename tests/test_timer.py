"""
Tests for the drift-free session timer.

Tests cover:
- Elapsed derived from absolute timestamps, never from tick counts
- Pause / resume accumulation
- Persistence on state changes only
- Restore after reload, with and without saved state
"""
from sessionorder.engine import EventBus, EventRecorder, SessionTimer, compute_elapsed, timer_key
from sessionorder.models import RecordKind, TimerState

from tests.conftest import T0, FakeClock


def saved_state(repo, session_id="SES-001") -> TimerState:
    record = repo.get(RecordKind.CONFIG, timer_key(session_id))
    return TimerState.from_dict(record["value"])


# =============================================================================
# Pure Computation
# =============================================================================

class TestComputeElapsed:
    """Tests for the elapsed formula."""

    def test_running(self):
        assert compute_elapsed(120, T0, T0 + 30_000, running=True) == 150

    def test_partial_seconds_floor(self):
        assert compute_elapsed(0, T0, T0 + 1_999, running=True) == 1

    def test_paused_ignores_clock(self):
        assert compute_elapsed(45, None, T0 + 999_999, running=False) == 45

    def test_running_without_start_counts_accumulated(self):
        assert compute_elapsed(10, None, T0, running=True) == 10

    def test_clock_backwards_counts_zero(self):
        assert compute_elapsed(30, T0, T0 - 5_000, running=True) == 30


# =============================================================================
# Timer Transitions
# =============================================================================

class TestSessionTimer:
    """Tests for start / pause / tick."""

    def test_start_persists_running_state(self, repo, clock):
        timer = SessionTimer(repo, "SES-001", clock=clock)
        timer.start()
        state = saved_state(repo)
        assert state.running
        assert state.start_time_ms == T0
        assert timer.seconds == 0

    def test_tick_derives_from_clock(self, repo, clock):
        timer = SessionTimer(repo, "SES-001", clock=clock)
        timer.start()
        clock.advance(seconds=90)
        assert timer.tick() == 90

    def test_missed_ticks_lose_nothing(self, repo, clock):
        """One tick after a long gap gives the same answer as many small ones."""
        timer = SessionTimer(repo, "SES-001", clock=clock)
        timer.start()
        clock.advance(seconds=3600)
        assert timer.on_visible() == 3600

    def test_duplicate_ticks_add_nothing(self, repo, clock):
        timer = SessionTimer(repo, "SES-001", clock=clock)
        timer.start()
        clock.advance(seconds=5)
        timer.tick()
        timer.tick()
        timer.tick()
        assert timer.seconds == 5

    def test_pause_and_resume(self, repo, clock):
        timer = SessionTimer(repo, "SES-001", clock=clock)
        timer.start()
        clock.advance(seconds=100)
        timer.pause()
        state = saved_state(repo)
        assert not state.running
        assert state.start_time_ms is None
        assert state.accumulated_seconds == 100

        clock.advance(seconds=500)
        assert timer.tick() == 100

        timer.resume()
        clock.advance(seconds=20)
        assert timer.tick() == 120

    def test_start_when_running_is_noop(self, repo, clock):
        timer = SessionTimer(repo, "SES-001", clock=clock)
        timer.start()
        clock.advance(seconds=10)
        timer.start()
        assert saved_state(repo).start_time_ms == T0

    def test_toggle(self, repo, clock):
        timer = SessionTimer(repo, "SES-001", clock=clock)
        assert timer.toggle() is True
        assert timer.toggle() is False

    def test_tick_only_saves_on_change(self, repo, clock):
        timer = SessionTimer(repo, "SES-001", clock=clock)
        timer.start()
        repo.delete(RecordKind.CONFIG, timer.key)
        clock.advance(ms=400)
        timer.tick()
        assert repo.get(RecordKind.CONFIG, timer.key) is None
        clock.advance(ms=600)
        timer.tick()
        assert repo.get(RecordKind.CONFIG, timer.key) is not None

    def test_on_change_callback(self, repo, clock):
        seen = []
        timer = SessionTimer(repo, "SES-001", clock=clock, on_change=seen.append)
        timer.start()
        clock.advance(seconds=3)
        timer.tick()
        assert seen[-1] == 3

    def test_events(self, repo, clock):
        bus = EventBus()
        recorder = EventRecorder(bus)
        timer = SessionTimer(repo, "SES-001", clock=clock, events=bus)
        timer.start()
        clock.advance(seconds=2)
        timer.tick()
        timer.pause()
        assert recorder.names() == [
            "session:timerStarted",
            "session:timerTick",
            "session:timerPaused",
        ]
        assert recorder.last("session:timerTick") == {"sessionId": "SES-001", "seconds": 2}

    def test_clear(self, repo, clock):
        timer = SessionTimer(repo, "SES-001", clock=clock)
        timer.start()
        timer.clear()
        assert repo.get(RecordKind.CONFIG, timer_key("SES-001")) is None


# =============================================================================
# Restore
# =============================================================================

class TestRestore:
    """Tests for rebuilding a timer after reload."""

    def test_restore_running_state(self, repo):
        """Saved 120 s running since T0, reloaded 30 s later: 150 s."""
        repo.put(RecordKind.CONFIG, timer_key("SES-001"), {
            "key": timer_key("SES-001"),
            "value": TimerState(120, True, T0).to_dict(),
        })
        clock = FakeClock(T0 + 30_000)
        timer = SessionTimer(repo, "SES-001", clock=clock)
        assert timer.restore(session_start_ms=T0 - 120_000) == 150
        assert timer.running

    def test_restore_paused_state(self, repo):
        repo.put(RecordKind.CONFIG, timer_key("SES-001"), {
            "key": timer_key("SES-001"),
            "value": TimerState(75, False, None).to_dict(),
        })
        timer = SessionTimer(repo, "SES-001", clock=FakeClock(T0 + 999_000))
        assert timer.restore(session_start_ms=T0) == 75
        assert not timer.running

    def test_restore_running_without_start_is_paused(self, repo):
        repo.put(RecordKind.CONFIG, timer_key("SES-001"), {
            "key": timer_key("SES-001"),
            "value": {"accumulatedSeconds": 40, "timerRunning": True, "startTimeMs": None},
        })
        timer = SessionTimer(repo, "SES-001", clock=FakeClock(T0))
        assert timer.restore(session_start_ms=T0) == 40
        assert not timer.running

    def test_restore_without_saved_state(self, repo):
        """Falls back to wall-clock time since session start."""
        timer = SessionTimer(repo, "SES-001", clock=FakeClock(T0 + 600_000))
        assert timer.restore(session_start_ms=T0, running=True) == 600
        assert timer.running
        assert saved_state(repo).accumulated_seconds == 600

    def test_restore_without_saved_state_paused(self, repo):
        clock = FakeClock(T0 + 60_000)
        timer = SessionTimer(repo, "SES-001", clock=clock)
        timer.restore(session_start_ms=T0, running=False)
        clock.advance(seconds=30)
        assert timer.tick() == 60

    def test_restore_notifies(self, repo):
        seen = []
        timer = SessionTimer(repo, "SES-001", clock=FakeClock(T0 + 5_000), on_change=seen.append)
        timer.restore(session_start_ms=T0)
        assert seen == [5]
