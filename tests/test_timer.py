"""Unit tests for TimerStateMachine."""

from datetime import timedelta

import pytest

from pomotrack.core.models import BREAK_TARGET, AppState, RecoverySnapshot, SessionType
from pomotrack.core.timer import TimerStateMachine, generate_id
from pomotrack.core.timeutil import today
from pomotrack.persistence.store import RECOVERY_KEY
from pomotrack.reporting.stats import today_total


@pytest.fixture
def state():
    return AppState()


@pytest.fixture
def completed():
    return []


@pytest.fixture
def timer(state, store, clock, scheduler, completed):
    return TimerStateMachine(
        state,
        store,
        min_session_duration=60,
        default_pomodoro_seconds=1500,
        display_hold_seconds=3,
        clock=clock,
        scheduler=scheduler,
        on_complete=completed.append,
    )


def _free_running(timer):
    timer.set_pomodoro_duration(0)


# ------------------------------------------------------------------
# start
# ------------------------------------------------------------------

class TestStart:
    def test_start_creates_running_timer(self, timer, state, clock):
        events = timer.start("p1")
        assert events == ["started"]
        assert state.timer.target == "p1"
        assert state.timer.started_at == clock()
        assert state.timer.elapsed_seconds == 0
        assert not state.timer.is_paused

    def test_start_installs_one_tick_handle(self, timer, scheduler):
        timer.start("p1")
        assert len(scheduler.active_repeating()) == 1
        assert scheduler.active_repeating()[0].interval == 1.0
        assert timer.is_ticking

    def test_start_sets_remaining_when_counting_down(self, timer, state):
        timer.start("p1")
        assert state.pomodoro.remaining_seconds == 1500

    def test_start_writes_recovery_snapshot(self, timer, store):
        timer.start("p1")
        snapshot = store.load(RECOVERY_KEY)
        assert snapshot["activeTimer"] == "p1"

    def test_switching_project_discards_running_timer(self, timer, state, clock, scheduler):
        _free_running(timer)
        timer.start("p1")
        clock.advance(600)
        events = timer.start("p2")
        assert events == ["discarded", "started"]
        assert state.sessions == []
        assert state.timer.target == "p2"
        # The first ticker was cancelled before the second was installed
        assert len(scheduler.active_repeating()) == 1

    def test_start_on_paused_same_project_resumes(self, timer, state, clock):
        _free_running(timer)
        timer.start("p1")
        clock.advance(100)
        timer.pause()
        clock.advance(30)
        events = timer.start("p1")
        assert events == ["resumed"]
        assert state.timer.elapsed_seconds == 100


# ------------------------------------------------------------------
# pause / resume
# ------------------------------------------------------------------

class TestPauseResume:
    def test_pause_when_idle_is_noop(self, timer):
        assert timer.pause() == []

    def test_resume_when_not_paused_is_noop(self, timer):
        timer.start("p1")
        assert timer.resume() == []

    def test_pause_freezes_elapsed_and_stops_ticking(self, timer, state, clock):
        _free_running(timer)
        timer.start("p1")
        clock.advance(42)
        assert timer.pause() == ["paused"]
        assert state.timer.paused_elapsed == 42
        assert not timer.is_ticking
        clock.advance(1000)
        assert timer.tick() == []
        assert state.timer.elapsed_seconds == 42

    def test_pause_twice_is_noop(self, timer):
        timer.start("p1")
        timer.pause()
        assert timer.pause() == []

    def test_elapsed_continuous_across_pause(self, timer, state, clock):
        _free_running(timer)
        timer.start("p1")
        clock.advance(100)
        timer.tick()
        timer.pause()
        clock.advance(500)
        timer.resume()
        clock.advance(50)
        timer.tick()
        assert state.timer.elapsed_seconds == 150

    def test_resume_moves_start_backwards(self, timer, state, clock):
        _free_running(timer)
        timer.start("p1")
        clock.advance(80)
        timer.pause()
        clock.advance(20)
        timer.resume()
        assert state.timer.started_at == clock() - timedelta(seconds=80)
        assert timer.is_ticking


# ------------------------------------------------------------------
# stop
# ------------------------------------------------------------------

class TestStop:
    def test_stop_when_idle_returns_none(self, timer):
        assert timer.stop() is None

    def test_below_minimum_records_nothing(self, timer, state, clock):
        _free_running(timer)
        timer.start("p1")
        clock.advance(59)
        assert timer.stop() is None
        assert state.sessions == []
        assert state.timer is None

    def test_at_minimum_records_one_session(self, timer, state, clock):
        _free_running(timer)
        timer.start("p1")
        clock.advance(60)
        session = timer.stop()
        assert session is not None
        assert state.sessions == [session]

    def test_stop_without_save_discards(self, timer, state, clock):
        _free_running(timer)
        timer.start("p1")
        clock.advance(600)
        assert timer.stop(save=False) is None
        assert state.sessions == []

    def test_stop_clears_snapshot_and_ticker(self, timer, store, clock):
        timer.start("p1")
        clock.advance(5)
        timer.stop()
        assert store.load(RECOVERY_KEY) is None
        assert not timer.is_ticking

    def test_ninety_second_work_session(self, timer, state, store, clock):
        _free_running(timer)
        timer.start("p1")
        clock.advance(90)
        session = timer.stop()

        assert session.project_id == "p1"
        assert session.duration == 90
        assert session.type is SessionType.WORK
        assert session.date == today(clock())
        assert session.end_time - session.start_time == timedelta(seconds=90)
        assert [s.id for s in store.load_sessions()] == [session.id]
        assert today_total(state.sessions, clock()) == 90

    def test_paused_run_duration_excludes_pause(self, timer, clock):
        _free_running(timer)
        timer.start("p1")
        clock.advance(70)
        timer.pause()
        clock.advance(3600)
        session = timer.stop()
        assert session.duration == 70


# ------------------------------------------------------------------
# tick and Pomodoro completion
# ------------------------------------------------------------------

class TestTick:
    def test_tick_when_idle(self, timer):
        assert timer.tick() == []

    def test_tick_updates_remaining(self, timer, state, clock):
        timer.start("p1")
        clock.advance(10)
        assert "tick" in timer.tick()
        assert state.pomodoro.remaining_seconds == 1490
        assert timer.status().remaining_seconds == 1490

    def test_scheduled_tick_drives_timer(self, timer, state, clock, scheduler):
        timer.start("p1")
        clock.advance(5)
        scheduler.active_repeating()[0].callback()
        assert state.timer.elapsed_seconds == 5

    def test_stale_tick_callback_ignored_after_switch(self, timer, state, clock, scheduler, store):
        timer.start("p1")
        stale = scheduler.repeating[0]
        timer.start("p2")
        store.delete(RECOVERY_KEY)
        clock.advance(3)

        # The old thread may still be inside its wait when it gets cancelled.
        stale.callback()

        assert state.timer.target == "p2"
        assert state.timer.elapsed_seconds == 0
        assert timer._ticks == 0
        assert store.load(RECOVERY_KEY) is None

    def test_snapshot_every_second_tick(self, timer, clock):
        timer.start("p1")
        clock.advance(1)
        assert "snapshot_saved" not in timer.tick()
        clock.advance(1)
        assert "snapshot_saved" in timer.tick()

    def test_pomodoro_finishes_at_zero(self, timer, state, clock, scheduler, completed):
        timer.start("p1")
        clock.advance(1500)
        events = timer.tick()
        assert "pomodoro_finished" in events
        assert len(state.sessions) == 1
        session = state.sessions[0]
        assert session.type is SessionType.POMODORO
        assert session.duration == 1500
        assert completed == [session]
        assert state.timer.finishing
        assert not timer.is_ticking
        assert scheduler.delayed[-1].delay == 3

    def test_completion_is_recorded_below_minimum(self, timer, state, clock):
        timer.set_pomodoro_duration(30)
        timer.start("p1")
        clock.advance(30)
        timer.tick()
        assert len(state.sessions) == 1
        assert state.sessions[0].duration == 30

    def test_display_hold_then_idle(self, timer, state, clock, scheduler):
        timer.start("p1")
        clock.advance(1500)
        timer.tick()
        assert timer.status().is_finishing
        scheduler.fire_delayed()
        assert state.timer is None
        assert timer.status().is_idle

    def test_stop_during_hold_does_not_record_twice(self, timer, state, clock):
        timer.start("p1")
        clock.advance(1500)
        timer.tick()
        assert timer.stop() is None
        assert len(state.sessions) == 1

    def test_new_start_cancels_hold(self, timer, state, clock, scheduler):
        timer.start("p1")
        clock.advance(1500)
        timer.tick()
        timer.start("p2")
        scheduler.fire_delayed()
        assert state.timer is not None
        assert state.timer.target == "p2"

    def test_status_never_negative(self, timer, state, clock):
        timer.start("p1")
        state.pomodoro.remaining_seconds = -2
        assert timer.status().remaining_seconds == 0

    def test_completion_callback_errors_are_contained(self, state, store, clock, scheduler):
        def _boom(session):
            raise RuntimeError("ui gone")

        timer = TimerStateMachine(state, store, clock=clock, scheduler=scheduler, on_complete=_boom)
        timer.set_pomodoro_duration(60)
        timer.start("p1")
        clock.advance(60)
        assert "pomodoro_finished" in timer.tick()
        assert len(state.sessions) == 1


# ------------------------------------------------------------------
# Breaks
# ------------------------------------------------------------------

class TestBreak:
    def test_break_saves_running_work(self, timer, state, clock):
        _free_running(timer)
        timer.start("p1")
        clock.advance(120)
        events = timer.start_break(300)
        assert events == ["stopped", "break_started"]
        assert state.sessions[0].type is SessionType.WORK
        assert state.timer.target == BREAK_TARGET
        assert state.pomodoro.counting_down
        assert state.pomodoro.remaining_seconds == 300

    def test_break_over_break_discards(self, timer, state, clock):
        timer.start_break(300)
        clock.advance(120)
        events = timer.start_break(900)
        assert events == ["discarded", "break_started"]
        assert state.sessions == []

    def test_break_finishes_and_restores_default(self, timer, state, clock, scheduler):
        timer.start_break(300)
        clock.advance(300)
        events = timer.tick()
        assert "break_finished" in events
        session = state.sessions[-1]
        assert session.project_id == BREAK_TARGET
        assert session.type is SessionType.BREAK
        assert session.duration == 300

        scheduler.fire_delayed()
        assert state.timer is None
        assert state.pomodoro.duration_seconds == 1500
        assert state.pomodoro.enabled

    def test_manual_stop_of_break_records_break(self, timer, clock):
        timer.start_break(300)
        clock.advance(100)
        session = timer.stop()
        assert session.type is SessionType.BREAK


# ------------------------------------------------------------------
# Crash recovery
# ------------------------------------------------------------------

def _snapshot(clock, last_seen_ago, started_ago, paused=False, paused_elapsed=0, enabled=False):
    return RecoverySnapshot(
        target="p1",
        started_at=clock() - timedelta(seconds=started_ago),
        is_paused=paused,
        paused_elapsed=paused_elapsed,
        pomodoro_enabled=enabled,
        pomodoro_duration=1500,
        last_seen=clock() - timedelta(seconds=last_seen_ago),
    ).to_dict()


class TestRecover:
    def test_no_snapshot(self, timer, state):
        assert timer.recover() is False
        assert state.timer is None

    def test_stale_snapshot_discarded(self, timer, state, store, clock):
        store.save(RECOVERY_KEY, _snapshot(clock, last_seen_ago=25 * 3600, started_ago=26 * 3600))
        assert timer.recover() is False
        assert state.timer is None
        assert store.load(RECOVERY_KEY) is None

    def test_fresh_running_snapshot_resumes_ticking(self, timer, state, store, clock):
        store.save(RECOVERY_KEY, _snapshot(clock, last_seen_ago=3600, started_ago=7200))
        assert timer.recover() is True
        assert state.timer.target == "p1"
        assert state.timer.elapsed_seconds == 7200
        assert timer.is_ticking

    def test_fresh_paused_snapshot_stays_paused(self, timer, state, store, clock):
        store.save(
            RECOVERY_KEY,
            _snapshot(clock, last_seen_ago=3600, started_ago=7200, paused=True, paused_elapsed=300),
        )
        assert timer.recover() is True
        assert state.timer.is_paused
        assert state.timer.elapsed_seconds == 300
        assert not timer.is_ticking

    def test_recovered_countdown_restores_remaining(self, timer, state, store, clock):
        store.save(RECOVERY_KEY, _snapshot(clock, last_seen_ago=60, started_ago=600, enabled=True))
        timer.recover()
        assert state.pomodoro.counting_down
        assert state.pomodoro.remaining_seconds == 900

    def test_corrupt_snapshot_cleared(self, timer, state, store):
        store.save(RECOVERY_KEY, {"activeTimer": "p1", "startTime": "not a date"})
        assert timer.recover() is False
        assert state.timer is None
        assert store.load(RECOVERY_KEY) is None


def test_generate_id_is_short_and_unique():
    ids = {generate_id() for _ in range(100)}
    assert len(ids) == 100
    assert all(len(i) == 9 for i in ids)
