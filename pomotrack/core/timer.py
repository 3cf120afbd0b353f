"""Timer state machine for PomoTrack.

Owns the single active timer: free-running work timers, Pomodoro
countdowns and breaks.  Completed runs become immutable ``Session``
records that are appended to the shared state and persisted at once.
A recovery snapshot of the running timer is written periodically so an
interrupted process can pick the run back up on the next launch.
"""

import logging
import threading
import uuid
from datetime import datetime, timedelta
from typing import Callable, Optional

from pomotrack.core.models import (
    BREAK_TARGET,
    ActiveTimer,
    AppState,
    RecoverySnapshot,
    Session,
    SessionType,
    TimerStatus,
)
from pomotrack.core.scheduler import Scheduler, TaskHandle, ThreadScheduler
from pomotrack.core.timeutil import today, utcnow
from pomotrack.persistence.store import RECOVERY_KEY, LocalStore

logger = logging.getLogger(__name__)


def generate_id() -> str:
    """Return a short opaque identifier for sessions and projects."""
    return uuid.uuid4().hex[:9]


class TimerStateMachine:
    """Drives start/pause/resume/stop and Pomodoro/break completion.

    States are ``Idle`` (``state.timer is None``) and ``Running`` with a
    paused flag.  At most one tick handle exists at any time; every
    transition that starts ticking cancels the previous handle first.
    """

    TICK_INTERVAL = 1.0
    SNAPSHOT_EVERY_TICKS = 2

    def __init__(
        self,
        state: AppState,
        store: LocalStore,
        min_session_duration: int = 60,
        default_pomodoro_seconds: int = 25 * 60,
        display_hold_seconds: float = 3.0,
        recovery_max_age: timedelta = timedelta(hours=24),
        clock: Callable[[], datetime] = utcnow,
        scheduler: Optional[Scheduler] = None,
        on_complete: Optional[Callable[[Session], None]] = None,
    ) -> None:
        self.state = state
        self.store = store
        self.min_session_duration = min_session_duration
        self.default_pomodoro_seconds = default_pomodoro_seconds
        self.display_hold_seconds = display_hold_seconds
        self.recovery_max_age = recovery_max_age
        self.clock = clock
        self.scheduler = scheduler or ThreadScheduler()
        self.on_complete = on_complete
        self.lock = threading.RLock()
        self._tick_handle: Optional[TaskHandle] = None
        self._hold_handle: Optional[TaskHandle] = None
        self._ticks = 0

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def start(self, project_id: str) -> list[str]:
        """Start timing *project_id*, replacing any running timer.

        Starting the project that is currently paused resumes it instead.
        A different running timer is discarded without recording a session.
        """
        with self.lock:
            timer = self.state.timer
            if timer is not None and timer.is_paused and timer.target == project_id:
                return self.resume()

            events: list[str] = []
            if timer is not None:
                self.stop(save=False)
                events.append("discarded")

            self._begin(project_id)
            events.append("started")
            return events

    def pause(self) -> list[str]:
        with self.lock:
            timer = self.state.timer
            if timer is None or timer.is_paused or timer.finishing:
                return []
            self._cancel_ticking()
            timer.elapsed_seconds = self._elapsed(timer)
            timer.paused_elapsed = timer.elapsed_seconds
            timer.is_paused = True
            self._save_snapshot()
            return ["paused"]

    def resume(self) -> list[str]:
        with self.lock:
            timer = self.state.timer
            if timer is None or not timer.is_paused:
                return []
            timer.started_at = self.clock() - timedelta(seconds=timer.paused_elapsed)
            timer.is_paused = False
            timer.elapsed_seconds = timer.paused_elapsed
            self._start_ticking()
            self._save_snapshot()
            return ["resumed"]

    def stop(self, save: bool = True) -> Optional[Session]:
        """Stop the active timer; record a session if it ran long enough.

        Returns the recorded session, or ``None`` when nothing was saved.
        """
        with self.lock:
            timer = self.state.timer
            if timer is None:
                return None

            self.store.delete(RECOVERY_KEY)
            self._cancel_ticking()
            self._cancel_hold()

            session = None
            # A finishing timer has already been recorded by its completion.
            if timer.finishing:
                if timer.is_break:
                    self._restore_default_pomodoro()
            else:
                timer.elapsed_seconds = self._elapsed(timer)
                if save and timer.elapsed_seconds >= self.min_session_duration:
                    kind = SessionType.BREAK if timer.is_break else SessionType.WORK
                    session = self._record(timer.target, timer.elapsed_seconds, kind)

            self._reset()
            return session

    def start_break(self, duration_seconds: int) -> list[str]:
        """Stop whatever runs (saving it unless it is a break) and count down a break."""
        with self.lock:
            events: list[str] = []
            timer = self.state.timer
            if timer is not None:
                saved = self.stop(save=not timer.is_break)
                events.append("stopped" if saved is not None else "discarded")

            pomodoro = self.state.pomodoro
            pomodoro.enabled = True
            pomodoro.duration_seconds = int(duration_seconds)
            self._begin(BREAK_TARGET)
            events.append("break_started")
            return events

    def set_pomodoro_duration(self, seconds: int) -> None:
        """Select a countdown length; ``0`` switches to a free-running timer."""
        with self.lock:
            pomodoro = self.state.pomodoro
            pomodoro.duration_seconds = max(0, int(seconds))
            pomodoro.enabled = pomodoro.duration_seconds > 0

    def tick(self) -> list[str]:
        """Advance the active timer.  Called by the scheduler about once a second.

        Returns a list of event strings:
        - ``'tick'``              – elapsed time was recomputed
        - ``'snapshot_saved'``    – a recovery snapshot was persisted
        - ``'pomodoro_finished'`` – a Pomodoro countdown reached zero
        - ``'break_finished'``    – a break countdown reached zero
        """
        with self.lock:
            timer = self.state.timer
            if timer is None or timer.is_paused or timer.finishing:
                return []

            events = ["tick"]
            timer.elapsed_seconds = self._elapsed(timer)

            pomodoro = self.state.pomodoro
            if pomodoro.counting_down:
                pomodoro.remaining_seconds = pomodoro.duration_seconds - timer.elapsed_seconds
                if pomodoro.remaining_seconds <= 0:
                    if timer.is_break:
                        self._break_finished()
                        events.append("break_finished")
                    else:
                        self._pomodoro_finished()
                        events.append("pomodoro_finished")
                    return events

            self._ticks += 1
            if self._ticks % self.SNAPSHOT_EVERY_TICKS == 0:
                self._save_snapshot()
                events.append("snapshot_saved")
            return events

    def status(self) -> TimerStatus:
        with self.lock:
            timer = self.state.timer
            pomodoro = self.state.pomodoro
            if timer is None:
                return TimerStatus(
                    target=None, elapsed_seconds=0, remaining_seconds=0,
                    is_paused=False, is_countdown=False, is_finishing=False,
                )
            return TimerStatus(
                target=timer.target,
                elapsed_seconds=timer.elapsed_seconds,
                remaining_seconds=max(0, pomodoro.remaining_seconds),
                is_paused=timer.is_paused,
                is_countdown=pomodoro.counting_down,
                is_finishing=timer.finishing,
            )

    @property
    def is_ticking(self) -> bool:
        return self._tick_handle is not None and self._tick_handle.active

    def recover(self) -> bool:
        """Restore a timer interrupted by a crash or shutdown.

        Snapshots older than ``recovery_max_age`` are discarded.  A running
        timer keeps its original start, so the time spent away counts.
        Returns ``True`` if a timer was restored.
        """
        with self.lock:
            raw = self.store.load(RECOVERY_KEY, None)
            if not raw:
                return False

            try:
                snapshot = RecoverySnapshot.from_dict(raw)
            except (KeyError, TypeError, ValueError) as exc:
                logger.error("Recovery failed: %s", exc)
                self.store.delete(RECOVERY_KEY)
                return False

            now = self.clock()
            if now - snapshot.last_seen > self.recovery_max_age:
                logger.info("Discarding stale recovery snapshot from %s", snapshot.last_seen)
                self.store.delete(RECOVERY_KEY)
                return False

            logger.info("Recovering interrupted timer for %s", snapshot.target)
            pomodoro = self.state.pomodoro
            pomodoro.enabled = snapshot.pomodoro_enabled
            pomodoro.duration_seconds = snapshot.pomodoro_duration

            timer = ActiveTimer(
                target=snapshot.target,
                started_at=snapshot.started_at,
                is_paused=snapshot.is_paused,
                paused_elapsed=snapshot.paused_elapsed,
            )
            self.state.timer = timer
            if timer.is_paused:
                timer.elapsed_seconds = timer.paused_elapsed
            else:
                timer.elapsed_seconds = self._elapsed(timer)
                self._start_ticking()
            if pomodoro.counting_down:
                pomodoro.remaining_seconds = pomodoro.duration_seconds - timer.elapsed_seconds
            return True

    def shutdown(self) -> None:
        """Cancel scheduled work without touching the recovery snapshot."""
        with self.lock:
            self._cancel_ticking()
            self._cancel_hold()

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------

    def _pomodoro_finished(self) -> None:
        self._complete(SessionType.POMODORO, restore_default=False)

    def _break_finished(self) -> None:
        self._complete(SessionType.BREAK, restore_default=True)

    def _complete(self, kind: SessionType, restore_default: bool) -> None:
        """Record the full countdown unconditionally, then hold before going idle."""
        timer = self.state.timer
        self._cancel_ticking()
        self.store.delete(RECOVERY_KEY)

        duration = self.state.pomodoro.duration_seconds
        session = self._record(timer.target, duration, kind)
        timer.finishing = True
        self.state.pomodoro.remaining_seconds = 0

        if self.on_complete is not None:
            try:
                self.on_complete(session)
            except Exception:
                logger.exception("Completion callback failed")

        self._hold_handle = self.scheduler.call_later(
            self.display_hold_seconds,
            lambda: self._end_hold(timer, restore_default),
        )

    def _end_hold(self, timer: ActiveTimer, restore_default: bool) -> None:
        with self.lock:
            if self.state.timer is not timer:
                return
            self._hold_handle = None
            self._reset()
            if restore_default:
                self._restore_default_pomodoro()

    def _restore_default_pomodoro(self) -> None:
        self.state.pomodoro.enabled = True
        self.state.pomodoro.duration_seconds = self.default_pomodoro_seconds

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _begin(self, target: str) -> None:
        self.state.timer = ActiveTimer(target=target, started_at=self.clock())
        pomodoro = self.state.pomodoro
        if pomodoro.counting_down:
            pomodoro.remaining_seconds = pomodoro.duration_seconds
        self._ticks = 0
        self._start_ticking()
        self._save_snapshot()

    def _elapsed(self, timer: ActiveTimer) -> int:
        if timer.is_paused:
            return timer.paused_elapsed
        return max(0, int((self.clock() - timer.started_at).total_seconds()))

    def _record(self, target: str, duration: int, kind: SessionType) -> Session:
        end = self.clock()
        session = Session(
            id=generate_id(),
            project_id=target,
            start_time=end - timedelta(seconds=duration),
            end_time=end,
            duration=int(duration),
            date=today(end),
            type=kind,
        )
        self.state.sessions.append(session)
        self.store.save_sessions(self.state.sessions)
        logger.info("Saved %s session %s (%ds) for %s", kind.value, session.id, duration, target)
        return session

    def _reset(self) -> None:
        self.state.timer = None
        self.state.pomodoro.remaining_seconds = 0
        self._ticks = 0

    def _start_ticking(self) -> None:
        self._cancel_ticking()
        handle: Optional[TaskHandle] = None

        def _scheduled_tick() -> None:
            with self.lock:
                # A callback already in flight when its handle was replaced
                # must not touch the new run.
                if handle is None or self._tick_handle is not handle:
                    return
                self.tick()

        handle = self.scheduler.every(self.TICK_INTERVAL, _scheduled_tick)
        self._tick_handle = handle

    def _cancel_ticking(self) -> None:
        if self._tick_handle is not None:
            self._tick_handle.cancel()
            self._tick_handle = None

    def _cancel_hold(self) -> None:
        if self._hold_handle is not None:
            self._hold_handle.cancel()
            self._hold_handle = None

    def _save_snapshot(self) -> None:
        timer = self.state.timer
        if timer is None or timer.finishing:
            self.store.delete(RECOVERY_KEY)
            return
        pomodoro = self.state.pomodoro
        snapshot = RecoverySnapshot(
            target=timer.target,
            started_at=timer.started_at,
            is_paused=timer.is_paused,
            paused_elapsed=timer.paused_elapsed,
            pomodoro_enabled=pomodoro.enabled,
            pomodoro_duration=pomodoro.duration_seconds,
            last_seen=self.clock(),
        )
        self.store.save(RECOVERY_KEY, snapshot.to_dict())
