"""Cancellable scheduled tasks backed by daemon threads.

The timer and the auto-sync trigger only use ``every`` and ``call_later``
so tests can swap in a scheduler that fires callbacks by hand.
"""

import logging
import threading
from typing import Callable, Protocol

logger = logging.getLogger(__name__)


class TaskHandle(Protocol):
    def cancel(self) -> None: ...

    @property
    def active(self) -> bool: ...


class Scheduler(Protocol):
    def every(self, interval: float, callback: Callable[[], None]) -> TaskHandle: ...

    def call_later(self, delay: float, callback: Callable[[], None]) -> TaskHandle: ...


class RepeatingTask:
    """Runs *callback* every *interval* seconds until cancelled."""

    def __init__(self, interval: float, callback: Callable[[], None], name: str = "pomotrack-repeat") -> None:
        self.interval = interval
        self.callback = callback
        self._stopped = threading.Event()
        self._thread = threading.Thread(target=self._run, daemon=True, name=name)

    def start(self) -> "RepeatingTask":
        self._thread.start()
        return self

    def _run(self) -> None:
        while not self._stopped.wait(self.interval):
            try:
                self.callback()
            except Exception:
                logger.exception("Scheduled callback failed")

    def cancel(self) -> None:
        self._stopped.set()

    @property
    def active(self) -> bool:
        return not self._stopped.is_set()


class DelayedTask:
    """Runs *callback* once after *delay* seconds unless cancelled first."""

    def __init__(self, delay: float, callback: Callable[[], None], name: str = "pomotrack-delay") -> None:
        self.callback = callback
        self._timer = threading.Timer(delay, self._fire)
        self._timer.daemon = True
        self._timer.name = name
        self._done = False

    def start(self) -> "DelayedTask":
        self._timer.start()
        return self

    def _fire(self) -> None:
        self._done = True
        try:
            self.callback()
        except Exception:
            logger.exception("Delayed callback failed")

    def cancel(self) -> None:
        self._done = True
        self._timer.cancel()

    @property
    def active(self) -> bool:
        return not self._done


class ThreadScheduler:
    """Default scheduler: one daemon thread per scheduled task."""

    def every(self, interval: float, callback: Callable[[], None]) -> RepeatingTask:
        return RepeatingTask(interval, callback).start()

    def call_later(self, delay: float, callback: Callable[[], None]) -> DelayedTask:
        return DelayedTask(delay, callback).start()
