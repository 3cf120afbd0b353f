"""Shared fixtures: a hand-driven scheduler and a settable clock."""

from datetime import datetime, timedelta

import pytest

from pomotrack.persistence.store import LocalStore


class FakeHandle:
    def __init__(self, callback, interval=None, delay=None):
        self.callback = callback
        self.interval = interval
        self.delay = delay
        self.cancelled = False

    def cancel(self):
        self.cancelled = True

    @property
    def active(self):
        return not self.cancelled


class FakeScheduler:
    """Records scheduled callbacks; tests fire them explicitly."""

    def __init__(self):
        self.repeating: list[FakeHandle] = []
        self.delayed: list[FakeHandle] = []

    def every(self, interval, callback):
        handle = FakeHandle(callback, interval=interval)
        self.repeating.append(handle)
        return handle

    def call_later(self, delay, callback):
        handle = FakeHandle(callback, delay=delay)
        self.delayed.append(handle)
        return handle

    def active_repeating(self):
        return [h for h in self.repeating if h.active]

    def fire_delayed(self):
        for handle in list(self.delayed):
            if handle.active:
                handle.cancelled = True
                handle.callback()


class FakeClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


# Mid-morning local time, away from midnight and DST switches.
T0 = datetime(2025, 3, 10, 10, 0, 0).astimezone()


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def clock():
    return FakeClock(T0)


@pytest.fixture
def store():
    """Create an in-memory LocalStore for each test."""
    s = LocalStore(":memory:")
    s.init_db()
    yield s
    s.close()
