"""Date/time helpers shared by the timer, statistics and sync code.

Timestamps are handled as timezone-aware ``datetime`` objects and persisted
as ISO 8601 strings in UTC.  Calendar days (``YYYY-MM-DD``) are always
taken from the local clock.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Optional, Protocol


class _Interval(Protocol):
    start_time: datetime
    end_time: datetime


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_iso(value: datetime) -> str:
    """Serialize *value* as ISO 8601 in UTC with millisecond precision."""
    if value.tzinfo is None:
        value = value.astimezone()
    value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def from_iso(text: str) -> datetime:
    """Parse an ISO 8601 timestamp (``Z`` suffix accepted) into an aware datetime."""
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    value = datetime.fromisoformat(text)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def local_date(now: Optional[datetime] = None) -> date:
    """Return the local calendar date for *now* (default: the current time)."""
    now = now or utcnow()
    return now.astimezone().date()


def today(now: Optional[datetime] = None) -> str:
    """Current local calendar date as ``YYYY-MM-DD``."""
    return local_date(now).isoformat()


def days_ago(n: int, now: Optional[datetime] = None) -> str:
    """Calendar date *n* days before today as ``YYYY-MM-DD``."""
    return (local_date(now) - timedelta(days=n)).isoformat()


def overlap_seconds(session: _Interval, window_start: datetime, window_end: datetime) -> float:
    """Seconds of ``[session.start_time, session.end_time)`` inside the window.

    Returns 0 for disjoint intervals.  The result never exceeds the window
    length, so summing over consecutive windows yields at most the
    session's own span.
    """
    if session.end_time <= window_start or session.start_time >= window_end:
        return 0.0
    start = max(session.start_time, window_start)
    end = min(session.end_time, window_end)
    window_len = (window_end - window_start).total_seconds()
    return min(max((end - start).total_seconds(), 0.0), window_len)


def hour_start(now: datetime, hours_back: int = 0) -> datetime:
    """Local hour boundary *hours_back* hours before the hour containing *now*.

    The step back is taken in UTC and each result is converted to the local
    offset in force at that instant, so windows stay one real hour wide
    across a DST switch.
    """
    aligned = now.astimezone().replace(minute=0, second=0, microsecond=0)
    start = aligned.astimezone(timezone.utc) - timedelta(hours=hours_back)
    return start.astimezone()


def format_time(seconds: int) -> str:
    """Format seconds as ``HH:MM:SS``.  Negative values render as zero."""
    seconds = max(0, int(seconds))
    h, rem = divmod(seconds, 3600)
    m, s = divmod(rem, 60)
    return f"{h:02d}:{m:02d}:{s:02d}"


def format_time_short(seconds: int) -> str:
    """Format seconds as ``'Xh Ym'`` or ``'Ym'``, truncating to minutes."""
    seconds = max(0, int(seconds))
    h, rem = divmod(seconds, 3600)
    m = rem // 60
    if h > 0:
        return f"{h}h {m}m"
    return f"{m}m"
