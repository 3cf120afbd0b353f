"""Statistics derived from the session log.

Every function here is pure: it reads sessions (and projects) and returns
new values, never mutating its inputs.  Results are recomputed on demand.
"""

from collections import defaultdict
from datetime import datetime, timedelta
from typing import Iterable, Optional

from pomotrack.core.models import (
    DailyPoint,
    HourlyPoint,
    Project,
    ProjectPoint,
    Session,
    Stats,
)
from pomotrack.core.timeutil import days_ago, hour_start, overlap_seconds, today, utcnow

HOURLY_POINTS = 8
DAILY_POINTS = 7
WEEK_DAYS = 7


def sessions_on(sessions: Iterable[Session], day: str) -> list[Session]:
    return [s for s in sessions if s.date == day]


def sessions_since(sessions: Iterable[Session], first_day: str, last_day: str) -> list[Session]:
    """Sessions whose owning day lies in ``[first_day, last_day]`` inclusive."""
    return [s for s in sessions if first_day <= s.date <= last_day]


def total_duration(sessions: Iterable[Session]) -> int:
    return sum(s.duration for s in sessions)


def today_total(sessions: Iterable[Session], now: Optional[datetime] = None) -> int:
    """Seconds recorded on today's date."""
    return total_duration(sessions_on(sessions, today(now)))


def week_total(sessions: Iterable[Session], now: Optional[datetime] = None) -> int:
    """Seconds recorded from six days ago through today."""
    return total_duration(
        sessions_since(sessions, days_ago(WEEK_DAYS - 1, now), today(now))
    )


def hourly_series(sessions: Iterable[Session], now: Optional[datetime] = None) -> list[HourlyPoint]:
    """Minutes worked in each of the last eight local hours, oldest first.

    A session crossing an hour boundary contributes to each hour only the
    part that falls inside it.  Each point is capped at 60 minutes.
    """
    now = now or utcnow()
    todays = sessions_on(sessions, today(now))
    points: list[HourlyPoint] = []
    for back in range(HOURLY_POINTS - 1, -1, -1):
        start = hour_start(now, back)
        end = start + timedelta(hours=1)
        seconds = sum(overlap_seconds(s, start, end) for s in todays)
        points.append(
            HourlyPoint(label=f"{start.hour:02d}:00", minutes=min(60, round(seconds / 60)))
        )
    return points


def daily_series(sessions: Iterable[Session], now: Optional[datetime] = None) -> list[DailyPoint]:
    """Hours (one decimal) recorded on each of the last seven days, oldest first."""
    by_day: dict[str, int] = defaultdict(int)
    for s in sessions:
        by_day[s.date] += s.duration
    points = []
    for back in range(DAILY_POINTS - 1, -1, -1):
        day = days_ago(back, now)
        points.append(DailyPoint(date=day, hours=round(by_day.get(day, 0) / 3600, 1)))
    return points


def project_series(
    sessions: Iterable[Session],
    projects: Iterable[Project],
    now: Optional[datetime] = None,
) -> list[ProjectPoint]:
    """Per-project totals over the trailing seven days.

    Totals under an hour are expressed in whole minutes (unit ``'m'``),
    longer ones in hours to one decimal (unit ``'h'``).  Projects with no
    time in the window are left out.
    """
    week = sessions_since(sessions, days_ago(WEEK_DAYS - 1, now), today(now))
    per_project: dict[str, int] = defaultdict(int)
    for s in week:
        per_project[s.project_id] += s.duration

    points = []
    for project in projects:
        seconds = per_project.get(project.id, 0)
        if seconds <= 0:
            continue
        if seconds >= 3600:
            value, unit = round(seconds / 3600, 1), "h"
        else:
            value, unit = round(seconds / 60), "m"
        points.append(
            ProjectPoint(
                project_id=project.id,
                name=project.name,
                color=project.color,
                seconds=seconds,
                value=value,
                unit=unit,
            )
        )
    return points


def compute_stats(
    sessions: Iterable[Session],
    projects: Iterable[Project],
    now: Optional[datetime] = None,
) -> Stats:
    """Build every aggregate for the dashboard in one pass over the inputs."""
    now = now or utcnow()
    sessions = list(sessions)
    projects = list(projects)
    today_str = today(now)
    todays = sessions_on(sessions, today_str)
    week = sessions_since(sessions, days_ago(WEEK_DAYS - 1, now), today_str)
    return Stats(
        today_total=total_duration(todays),
        week_total=total_duration(week),
        today_sessions=todays,
        week_sessions=week,
        hourly=hourly_series(sessions, now),
        daily=daily_series(sessions, now),
        projects=project_series(sessions, projects, now),
    )
