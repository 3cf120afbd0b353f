"""Core data models for PomoTrack.

Defines all dataclasses and enums used across the application:
- Projects and sessions: Project, SessionType, Session
- Timer: PomodoroSettings, ActiveTimer, TimerStatus, RecoverySnapshot
- Sync: DailySyncDocument, RangeDocument
- Statistics: HourlyPoint, DailyPoint, ProjectPoint, Stats
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pomotrack.core.timeutil import from_iso, to_iso

BREAK_TARGET = "break"


# ---------------------------------------------------------------------------
# Projects and sessions
# ---------------------------------------------------------------------------

@dataclass
class Project:
    """A user project that sessions are recorded against."""
    id: str
    name: str
    color: str

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "color": self.color}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Project":
        return cls(id=str(data["id"]), name=data.get("name", ""), color=data.get("color", ""))


class SessionType(Enum):
    """Classification of a completed session."""
    WORK = "work"
    BREAK = "break"
    POMODORO = "pomodoro"


@dataclass(frozen=True)
class Session:
    """One completed, immutable timer run."""
    id: str
    project_id: str            # a Project id or BREAK_TARGET
    start_time: datetime       # UTC
    end_time: datetime         # UTC
    duration: int              # whole seconds, authoritative
    date: str                  # owning day, YYYY-MM-DD, from the stop-time clock
    type: SessionType

    @property
    def is_break(self) -> bool:
        return self.project_id == BREAK_TARGET or self.type is SessionType.BREAK

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "projectId": self.project_id,
            "startTime": to_iso(self.start_time),
            "endTime": to_iso(self.end_time),
            "duration": self.duration,
            "date": self.date,
            "type": self.type.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Session":
        start = from_iso(data["startTime"])
        end = from_iso(data["endTime"])
        date = data.get("date") or start.date().isoformat()
        return cls(
            id=str(data["id"]),
            project_id=str(data["projectId"]),
            start_time=start,
            end_time=end,
            duration=int(data.get("duration", 0)),
            date=date,
            type=SessionType(data.get("type", SessionType.WORK.value)),
        )


# ---------------------------------------------------------------------------
# Timer
# ---------------------------------------------------------------------------

@dataclass
class PomodoroSettings:
    """Countdown configuration for the active timer."""
    enabled: bool = True
    duration_seconds: int = 25 * 60
    remaining_seconds: int = 0

    @property
    def counting_down(self) -> bool:
        return self.enabled and self.duration_seconds > 0


@dataclass
class ActiveTimer:
    """The single transient in-progress run."""
    target: str                # project id or BREAK_TARGET
    started_at: datetime       # UTC, moved backward on resume
    elapsed_seconds: int = 0
    is_paused: bool = False
    paused_elapsed: int = 0
    finishing: bool = False    # completion recorded, display hold running

    @property
    def is_break(self) -> bool:
        return self.target == BREAK_TARGET


@dataclass
class TimerStatus:
    """Read-only view of the timer for display collaborators."""
    target: Optional[str]
    elapsed_seconds: int
    remaining_seconds: int
    is_paused: bool
    is_countdown: bool
    is_finishing: bool

    @property
    def is_idle(self) -> bool:
        return self.target is None


@dataclass
class RecoverySnapshot:
    """Persisted copy of the active timer used for crash recovery."""
    target: str
    started_at: datetime
    is_paused: bool
    paused_elapsed: int
    pomodoro_enabled: bool
    pomodoro_duration: int
    last_seen: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "activeTimer": self.target,
            "startTime": to_iso(self.started_at),
            "isPaused": self.is_paused,
            "pausedElapsed": self.paused_elapsed,
            "pomodoroMode": self.pomodoro_enabled,
            "pomodoroDuration": self.pomodoro_duration,
            "lastSeen": to_iso(self.last_seen),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RecoverySnapshot":
        return cls(
            target=str(data["activeTimer"]),
            started_at=from_iso(data["startTime"]),
            is_paused=bool(data.get("isPaused", False)),
            paused_elapsed=int(data.get("pausedElapsed", 0)),
            pomodoro_enabled=bool(data.get("pomodoroMode", False)),
            pomodoro_duration=int(data.get("pomodoroDuration", 0)),
            last_seen=from_iso(data["lastSeen"]),
        )


# ---------------------------------------------------------------------------
# Sync
# ---------------------------------------------------------------------------

@dataclass
class DailySyncDocument:
    """The remote store's one-document-per-day record."""
    date: str
    sessions: list[Session] = field(default_factory=list)
    projects: list[Project] = field(default_factory=list)
    synced_at: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DailySyncDocument":
        return cls(
            date=data.get("date", ""),
            sessions=[Session.from_dict(s) for s in data.get("sessions") or []],
            projects=[Project.from_dict(p) for p in data.get("projects") or []],
            synced_at=data.get("syncedAt"),
        )


@dataclass
class RangeDocument:
    """Aggregated sessions and projects for a date range."""
    date_from: str
    date_to: str
    sessions: list[Session] = field(default_factory=list)
    projects: list[Project] = field(default_factory=list)
    files_loaded: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RangeDocument":
        return cls(
            date_from=data.get("from", ""),
            date_to=data.get("to", ""),
            sessions=[Session.from_dict(s) for s in data.get("sessions") or []],
            projects=[Project.from_dict(p) for p in data.get("projects") or []],
            files_loaded=int(data.get("filesLoaded", 0)),
        )


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------

@dataclass
class HourlyPoint:
    label: str      # "HH:00"
    minutes: int    # capped at 60


@dataclass
class DailyPoint:
    date: str
    hours: float    # one decimal


@dataclass
class ProjectPoint:
    project_id: str
    name: str
    color: str
    seconds: int
    value: float    # minutes under one hour, else hours to one decimal
    unit: str       # "m" or "h"


@dataclass
class Stats:
    """Everything derived from the session log for one point in time."""
    today_total: int
    week_total: int
    today_sessions: list[Session] = field(default_factory=list)
    week_sessions: list[Session] = field(default_factory=list)
    hourly: list[HourlyPoint] = field(default_factory=list)
    daily: list[DailyPoint] = field(default_factory=list)
    projects: list[ProjectPoint] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Application state
# ---------------------------------------------------------------------------

@dataclass
class AppState:
    """Process-wide state container owned by the Tracker and injected into
    each component."""
    projects: list[Project] = field(default_factory=list)
    sessions: list[Session] = field(default_factory=list)
    timer: Optional[ActiveTimer] = None
    pomodoro: PomodoroSettings = field(default_factory=PomodoroSettings)

    def find_project(self, project_id: str) -> Optional[Project]:
        for project in self.projects:
            if project.id == project_id:
                return project
        return None
