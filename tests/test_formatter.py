"""Unit tests for TextFormatter."""

from datetime import date, datetime, timedelta

from pomotrack.core.models import BREAK_TARGET, Project, Session, SessionType
from pomotrack.reporting.formatter import TextFormatter
from pomotrack.reporting.stats import compute_stats

NOW = datetime(2025, 3, 10, 12, 0).astimezone()
PROJECTS = [Project("p1", "Work Project", "#00ff88"), Project("p2", "Learning", "#00d4ff")]


def _session(sid, project_id, start_hour, seconds, kind=SessionType.WORK, day=10):
    start = datetime(2025, 3, day, start_hour, 0).astimezone()
    return Session(
        id=sid,
        project_id=project_id,
        start_time=start,
        end_time=start + timedelta(seconds=seconds),
        duration=seconds,
        date=f"2025-03-{day:02d}",
        type=kind,
    )


SESSIONS = [
    _session("a", "p1", 9, 1500, SessionType.POMODORO),
    _session("b", BREAK_TARGET, 10, 300, SessionType.BREAK),
    _session("c", "p2", 10, 5400, day=8),
]


class TestSessionLabel:
    def test_project_name(self):
        by_id = {p.id: p for p in PROJECTS}
        assert TextFormatter.session_label(SESSIONS[0], by_id) == "Work Project"

    def test_break(self):
        assert TextFormatter.session_label(SESSIONS[1], {}) == "Break"

    def test_unknown_project_falls_back_to_id(self):
        assert TextFormatter.session_label(_session("x", "zzz", 9, 60), {}) == "zzz"


class TestFormatToday:
    def test_header_and_totals(self):
        text = TextFormatter.format_today(compute_stats(SESSIONS, PROJECTS, NOW), PROJECTS, date(2025, 3, 10))
        assert "Today: Monday, March 10, 2025" in text
        assert "Total     00:30:00" in text
        assert "Sessions  2" in text

    def test_lists_sessions_newest_first(self):
        text = TextFormatter.format_today(compute_stats(SESSIONS, PROJECTS, NOW), PROJECTS, date(2025, 3, 10))
        assert text.index("Break") < text.index("Work Project")
        assert "(pomodoro)" in text

    def test_hourly_chart_has_eight_rows(self):
        text = TextFormatter.format_today(compute_stats([], PROJECTS, NOW), PROJECTS, date(2025, 3, 10))
        assert text.count(":00  ") == 8
        assert "No sessions today" in text


class TestFormatWeek:
    def test_totals_and_projects(self):
        text = TextFormatter.format_week(compute_stats(SESSIONS, PROJECTS, NOW))
        assert "Total  02:00:00" in text
        assert "Work Project" in text
        assert "25m" in text
        assert "1.5h" in text

    def test_no_projects(self):
        text = TextFormatter.format_week(compute_stats([], PROJECTS, NOW))
        assert "No data this week." in text
        assert text.count("0.0h") == 7
