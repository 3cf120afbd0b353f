"""Text formatter for PomoTrack statistics.

Renders a ``Stats`` snapshot as aligned plain-text reports for the CLI.
"""

from datetime import date

from pomotrack.core.models import Project, ProjectPoint, Session, Stats
from pomotrack.core.timeutil import format_time, format_time_short


class TextFormatter:
    """Formats statistics as human-readable plain text."""

    BAR_WIDTH = 30

    @staticmethod
    def session_label(session: Session, projects: dict[str, Project]) -> str:
        if session.is_break:
            return "Break"
        project = projects.get(session.project_id)
        return project.name if project else session.project_id

    @staticmethod
    def _format_project_table(points: list[ProjectPoint]) -> str:
        """Render per-project totals with aligned columns.

        Returns lines like:
          Project        Time
          ───────────────────
          Work Project   2.5h
          Learning        45m
        """
        if not points:
            return "  No data this week.\n"

        name_width = max(len(p.name) for p in points)
        name_width = max(name_width, len("Project"))
        values = [f"{p.value:g}{p.unit}" for p in points]
        value_width = max(max(len(v) for v in values), len("Time"))

        header = f"  {'Project':<{name_width}}  {'Time':>{value_width}}"
        separator = "  " + "─" * (len(header) - 2)
        lines = [header, separator]
        for point, value in zip(points, values):
            lines.append(f"  {point.name:<{name_width}}  {value:>{value_width}}")
        return "\n".join(lines) + "\n"

    @staticmethod
    def format_today(stats: Stats, projects: list[Project], day: date) -> str:
        """Render today's totals, the hourly chart and the session list."""
        by_id = {p.id: p for p in projects}
        parts = [f"Today: {day.strftime('%A, %B %d, %Y')}\n\n"]
        parts.append(f"  Total     {format_time(stats.today_total)}\n")
        parts.append(f"  Sessions  {len(stats.today_sessions)}\n")

        parts.append("\nLast 8 hours (minutes):\n")
        for point in stats.hourly:
            bar = "█" * round(point.minutes / 60 * TextFormatter.BAR_WIDTH)
            parts.append(f"  {point.label}  {bar} {point.minutes}\n")

        parts.append("\nSessions:\n")
        if not stats.today_sessions:
            parts.append("  No sessions today\n")
        ordered = sorted(stats.today_sessions, key=lambda s: s.start_time, reverse=True)
        for session in ordered:
            start = session.start_time.astimezone().strftime("%H:%M")
            end = session.end_time.astimezone().strftime("%H:%M")
            label = TextFormatter.session_label(session, by_id)
            parts.append(
                f"  {start} - {end}  {label:<20} {format_time_short(session.duration):>7}"
                f"  ({session.type.value})\n"
            )
        return "".join(parts)

    @staticmethod
    def format_week(stats: Stats) -> str:
        """Render the seven-day totals, daily hours and project breakdown."""
        parts = ["Last 7 days\n\n"]
        parts.append(f"  Total  {format_time(stats.week_total)}\n")

        parts.append("\nDaily hours:\n")
        for point in stats.daily:
            label = date.fromisoformat(point.date).strftime("%a %d")
            bar = "█" * min(TextFormatter.BAR_WIDTH, round(point.hours * 3))
            parts.append(f"  {label}  {bar} {point.hours:.1f}h\n")

        parts.append("\nProjects:\n")
        parts.append(TextFormatter._format_project_table(stats.projects))
        return "".join(parts)
