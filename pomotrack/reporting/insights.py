"""Prompt construction for AI productivity suggestions."""

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Iterable, Optional

from pomotrack.core.models import Project, Session, Stats
from pomotrack.core.timeutil import format_time

DAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]


@dataclass
class ProjectShare:
    name: str
    hours: float
    sessions: int
    percent: int


@dataclass
class HistorySummary:
    """Aggregates over a history window that feed the prompt."""
    work_seconds: int = 0
    break_seconds: int = 0
    work_sessions: int = 0
    break_sessions: int = 0
    projects: list[ProjectShare] = field(default_factory=list)
    peak_hours: list[str] = field(default_factory=list)
    best_days: list[str] = field(default_factory=list)

    @property
    def focus_rest_ratio(self) -> Optional[float]:
        if self.break_seconds <= 0:
            return None
        return self.work_seconds / self.break_seconds


def summarize_history(sessions: Iterable[Session], projects: Iterable[Project]) -> HistorySummary:
    names = {p.id: p.name for p in projects}
    summary = HistorySummary()
    per_project: dict[str, list[int]] = defaultdict(lambda: [0, 0])
    per_hour: dict[int, int] = defaultdict(int)
    per_day: dict[int, int] = defaultdict(int)

    for s in sessions:
        if s.is_break:
            summary.break_seconds += s.duration
            summary.break_sessions += 1
            continue
        summary.work_seconds += s.duration
        summary.work_sessions += 1
        per_project[s.project_id][0] += s.duration
        per_project[s.project_id][1] += 1
        local_start = s.start_time.astimezone()
        per_hour[local_start.hour] += s.duration
        per_day[local_start.weekday()] += s.duration

    total = summary.work_seconds or 1
    shares = [
        ProjectShare(
            name=names.get(pid, pid),
            hours=round(seconds / 3600, 1),
            sessions=count,
            percent=round(seconds / total * 100),
        )
        for pid, (seconds, count) in per_project.items()
    ]
    summary.projects = sorted(shares, key=lambda p: p.hours, reverse=True)
    top_hours = sorted(per_hour.items(), key=lambda kv: kv[1], reverse=True)[:3]
    summary.peak_hours = [f"{hour}:00" for hour, _ in top_hours]
    top_days = sorted(per_day.items(), key=lambda kv: kv[1], reverse=True)[:3]
    summary.best_days = [DAY_NAMES[day] for day, _ in top_days]
    return summary


def build_insights_prompt(
    sessions: Iterable[Session],
    projects: Iterable[Project],
    today_stats: Stats,
    days_with_data: Optional[int] = None,
    history_days: int = 30,
) -> str:
    """Turn the history window and today's stats into a coaching prompt."""
    summary = summarize_history(sessions, projects)
    ratio = summary.focus_rest_ratio
    ratio_text = f"{ratio:.1f}" if ratio is not None else "∞"
    project_lines = "\n".join(
        f"- {p.name}: {p.hours}h ({p.sessions} sess.) [{p.percent}% of total]"
        for p in summary.projects
    ) or "- No project data"
    peak = ", ".join(summary.peak_hours) or "Insufficient data"
    best = ", ".join(summary.best_days) or "Insufficient data"

    return f"""
Act as an expert Productivity Coach and Behavioral Analyst specializing in "Deep Work" and time management.
Your goal is to analyze the user's raw data and transform it into strategic insights, not just descriptive text.

USER DATA:
----------------
[GENERAL METRICS - {history_days} DAYS]
- Total Work Time: {format_time(summary.work_seconds)}
- Focus Sessions: {summary.work_sessions}
- Total Break Time: {format_time(summary.break_seconds)} ({summary.break_sessions} recorded breaks)
- Focus/Rest Ratio: {ratio_text}:1 (Ideal target between 3:1 and 6:1)
- Consistency: Data available for {days_with_data or 1} days.

[PROJECT ALLOCATION]
{project_lines}

[CHRONOTYPE & PATTERNS]
- Peak Hours (Flow State): {peak}
- Best Days: {best}

[TODAY]
- Work done: {format_time(today_stats.today_total)} across {len(today_stats.today_sessions)} sessions.
----------------

ANALYSIS INSTRUCTIONS:
1. Evaluate the **Focus/Rest Ratio**: If > 6:1, warn about burnout risk. If < 2:1, flag potential distractions.
2. Analyze **Fragmentation**: If there are many short sessions, suggest consolidating work blocks.
3. Check **Monotasking**: If one project dominates >80% of time, check if other priorities are being neglected.

REQUIRED OUTPUT (Use Markdown formatting):
### Rapid Diagnosis
[One punchy sentence on current status based on the numbers.]

### Key Insights
- **What's Working:** [A specific positive data point]
- **Critical Area:** [A negative pattern or risk]

### Personalized Strategy
[Two tactical tips that reference the numbers and specific project names.]

### Your Mission Today
[ONE specific and actionable task based on "TODAY" data and "PATTERNS".]

Tone of voice: Professional, direct, motivating but data-driven. Do not be verbose.
"""
