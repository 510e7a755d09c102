"""Read-only projections behind the dashboard, student list and team pages.

All functions are pure over a ``TrackerRepository`` and return plain values
or ``pandas.DataFrame`` tables; nothing here touches the store. "This week"
defaults to the current week start in the tracker timezone.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import pandas as pd

from progress_tracker.core.calendar import (
    current_week_start,
    format_for_display,
    recent_week_starts,
    require_week_start,
)
from progress_tracker.core.models import GoalStatus, StudentStatus
from progress_tracker.repository import TrackerRepository

NO_ENTRY = "no_entry"
ALL = "all"

OVERVIEW_COLUMNS = [
    "student_id",
    "full_name",
    "research_area",
    "status",
    "current_status",
    "goals_achieved",
    "has_entry",
    "last_updated",
]


def percent(part: int, whole: int) -> int:
    """Integer percentage rounded half-up; 0 when ``whole`` is 0."""

    if whole <= 0:
        return 0
    return (200 * part + whole) // (2 * whole)


@dataclass(frozen=True)
class DashboardSummary:
    week_start_date: str
    active_students: int
    students_with_entry: int
    pct_with_entry: int
    entries_this_week: int
    achieved_this_week: int
    completion_rate: int


def dashboard_summary(
    repo: TrackerRepository,
    week: Optional[str] = None,
    *,
    now: Optional[datetime] = None,
) -> DashboardSummary:
    """Headline numbers for ``week``; raises ``ValidationError`` unless it is a Monday."""

    week = require_week_start(week) if week else current_week_start(now)
    active = [s for s in repo.students if s.status == StudentStatus.ACTIVE.value]
    with_entry = sum(1 for s in active if repo.has_entry_for_week(s.id, week))

    entries = [e for e in repo.weekly_entries if e.week_start_date == week]
    achieved = sum(1 for e in entries if e.overall_status == GoalStatus.ACHIEVED.value)

    return DashboardSummary(
        week_start_date=week,
        active_students=len(active),
        students_with_entry=with_entry,
        pct_with_entry=percent(with_entry, len(active)),
        entries_this_week=len(entries),
        achieved_this_week=achieved,
        completion_rate=percent(achieved, len(entries)),
    )


def student_overview(
    repo: TrackerRepository,
    week: Optional[str] = None,
    *,
    now: Optional[datetime] = None,
) -> pd.DataFrame:
    """One row per student, sorted by name (case-insensitive)."""

    week = week or current_week_start(now)
    rows = []
    for s in repo.students:
        current = repo.entry_by_student_and_week(s.id, week)
        rows.append(
            {
                "student_id": s.id,
                "full_name": s.full_name,
                "research_area": s.research_area,
                "status": s.status,
                "current_status": current.overall_status if current else NO_ENTRY,
                "goals_achieved": (
                    f"{current.goals_achieved}/{len(current.per_goal_status)}" if current else "-"
                ),
                "has_entry": current is not None,
                "last_updated": repo.last_updated_for_student(s.id) or "",
            }
        )

    if not rows:
        return pd.DataFrame(columns=OVERVIEW_COLUMNS)

    df = pd.DataFrame(rows, columns=OVERVIEW_COLUMNS)
    return df.sort_values("full_name", key=lambda col: col.str.lower(), kind="stable").reset_index(drop=True)


def filter_students(
    repo: TrackerRepository,
    *,
    search: str = "",
    status: str = ALL,
    team_id: str = ALL,
    has_entry: str = ALL,
    week: Optional[str] = None,
    now: Optional[datetime] = None,
) -> pd.DataFrame:
    """Student overview narrowed by the list-page filters.

    ``has_entry`` is ``"yes"``, ``"no"`` or ``"all"``.
    """

    df = student_overview(repo, week, now=now)
    if df.empty:
        return df

    mask = pd.Series(True, index=df.index)
    needle = search.strip().lower()
    if needle:
        mask &= df["full_name"].str.lower().str.contains(needle, regex=False)
    if status != ALL:
        mask &= df["status"] == status
    if team_id != ALL:
        member_ids = {m.student_id for m in repo.team_memberships if m.team_id == team_id}
        mask &= df["student_id"].isin(member_ids)
    if has_entry != ALL:
        mask &= df["has_entry"] == (has_entry == "yes")

    return df.loc[mask].reset_index(drop=True)


def status_history(
    repo: TrackerRepository,
    student_id: str,
    weeks: int = 4,
    *,
    now: Optional[datetime] = None,
) -> pd.DataFrame:
    """Overall status for the most recent ``weeks`` week starts, newest first."""

    rows = []
    for week in recent_week_starts(weeks, now):
        entry = repo.entry_by_student_and_week(student_id, week)
        rows.append(
            {
                "week_start_date": week,
                "label": format_for_display(week),
                "overall_status": entry.overall_status if entry else NO_ENTRY,
                "entry_id": entry.id if entry else "",
            }
        )
    return pd.DataFrame(rows, columns=["week_start_date", "label", "overall_status", "entry_id"])


def team_overview(
    repo: TrackerRepository,
    weeks: int = 3,
    *,
    now: Optional[datetime] = None,
) -> pd.DataFrame:
    """One row per (team, recent week start): members and the team's status."""

    columns = ["team_id", "team_name", "member_count", "members", "week_start_date", "team_overall_status"]
    week_starts = recent_week_starts(weeks, now)
    rows = []
    for team in repo.teams:
        members = repo.members_by_team(team.id)
        for week in week_starts:
            entry = repo.team_entry_by_team_and_week(team.id, week)
            rows.append(
                {
                    "team_id": team.id,
                    "team_name": team.team_name,
                    "member_count": len(members),
                    "members": ", ".join(m.full_name for m in members),
                    "week_start_date": week,
                    "team_overall_status": entry.team_overall_status if entry else NO_ENTRY,
                }
            )
    return pd.DataFrame(rows, columns=columns)

