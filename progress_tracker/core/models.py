"""Typed entities and their persisted column layout.

Each entity converts to and from a flat row (``dict[str, str]``) whose keys
are the collection's columns. List-valued attributes are stored as compact
JSON arrays. Overall statuses are derived from the per-goal status list on
every read and write; a stored value is never trusted.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Iterable, Mapping

from progress_tracker.errors import CodecError


class GoalStatus(str, Enum):
    ACHIEVED = "achieved"
    PARTIAL = "partial"
    NOT_ACHIEVED = "not_achieved"


class StudentStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


STUDENTS = "students"
WEEKLY_ENTRIES = "weekly_entries"
TEAMS = "teams"
TEAM_MEMBERSHIPS = "team_memberships"
TEAM_WEEKLY_ENTRIES = "team_weekly_entries"

# Fixed order used for loading and saving.
COLLECTIONS: tuple[str, ...] = (
    STUDENTS,
    WEEKLY_ENTRIES,
    TEAMS,
    TEAM_MEMBERSHIPS,
    TEAM_WEEKLY_ENTRIES,
)

COLUMNS: dict[str, list[str]] = {
    STUDENTS: [
        "id",
        "full_name",
        "email",
        "cohort",
        "start_date",
        "status",
        "research_area",
        "supervisor",
        "notes",
        "created_at",
        "updated_at",
    ],
    WEEKLY_ENTRIES: [
        "id",
        "student_id",
        "week_start_date",
        "goals_set_json",
        "per_goal_status_json",
        "overall_status",
        "progress_notes",
        "next_week_goals_json",
        "created_by",
        "created_at",
        "updated_at",
    ],
    TEAMS: ["id", "team_name", "description", "created_at", "updated_at"],
    TEAM_MEMBERSHIPS: ["id", "team_id", "student_id", "role_in_team", "created_at"],
    TEAM_WEEKLY_ENTRIES: [
        "id",
        "team_id",
        "week_start_date",
        "team_goals_set_json",
        "team_per_goal_status_json",
        "team_overall_status",
        "team_progress_notes",
        "next_week_team_goals_json",
        "created_by",
        "created_at",
        "updated_at",
    ],
}


def derive_overall_status(statuses: Iterable[str]) -> str:
    """Summarize per-goal statuses.

    Empty -> not_achieved; all achieved -> achieved; none achieved ->
    not_achieved; anything else -> partial.
    """

    values = [s.value if isinstance(s, Enum) else str(s) for s in statuses]
    if not values:
        return GoalStatus.NOT_ACHIEVED.value
    achieved = sum(1 for s in values if s == GoalStatus.ACHIEVED.value)
    if achieved == len(values):
        return GoalStatus.ACHIEVED.value
    if achieved == 0:
        return GoalStatus.NOT_ACHIEVED.value
    return GoalStatus.PARTIAL.value


def dump_list(values: Iterable[str]) -> str:
    return json.dumps([str(v) for v in values], ensure_ascii=False, separators=(",", ":"))


def load_list(raw: str | None, *, column: str) -> list[str]:
    text = (raw or "").strip()
    if not text:
        return []
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise CodecError(f"Column {column!r} is not a JSON array: {raw!r}") from exc
    if not isinstance(data, list):
        raise CodecError(f"Column {column!r} must hold a JSON array, got {type(data).__name__}")
    return [str(v) for v in data]


def _cell(row: Mapping[str, Any], key: str) -> str:
    value = row.get(key)
    return "" if value is None else str(value)


@dataclass
class Student:
    id: str
    full_name: str
    email: str = ""
    cohort: str = ""
    start_date: str = ""
    status: str = StudentStatus.ACTIVE.value
    research_area: str = ""
    supervisor: str = ""
    notes: str = ""
    created_at: str = ""
    updated_at: str = ""

    def to_row(self) -> dict[str, str]:
        return {k: str(v) for k, v in asdict(self).items()}

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Student":
        return cls(**{name: _cell(row, name) for name in COLUMNS[STUDENTS]})


@dataclass
class WeeklyEntry:
    id: str
    student_id: str
    week_start_date: str
    goals: list[str] = field(default_factory=list)
    per_goal_status: list[str] = field(default_factory=list)
    progress_notes: str = ""
    next_week_goals: list[str] = field(default_factory=list)
    created_by: str = ""
    created_at: str = ""
    updated_at: str = ""

    @property
    def overall_status(self) -> str:
        return derive_overall_status(self.per_goal_status)

    @property
    def goals_achieved(self) -> int:
        return sum(1 for s in self.per_goal_status if s == GoalStatus.ACHIEVED.value)

    def to_row(self) -> dict[str, str]:
        return {
            "id": self.id,
            "student_id": self.student_id,
            "week_start_date": self.week_start_date,
            "goals_set_json": dump_list(self.goals),
            "per_goal_status_json": dump_list(self.per_goal_status),
            "overall_status": self.overall_status,
            "progress_notes": self.progress_notes,
            "next_week_goals_json": dump_list(self.next_week_goals),
            "created_by": self.created_by,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "WeeklyEntry":
        return cls(
            id=_cell(row, "id"),
            student_id=_cell(row, "student_id"),
            week_start_date=_cell(row, "week_start_date"),
            goals=load_list(row.get("goals_set_json"), column="goals_set_json"),
            per_goal_status=load_list(row.get("per_goal_status_json"), column="per_goal_status_json"),
            progress_notes=_cell(row, "progress_notes"),
            next_week_goals=load_list(row.get("next_week_goals_json"), column="next_week_goals_json"),
            created_by=_cell(row, "created_by"),
            created_at=_cell(row, "created_at"),
            updated_at=_cell(row, "updated_at"),
        )


@dataclass
class Team:
    id: str
    team_name: str
    description: str = ""
    created_at: str = ""
    updated_at: str = ""

    def to_row(self) -> dict[str, str]:
        return {k: str(v) for k, v in asdict(self).items()}

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Team":
        return cls(**{name: _cell(row, name) for name in COLUMNS[TEAMS]})


@dataclass
class TeamMembership:
    id: str
    team_id: str
    student_id: str
    role_in_team: str = "member"
    created_at: str = ""

    def to_row(self) -> dict[str, str]:
        return {k: str(v) for k, v in asdict(self).items()}

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "TeamMembership":
        return cls(**{name: _cell(row, name) for name in COLUMNS[TEAM_MEMBERSHIPS]})


@dataclass
class TeamWeeklyEntry:
    id: str
    team_id: str
    week_start_date: str
    team_goals: list[str] = field(default_factory=list)
    team_per_goal_status: list[str] = field(default_factory=list)
    team_progress_notes: str = ""
    next_week_team_goals: list[str] = field(default_factory=list)
    created_by: str = ""
    created_at: str = ""
    updated_at: str = ""

    @property
    def team_overall_status(self) -> str:
        return derive_overall_status(self.team_per_goal_status)

    def to_row(self) -> dict[str, str]:
        return {
            "id": self.id,
            "team_id": self.team_id,
            "week_start_date": self.week_start_date,
            "team_goals_set_json": dump_list(self.team_goals),
            "team_per_goal_status_json": dump_list(self.team_per_goal_status),
            "team_overall_status": self.team_overall_status,
            "team_progress_notes": self.team_progress_notes,
            "next_week_team_goals_json": dump_list(self.next_week_team_goals),
            "created_by": self.created_by,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "TeamWeeklyEntry":
        return cls(
            id=_cell(row, "id"),
            team_id=_cell(row, "team_id"),
            week_start_date=_cell(row, "week_start_date"),
            team_goals=load_list(row.get("team_goals_set_json"), column="team_goals_set_json"),
            team_per_goal_status=load_list(
                row.get("team_per_goal_status_json"), column="team_per_goal_status_json"
            ),
            team_progress_notes=_cell(row, "team_progress_notes"),
            next_week_team_goals=load_list(
                row.get("next_week_team_goals_json"), column="next_week_team_goals_json"
            ),
            created_by=_cell(row, "created_by"),
            created_at=_cell(row, "created_at"),
            updated_at=_cell(row, "updated_at"),
        )


ENTITY_TYPES: dict[str, type] = {
    STUDENTS: Student,
    WEEKLY_ENTRIES: WeeklyEntry,
    TEAMS: Team,
    TEAM_MEMBERSHIPS: TeamMembership,
    TEAM_WEEKLY_ENTRIES: TeamWeeklyEntry,
}


def empty_collections() -> dict[str, list[dict[str, str]]]:
    return {name: [] for name in COLLECTIONS}
