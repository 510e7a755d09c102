"""In-memory entity collections for one running session.

``TrackerRepository`` is the single source of truth between loads and saves.
Queries are pure projections over the five lists. Mutations validate first
and only then touch state, so a ``ValidationError`` always leaves the
repository unchanged. Persisting is the caller's job (see
``progress_tracker.sync`` and ``progress_tracker.service``).

The repository is not thread-safe; hosts that dispatch callbacks on several
threads must funnel mutations through a single writer.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Iterable, Mapping, Sequence

from progress_tracker.core.calendar import parse_civil_date, require_week_start
from progress_tracker.core.models import (
    COLLECTIONS,
    STUDENTS,
    TEAM_MEMBERSHIPS,
    TEAM_WEEKLY_ENTRIES,
    TEAMS,
    WEEKLY_ENTRIES,
    GoalStatus,
    Student,
    StudentStatus,
    Team,
    TeamMembership,
    TeamWeeklyEntry,
    WeeklyEntry,
)
from progress_tracker.errors import ValidationError

_GOAL_STATUSES = {s.value for s in GoalStatus}
_STUDENT_STATUSES = {s.value for s in StudentStatus}


def _text(value: Any) -> str:
    return value.value if isinstance(value, Enum) else str(value)


def _default_id() -> str:
    return str(uuid.uuid4())


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_instant(text: str) -> datetime | None:
    """Parse an ISO-8601 timestamp (``Z`` suffix accepted); ``None`` if unparsable."""

    raw = str(text or "").strip()
    if not raw:
        return None
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _require_text(value: str, field_name: str) -> str:
    text = str(value or "").strip()
    if not text:
        raise ValidationError(f"{field_name} is required")
    return text


def _clean_goals(goals: Iterable[str], field_name: str) -> list[str]:
    cleaned = [str(g).strip() for g in goals if str(g or "").strip()]
    if not cleaned:
        raise ValidationError(f"At least one goal is required ({field_name})")
    return cleaned


def _clean_goals_with_status(
    goals: Sequence[str],
    statuses: Sequence[str],
    *,
    goals_field: str,
    status_field: str,
) -> tuple[list[str], list[str]]:
    """Pair goals with their statuses, dropping blank goals together with their status."""

    goals = list(goals)
    statuses = [_text(s) for s in statuses]
    if len(goals) != len(statuses):
        raise ValidationError(
            f"{status_field} must hold exactly one status per goal "
            f"({len(statuses)} statuses for {len(goals)} goals)"
        )
    bad = sorted({s for s in statuses if s not in _GOAL_STATUSES})
    if bad:
        raise ValidationError(f"Unknown goal status(es) in {status_field}: {bad}")

    kept = [(str(g).strip(), s) for g, s in zip(goals, statuses) if str(g or "").strip()]
    if not kept:
        raise ValidationError(f"At least one goal is required ({goals_field})")
    return [g for g, _ in kept], [s for _, s in kept]


class TrackerRepository:
    def __init__(
        self,
        *,
        students: Iterable[Student] = (),
        weekly_entries: Iterable[WeeklyEntry] = (),
        teams: Iterable[Team] = (),
        team_memberships: Iterable[TeamMembership] = (),
        team_weekly_entries: Iterable[TeamWeeklyEntry] = (),
        id_factory: Callable[[], str] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.students: list[Student] = list(students)
        self.weekly_entries: list[WeeklyEntry] = list(weekly_entries)
        self.teams: list[Team] = list(teams)
        self.team_memberships: list[TeamMembership] = list(team_memberships)
        self.team_weekly_entries: list[TeamWeeklyEntry] = list(team_weekly_entries)
        self._id_factory = id_factory or _default_id
        self._clock = clock or _utc_now

    # -------------
    # Conversion
    # -------------

    @classmethod
    def from_collections(
        cls,
        collections: Mapping[str, Sequence[Mapping[str, str]]],
        **kwargs,
    ) -> "TrackerRepository":
        return cls(
            students=[Student.from_row(r) for r in collections.get(STUDENTS, [])],
            weekly_entries=[WeeklyEntry.from_row(r) for r in collections.get(WEEKLY_ENTRIES, [])],
            teams=[Team.from_row(r) for r in collections.get(TEAMS, [])],
            team_memberships=[TeamMembership.from_row(r) for r in collections.get(TEAM_MEMBERSHIPS, [])],
            team_weekly_entries=[
                TeamWeeklyEntry.from_row(r) for r in collections.get(TEAM_WEEKLY_ENTRIES, [])
            ],
            **kwargs,
        )

    def to_collections(self) -> dict[str, list[dict[str, str]]]:
        return {
            STUDENTS: [s.to_row() for s in self.students],
            WEEKLY_ENTRIES: [e.to_row() for e in self.weekly_entries],
            TEAMS: [t.to_row() for t in self.teams],
            TEAM_MEMBERSHIPS: [m.to_row() for m in self.team_memberships],
            TEAM_WEEKLY_ENTRIES: [e.to_row() for e in self.team_weekly_entries],
        }

    def counts(self) -> dict[str, int]:
        collections = self.to_collections()
        return {name: len(collections[name]) for name in COLLECTIONS}

    # -------------
    # Clock / ids
    # -------------

    def _now_iso(self) -> str:
        now = self._clock()
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return now.astimezone(timezone.utc).isoformat()

    def _touch(self, previous: str) -> str:
        """New ``updated_at`` value that never moves backwards."""

        now = self._now_iso()
        prev = parse_instant(previous)
        if prev is not None and prev > parse_instant(now):
            return previous
        return now

    # -------------
    # Queries
    # -------------

    def get_student(self, student_id: str) -> Student | None:
        return next((s for s in self.students if s.id == student_id), None)

    def get_team(self, team_id: str) -> Team | None:
        return next((t for t in self.teams if t.id == team_id), None)

    def get_weekly_entry(self, entry_id: str) -> WeeklyEntry | None:
        return next((e for e in self.weekly_entries if e.id == entry_id), None)

    def get_team_weekly_entry(self, entry_id: str) -> TeamWeeklyEntry | None:
        return next((e for e in self.team_weekly_entries if e.id == entry_id), None)

    def entries_by_student(self, student_id: str) -> list[WeeklyEntry]:
        """Entries for a student, most recent week first."""
        entries = [e for e in self.weekly_entries if e.student_id == student_id]
        return sorted(entries, key=lambda e: e.week_start_date, reverse=True)

    def entry_by_student_and_week(self, student_id: str, week_start_date: str) -> WeeklyEntry | None:
        return next(
            (
                e
                for e in self.weekly_entries
                if e.student_id == student_id and e.week_start_date == week_start_date
            ),
            None,
        )

    def has_entry_for_week(self, student_id: str, week_start_date: str) -> bool:
        return self.entry_by_student_and_week(student_id, week_start_date) is not None

    def previous_entry(self, student_id: str, week_start_date: str) -> WeeklyEntry | None:
        """Latest entry strictly before ``week_start_date``.

        Its ``next_week_goals`` seed the goals of a new week.
        """
        for entry in self.entries_by_student(student_id):
            if entry.week_start_date < week_start_date:
                return entry
        return None

    def last_updated_for_student(self, student_id: str) -> str | None:
        stamps = [e.updated_at for e in self.weekly_entries if e.student_id == student_id]
        return max(stamps) if stamps else None

    def teams_by_student(self, student_id: str) -> list[Team]:
        team_ids = {m.team_id for m in self.team_memberships if m.student_id == student_id}
        return [t for t in self.teams if t.id in team_ids]

    def members_by_team(self, team_id: str) -> list[Student]:
        members: list[Student] = []
        for membership in self.team_memberships:
            if membership.team_id != team_id:
                continue
            student = self.get_student(membership.student_id)
            if student is not None:
                members.append(student)
        return members

    def team_entries_by_team(self, team_id: str) -> list[TeamWeeklyEntry]:
        entries = [e for e in self.team_weekly_entries if e.team_id == team_id]
        return sorted(entries, key=lambda e: e.week_start_date, reverse=True)

    def team_entry_by_team_and_week(self, team_id: str, week_start_date: str) -> TeamWeeklyEntry | None:
        return next(
            (
                e
                for e in self.team_weekly_entries
                if e.team_id == team_id and e.week_start_date == week_start_date
            ),
            None,
        )

    # -------------
    # Uniqueness
    # -------------

    def check_unique_weekly_entry(
        self,
        student_id: str,
        week_start_date: str,
        exclude_id: str | None = None,
    ) -> bool:
        return not any(
            e.student_id == student_id and e.week_start_date == week_start_date and e.id != exclude_id
            for e in self.weekly_entries
        )

    def check_unique_team_weekly_entry(
        self,
        team_id: str,
        week_start_date: str,
        exclude_id: str | None = None,
    ) -> bool:
        return not any(
            e.team_id == team_id and e.week_start_date == week_start_date and e.id != exclude_id
            for e in self.team_weekly_entries
        )

    # -------------
    # Students / teams
    # -------------

    def _validate_student_fields(self, full_name: str, start_date: str, status: str) -> tuple[str, str, str]:
        name = _require_text(full_name, "full_name")
        status = _text(status)
        if status not in _STUDENT_STATUSES:
            raise ValidationError(f"status must be one of {sorted(_STUDENT_STATUSES)}, got {status!r}")
        start = str(start_date or "").strip()
        if start:
            parse_civil_date(start)
            require_week_start(start, field_name="start_date")
        return name, start, status

    def create_student(
        self,
        *,
        full_name: str,
        email: str = "",
        cohort: str = "",
        start_date: str = "",
        status: str = StudentStatus.ACTIVE.value,
        research_area: str = "",
        supervisor: str = "",
        notes: str = "",
    ) -> Student:
        name, start, status = self._validate_student_fields(full_name, start_date, status)
        now = self._now_iso()
        student = Student(
            id=self._id_factory(),
            full_name=name,
            email=email.strip(),
            cohort=cohort.strip(),
            start_date=start,
            status=status,
            research_area=research_area.strip(),
            supervisor=supervisor.strip(),
            notes=notes.strip(),
            created_at=now,
            updated_at=now,
        )
        self.students.append(student)
        return student

    def update_student(
        self,
        student_id: str,
        *,
        full_name: str,
        email: str = "",
        cohort: str = "",
        start_date: str = "",
        status: str = StudentStatus.ACTIVE.value,
        research_area: str = "",
        supervisor: str = "",
        notes: str = "",
    ) -> Student:
        existing = self.get_student(student_id)
        if existing is None:
            raise ValidationError(f"Unknown student id {student_id!r}")
        name, start, status = self._validate_student_fields(full_name, start_date, status)

        existing.full_name = name
        existing.email = email.strip()
        existing.cohort = cohort.strip()
        existing.start_date = start
        existing.status = status
        existing.research_area = research_area.strip()
        existing.supervisor = supervisor.strip()
        existing.notes = notes.strip()
        existing.updated_at = self._touch(existing.updated_at)
        return existing

    def create_team(self, *, team_name: str, description: str = "") -> Team:
        name = _require_text(team_name, "team_name")
        now = self._now_iso()
        team = Team(
            id=self._id_factory(),
            team_name=name,
            description=description.strip(),
            created_at=now,
            updated_at=now,
        )
        self.teams.append(team)
        return team

    def update_team(self, team_id: str, *, team_name: str, description: str = "") -> Team:
        existing = self.get_team(team_id)
        if existing is None:
            raise ValidationError(f"Unknown team id {team_id!r}")
        existing.team_name = _require_text(team_name, "team_name")
        existing.description = description.strip()
        existing.updated_at = self._touch(existing.updated_at)
        return existing

    def add_membership(self, *, team_id: str, student_id: str, role_in_team: str = "member") -> TeamMembership:
        if self.get_team(team_id) is None:
            raise ValidationError(f"Unknown team id {team_id!r}")
        if self.get_student(student_id) is None:
            raise ValidationError(f"Unknown student id {student_id!r}")
        membership = TeamMembership(
            id=self._id_factory(),
            team_id=team_id,
            student_id=student_id,
            role_in_team=(role_in_team or "member").strip(),
            created_at=self._now_iso(),
        )
        self.team_memberships.append(membership)
        return membership

    # -------------
    # Weekly entries
    # -------------

    def create_weekly_entry(
        self,
        *,
        student_id: str,
        week_start_date: str,
        goals: Sequence[str],
        per_goal_status: Sequence[str],
        next_week_goals: Sequence[str],
        progress_notes: str = "",
        created_by: str = "",
    ) -> WeeklyEntry:
        week = require_week_start(week_start_date)
        clean_goals, statuses = _clean_goals_with_status(
            goals, per_goal_status, goals_field="goals", status_field="per_goal_status"
        )
        next_goals = _clean_goals(next_week_goals, "next_week_goals")
        if self.get_student(student_id) is None:
            raise ValidationError(f"Unknown student id {student_id!r}")
        if not self.check_unique_weekly_entry(student_id, week):
            raise ValidationError(f"Duplicate entry for student {student_id} and week {week}")

        now = self._now_iso()
        entry = WeeklyEntry(
            id=self._id_factory(),
            student_id=student_id,
            week_start_date=week,
            goals=clean_goals,
            per_goal_status=statuses,
            progress_notes=(progress_notes or "").strip(),
            next_week_goals=next_goals,
            created_by=created_by,
            created_at=now,
            updated_at=now,
        )
        self.weekly_entries.append(entry)
        return entry

    def update_weekly_entry(
        self,
        entry_id: str,
        *,
        week_start_date: str,
        goals: Sequence[str],
        per_goal_status: Sequence[str],
        next_week_goals: Sequence[str],
        progress_notes: str = "",
    ) -> WeeklyEntry:
        existing = self.get_weekly_entry(entry_id)
        if existing is None:
            raise ValidationError(f"Unknown weekly entry id {entry_id!r}")
        week = require_week_start(week_start_date)
        clean_goals, statuses = _clean_goals_with_status(
            goals, per_goal_status, goals_field="goals", status_field="per_goal_status"
        )
        next_goals = _clean_goals(next_week_goals, "next_week_goals")
        if not self.check_unique_weekly_entry(existing.student_id, week, exclude_id=existing.id):
            raise ValidationError(f"Duplicate entry for student {existing.student_id} and week {week}")

        existing.week_start_date = week
        existing.goals = clean_goals
        existing.per_goal_status = statuses
        existing.progress_notes = (progress_notes or "").strip()
        existing.next_week_goals = next_goals
        existing.updated_at = self._touch(existing.updated_at)
        return existing

    # -------------
    # Team weekly entries
    # -------------

    def create_team_weekly_entry(
        self,
        *,
        team_id: str,
        week_start_date: str,
        team_goals: Sequence[str],
        team_per_goal_status: Sequence[str],
        next_week_team_goals: Sequence[str],
        team_progress_notes: str = "",
        created_by: str = "",
    ) -> TeamWeeklyEntry:
        week = require_week_start(week_start_date)
        clean_goals, statuses = _clean_goals_with_status(
            team_goals,
            team_per_goal_status,
            goals_field="team_goals",
            status_field="team_per_goal_status",
        )
        next_goals = _clean_goals(next_week_team_goals, "next_week_team_goals")
        if self.get_team(team_id) is None:
            raise ValidationError(f"Unknown team id {team_id!r}")
        if not self.check_unique_team_weekly_entry(team_id, week):
            raise ValidationError(f"Duplicate entry for team {team_id} and week {week}")

        now = self._now_iso()
        entry = TeamWeeklyEntry(
            id=self._id_factory(),
            team_id=team_id,
            week_start_date=week,
            team_goals=clean_goals,
            team_per_goal_status=statuses,
            team_progress_notes=(team_progress_notes or "").strip(),
            next_week_team_goals=next_goals,
            created_by=created_by,
            created_at=now,
            updated_at=now,
        )
        self.team_weekly_entries.append(entry)
        return entry

    def update_team_weekly_entry(
        self,
        entry_id: str,
        *,
        week_start_date: str,
        team_goals: Sequence[str],
        team_per_goal_status: Sequence[str],
        next_week_team_goals: Sequence[str],
        team_progress_notes: str = "",
    ) -> TeamWeeklyEntry:
        existing = self.get_team_weekly_entry(entry_id)
        if existing is None:
            raise ValidationError(f"Unknown team weekly entry id {entry_id!r}")
        week = require_week_start(week_start_date)
        clean_goals, statuses = _clean_goals_with_status(
            team_goals,
            team_per_goal_status,
            goals_field="team_goals",
            status_field="team_per_goal_status",
        )
        next_goals = _clean_goals(next_week_team_goals, "next_week_team_goals")
        if not self.check_unique_team_weekly_entry(existing.team_id, week, exclude_id=existing.id):
            raise ValidationError(f"Duplicate entry for team {existing.team_id} and week {week}")

        existing.week_start_date = week
        existing.team_goals = clean_goals
        existing.team_per_goal_status = statuses
        existing.team_progress_notes = (team_progress_notes or "").strip()
        existing.next_week_team_goals = next_goals
        existing.updated_at = self._touch(existing.updated_at)
        return existing
