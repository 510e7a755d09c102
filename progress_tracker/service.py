"""Session-level flow: load or seed, then write-gated edits that persist.

``TrackerService`` owns one ``TrackerRepository`` (the in-memory source of
truth) and one ``SyncOrchestrator``. Every mutation is checked for write
permission first, validated and applied in memory by the repository, and
then flushed with ``save_all``. When a save had to merge with another
writer's rows, the merged collections replace the in-memory ones so the
next save carries them forward. A failed save leaves memory as submitted;
callers should ``bootstrap()`` again before further edits if they need the
remote state.
"""
from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, Mapping, Optional, Sequence

import requests

from progress_tracker.config import DataPathsConfig, TrackerConfig, load_config
from progress_tracker.core.models import (
    Student,
    Team,
    TeamMembership,
    TeamWeeklyEntry,
    WeeklyEntry,
)
from progress_tracker.errors import CodecError, WriteDisabled
from progress_tracker.github_store import GitHubContentsStore
from progress_tracker.repository import TrackerRepository
from progress_tracker.seed import generate_seed
from progress_tracker.store import ObjectStore
from progress_tracker.sync import LoadResult, LoadState, SyncOrchestrator
from progress_tracker.sync_log import create_run_id, journal_writer, make_journal_path

logger = logging.getLogger(__name__)

SEED_MESSAGE = "feat(data): initialize seed data"
MSG_ADD_STUDENT = "feat(data): add student"
MSG_UPDATE_STUDENT = "feat(data): update student"
MSG_ADD_TEAM = "feat(data): add team"
MSG_UPDATE_TEAM = "feat(data): update team"
MSG_ADD_MEMBERSHIP = "feat(data): add team membership"
MSG_ADD_WEEKLY = "feat(data): add weekly entry"
MSG_UPDATE_WEEKLY = "feat(data): update weekly entry"
MSG_ADD_TEAM_WEEKLY = "feat(data): add team weekly entry"
MSG_UPDATE_TEAM_WEEKLY = "feat(data): update team weekly entry"


class TrackerService:
    """Load/seed flow and persisted edits for one operator session.

    ``read_only`` is True until ``bootstrap`` hydrates from the store, and
    whenever the session runs on seeded or fallback data that was not
    persisted. Mutations raise ``WriteDisabled`` in that state.
    """

    def __init__(
        self,
        store: ObjectStore,
        *,
        paths: Optional[DataPathsConfig] = None,
        created_by: str = "demo_user",
        seed_factory: Optional[Callable[[], TrackerRepository]] = None,
        clock: Optional[Callable[[], datetime]] = None,
        id_factory: Optional[Callable[[], str]] = None,
        log_fn: Optional[Callable[[dict], None]] = None,
    ) -> None:
        self.store = store
        self.created_by = created_by
        self._seed_factory = seed_factory or generate_seed
        self._clock = clock
        self._id_factory = id_factory
        self.sync = SyncOrchestrator(
            store,
            paths=paths,
            fallback=lambda: self._seed_factory().to_collections(),
            log_fn=log_fn,
        )
        self.repository = self._hydrate({})
        self.read_only = True
        self.last_load: Optional[LoadResult] = None

    @classmethod
    def from_config(
        cls,
        config: Optional[TrackerConfig] = None,
        *,
        session: Optional[requests.Session] = None,
        journal: bool = True,
    ) -> "TrackerService":
        """Service over the GitHub store, journaling sync events under ``journal_dir``."""

        config = config or load_config()
        log_fn = None
        if journal:
            path = make_journal_path(run_id=create_run_id(), journal_dir=Path(config.journal_dir))
            log_fn = journal_writer(path)
        store = GitHubContentsStore(config.github, session=session)
        return cls(store, paths=config.paths, created_by=config.created_by, log_fn=log_fn)

    # -------------
    # State
    # -------------

    @property
    def write_enabled(self) -> bool:
        return self.store.write_enabled and not self.read_only

    def _hydrate(self, collections: Mapping[str, Sequence[Mapping[str, str]]]) -> TrackerRepository:
        return TrackerRepository.from_collections(collections, id_factory=self._id_factory, clock=self._clock)

    def _seeded(self) -> TrackerRepository:
        return self._hydrate(self._seed_factory().to_collections())

    def _require_write(self) -> None:
        if not self.write_enabled:
            raise WriteDisabled()

    def _save_repository(self, repo: TrackerRepository, message: str) -> TrackerRepository:
        """Save ``repo``; return it, or a rehydrated copy when the save merged."""

        collections = repo.to_collections()
        saved = self.sync.save_all(collections, message)
        if not saved.merged:
            return repo
        logger.info("Adopting merged rows for %s", ", ".join(saved.merged))
        return self._hydrate(saved.apply_to(collections))

    def _persist(self, message: str) -> None:
        self.repository = self._save_repository(self.repository, message)

    # -------------
    # Load / initialize
    # -------------

    def bootstrap(self) -> LoadResult:
        """Load from the store; seed when it is uninitialized.

        - hydrated: use the stored data, writable.
        - uninitialized: seed; persist and stay writable when the store can
          write, otherwise run read-only on in-memory demo data.
        - offline: read-only on fallback data.
        - stored data that does not parse (``CodecError``) is treated like
          offline: the remote is left untouched and the session is read-only.
        """

        result = self.sync.load_all()
        if result.state is LoadState.HYDRATED:
            try:
                self.repository = self._hydrate(result.collections)
            except CodecError as exc:
                logger.error("Stored data is malformed; using in-memory demo data (read-only): %s", exc)
                result = LoadResult(
                    state=LoadState.OFFLINE_FALLBACK,
                    collections=self._seed_factory().to_collections(),
                    error=str(exc),
                )
        self.last_load = result

        if result.state is LoadState.HYDRATED:
            self.read_only = False
            logger.info("Data loaded from store")
        elif result.state is LoadState.UNINITIALIZED:
            self.repository = self._seeded()
            if self.store.write_enabled:
                self._persist(SEED_MESSAGE)
                self.read_only = False
                logger.info("Seeded initial data to store")
            else:
                self.read_only = True
                logger.info("Store missing data; running with in-memory demo data (read-only)")
        else:
            self.repository = self._hydrate(result.collections)
            self.read_only = True
            logger.warning("Failed to load from store; using in-memory demo data (read-only)")
        return result

    def initialize(self) -> TrackerRepository:
        """Replace remote data with a fresh seed batch."""

        if not self.store.write_enabled:
            raise WriteDisabled()
        self.repository = self._save_repository(self._seeded(), SEED_MESSAGE)
        self.read_only = False
        return self.repository

    def save(self, message: str) -> None:
        self._require_write()
        self._persist(message)

    # -------------
    # Edits
    # -------------

    def add_student(self, **fields) -> Student:
        self._require_write()
        student = self.repository.create_student(**fields)
        self._persist(MSG_ADD_STUDENT)
        return student

    def update_student(self, student_id: str, **fields) -> Student:
        self._require_write()
        student = self.repository.update_student(student_id, **fields)
        self._persist(MSG_UPDATE_STUDENT)
        return student

    def add_team(self, *, team_name: str, description: str = "") -> Team:
        self._require_write()
        team = self.repository.create_team(team_name=team_name, description=description)
        self._persist(MSG_ADD_TEAM)
        return team

    def update_team(self, team_id: str, *, team_name: str, description: str = "") -> Team:
        self._require_write()
        team = self.repository.update_team(team_id, team_name=team_name, description=description)
        self._persist(MSG_UPDATE_TEAM)
        return team

    def add_membership(self, *, team_id: str, student_id: str, role_in_team: str = "member") -> TeamMembership:
        self._require_write()
        membership = self.repository.add_membership(team_id=team_id, student_id=student_id, role_in_team=role_in_team)
        self._persist(MSG_ADD_MEMBERSHIP)
        return membership

    def add_weekly_entry(
        self,
        *,
        student_id: str,
        week_start_date: str,
        goals: Sequence[str],
        per_goal_status: Sequence[str],
        next_week_goals: Sequence[str],
        progress_notes: str = "",
    ) -> WeeklyEntry:
        self._require_write()
        entry = self.repository.create_weekly_entry(
            student_id=student_id,
            week_start_date=week_start_date,
            goals=goals,
            per_goal_status=per_goal_status,
            next_week_goals=next_week_goals,
            progress_notes=progress_notes,
            created_by=self.created_by,
        )
        self._persist(MSG_ADD_WEEKLY)
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
        self._require_write()
        entry = self.repository.update_weekly_entry(
            entry_id,
            week_start_date=week_start_date,
            goals=goals,
            per_goal_status=per_goal_status,
            next_week_goals=next_week_goals,
            progress_notes=progress_notes,
        )
        self._persist(MSG_UPDATE_WEEKLY)
        return entry

    def add_team_weekly_entry(
        self,
        *,
        team_id: str,
        week_start_date: str,
        team_goals: Sequence[str],
        team_per_goal_status: Sequence[str],
        next_week_team_goals: Sequence[str],
        team_progress_notes: str = "",
    ) -> TeamWeeklyEntry:
        self._require_write()
        entry = self.repository.create_team_weekly_entry(
            team_id=team_id,
            week_start_date=week_start_date,
            team_goals=team_goals,
            team_per_goal_status=team_per_goal_status,
            next_week_team_goals=next_week_team_goals,
            team_progress_notes=team_progress_notes,
            created_by=self.created_by,
        )
        self._persist(MSG_ADD_TEAM_WEEKLY)
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
        self._require_write()
        entry = self.repository.update_team_weekly_entry(
            entry_id,
            week_start_date=week_start_date,
            team_goals=team_goals,
            team_per_goal_status=team_per_goal_status,
            next_week_team_goals=next_week_team_goals,
            team_progress_notes=team_progress_notes,
        )
        self._persist(MSG_UPDATE_TEAM_WEEKLY)
        return entry
