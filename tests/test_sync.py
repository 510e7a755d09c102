from __future__ import annotations

import random
from datetime import datetime, timezone

import pytest
import requests

from progress_tracker.config import DataPathsConfig
from progress_tracker.core.csv_codec import decode, encode
from progress_tracker.core.models import COLLECTIONS, COLUMNS, empty_collections
from progress_tracker.errors import SyncFailed, TransportError, VersionConflict, WriteDisabled
from progress_tracker.repository import TrackerRepository
from progress_tracker.seed import generate_seed
from progress_tracker.store import InMemoryObjectStore, ReadResult, WriteResult
from progress_tracker.sync import LoadState, SyncOrchestrator

NOW = datetime(2024, 1, 3, 12, 0, tzinfo=timezone.utc)
PATHS = DataPathsConfig(data_dir="data")


def _orchestrator(store, **kwargs) -> SyncOrchestrator:
    return SyncOrchestrator(store, paths=PATHS, **kwargs)


def test_paths_follow_data_dir() -> None:
    assert PATHS.all_paths() == {name: f"data/{name}.csv" for name in COLLECTIONS}
    assert DataPathsConfig(data_dir="").path_for("teams") == "teams.csv"


def test_load_all_with_every_path_missing_is_uninitialized() -> None:
    result = _orchestrator(InMemoryObjectStore()).load_all()
    assert result.state is LoadState.UNINITIALIZED
    assert result.collections == {}
    assert len(result.missing) == 5


def test_partial_store_is_never_exposed_as_loaded() -> None:
    store = InMemoryObjectStore(
        blobs={
            "data/students.csv": encode([], COLUMNS["students"]),
            "data/teams.csv": encode([], COLUMNS["teams"]),
        }
    )
    result = _orchestrator(store).load_all()
    assert result.state is LoadState.UNINITIALIZED
    assert result.missing == [
        "data/weekly_entries.csv",
        "data/team_memberships.csv",
        "data/team_weekly_entries.csv",
    ]


class _UnreachableStore(InMemoryObjectStore):
    def __init__(self, exc: Exception) -> None:
        super().__init__()
        self._exc = exc

    def read(self, path: str) -> ReadResult:
        raise self._exc


@pytest.mark.parametrize(
    "exc",
    [
        TransportError(path="data/students.csv", status=502, body="bad gateway"),
        requests.ConnectionError("offline"),
    ],
)
def test_transport_failure_on_load_falls_back(exc: Exception) -> None:
    events: list[dict] = []
    fallback = {name: [] for name in COLLECTIONS}
    fallback["teams"] = [{"id": "t1", "team_name": "Demo"}]

    result = _orchestrator(_UnreachableStore(exc), fallback=lambda: fallback, log_fn=events.append).load_all()

    assert result.state is LoadState.OFFLINE_FALLBACK
    assert result.collections["teams"] == [{"id": "t1", "team_name": "Demo"}]
    assert result.error
    assert events[-1]["state"] == "offline_fallback"


def test_save_all_requires_write_before_any_io() -> None:
    store = InMemoryObjectStore(writable=False)
    with pytest.raises(WriteDisabled):
        _orchestrator(store).save_all(empty_collections())
    assert store.write_attempts == []
    assert store.reads == []


def test_save_all_writes_in_collection_order_and_returns_versions() -> None:
    store = InMemoryObjectStore()
    saved = _orchestrator(store).save_all(empty_collections(), "chore(data): sync")

    assert store.write_attempts == [f"data/{name}.csv" for name in COLLECTIONS]
    assert list(saved.versions) == store.write_attempts
    assert saved.versions["data/teams.csv"] == store.current_version("data/teams.csv")
    assert saved.merged == {}
    for name in COLLECTIONS:
        assert store.content_of(f"data/{name}.csv") == ",".join(COLUMNS[name]) + "\n"
    assert {c.message for c in store.commits} == {"chore(data): sync"}


def test_transport_error_on_third_path_stops_the_save() -> None:
    store = InMemoryObjectStore()
    store.fail_paths["data/teams.csv"] = 500
    events: list[dict] = []

    with pytest.raises(TransportError) as excinfo:
        _orchestrator(store, log_fn=events.append).save_all(empty_collections())

    assert excinfo.value.status == 500
    assert store.paths() == ["data/students.csv", "data/weekly_entries.csv"]
    assert store.write_attempts == ["data/students.csv", "data/weekly_entries.csv", "data/teams.csv"]
    assert "data/team_memberships.csv" not in store.write_attempts
    assert "data/team_weekly_entries.csv" not in store.write_attempts
    assert events[-1]["type"] == "save_error"
    assert events[-1]["written"] == ["data/students.csv", "data/weekly_entries.csv"]


def test_conflict_on_one_path_is_merged_and_save_continues() -> None:
    store = InMemoryObjectStore()
    orchestrator = _orchestrator(store)

    repo = TrackerRepository(clock=lambda: NOW)
    team = repo.create_team(team_name="Local team")
    orchestrator.save_all(repo.to_collections())

    # Another session appends a team after our last write.
    remote_rows = decode(store.content_of("data/teams.csv")) + [
        {"id": "remote-team", "team_name": "Remote team", "description": "", "created_at": "", "updated_at": ""}
    ]
    store.put("data/teams.csv", encode(remote_rows, COLUMNS["teams"]))

    repo.update_team(team.id, team_name="Local team renamed")
    events: list[dict] = []
    collections = repo.to_collections()
    saved = _orchestrator(store, log_fn=events.append).save_all(collections, "feat(data): update team")

    teams = decode(store.content_of("data/teams.csv"))
    assert [t["id"] for t in teams] == [team.id, "remote-team"]
    assert teams[0]["team_name"] == "Local team renamed"
    assert list(saved.merged) == ["teams"]
    assert saved.merged["teams"] == teams
    adopted = saved.apply_to(collections)
    assert adopted["teams"] == teams
    assert adopted["students"] == collections["students"]
    assert [e["type"] for e in events if e["type"] in {"conflict", "merge_retry"}] == ["conflict", "merge_retry"]
    # Later paths were still written after the merge.
    assert store.commits[-1].path == "data/team_weekly_entries.csv"


class _ConflictingTeamsStore(InMemoryObjectStore):
    def write(self, path, content, expected_version, message) -> WriteResult:  # type: ignore[override]
        if path == "data/teams.csv":
            raise VersionConflict(path=path, expected_version=expected_version, status=409)
        return super().write(path, content, expected_version, message)


def test_persistent_conflict_surfaces_sync_failed() -> None:
    store = _ConflictingTeamsStore()
    with pytest.raises(SyncFailed) as excinfo:
        _orchestrator(store).save_all(empty_collections())
    assert excinfo.value.path == "data/teams.csv"
    assert store.paths() == ["data/students.csv", "data/weekly_entries.csv"]


def test_end_to_end_seed_save_and_reload_round_trips_byte_for_byte() -> None:
    store = InMemoryObjectStore()
    orchestrator = _orchestrator(store)
    assert orchestrator.load_all().state is LoadState.UNINITIALIZED

    n_students, n_weeks = 7, 4
    repo = generate_seed(rng=random.Random(42), now=NOW, students=n_students, weeks=n_weeks)
    collections = repo.to_collections()
    orchestrator.save_all(collections, "feat(data): initialize seed data")

    fresh = _orchestrator(store).load_all()
    assert fresh.state is LoadState.HYDRATED
    assert fresh.missing == []
    assert len(fresh.collections["students"]) == n_students
    assert len(fresh.collections["weekly_entries"]) == n_students * n_weeks
    assert fresh.collections == collections

    for name in COLLECTIONS:
        path = f"data/{name}.csv"
        assert orchestrator.encode_collection(name, fresh.collections[name]) == store.content_of(path)

    hydrated = TrackerRepository.from_collections(fresh.collections)
    assert hydrated.to_collections() == collections
