from __future__ import annotations

import random
from datetime import datetime, timezone

from progress_tracker.core.calendar import is_week_start
from progress_tracker.seed import SEED_CREATED_BY, email_for, generate_seed

NOW = datetime(2024, 1, 3, 12, 0, tzinfo=timezone.utc)


def test_default_seed_shape() -> None:
    repo = generate_seed(rng=random.Random(1), now=NOW)
    assert repo.counts() == {
        "students": 20,
        "weekly_entries": 120,
        "teams": 3,
        "team_memberships": 20,
        "team_weekly_entries": 9,
    }


def test_seed_respects_repository_rules() -> None:
    repo = generate_seed(rng=random.Random(7), now=NOW, students=5, weeks=3, team_weeks=2)

    weeks = {e.week_start_date for e in repo.weekly_entries}
    assert weeks == {"2024-01-01", "2023-12-25", "2023-12-18"}
    assert all(is_week_start(s.start_date) for s in repo.students)

    keys = [(e.student_id, e.week_start_date) for e in repo.weekly_entries]
    assert len(keys) == len(set(keys))

    for entry in repo.weekly_entries:
        assert 3 <= len(entry.goals) <= 5
        assert len(entry.per_goal_status) == len(entry.goals)
        assert entry.created_by == SEED_CREATED_BY
        assert entry.to_row()["overall_status"] in {"achieved", "partial", "not_achieved"}

    team_ids = [t.id for t in repo.teams]
    assert [m.team_id for m in repo.team_memberships] == [team_ids[i % 3] for i in range(5)]
    assert len(repo.team_weekly_entries) == 3 * 2


def test_seed_is_reproducible_for_fixed_rng_and_ids() -> None:
    def build():
        counter = iter(range(10_000))
        return generate_seed(
            rng=random.Random(3),
            now=NOW,
            students=4,
            weeks=2,
            id_factory=lambda: f"id-{next(counter)}",
        ).to_collections()

    assert build() == build()


def test_email_for_name() -> None:
    assert email_for("Alice Chen") == "alice.chen@ust.hk"
