from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Optional, Sequence

from progress_tracker.config import TrackerConfig, load_config
from progress_tracker.errors import TrackerError
from progress_tracker.reports import dashboard_summary, student_overview
from progress_tracker.service import TrackerService
from progress_tracker.sync_log import list_journals, read_events

logger = logging.getLogger(__name__)


def build_service(config: TrackerConfig) -> TrackerService:
    return TrackerService.from_config(config)


def _cmd_status(service: TrackerService, args: argparse.Namespace) -> int:
    result = service.bootstrap()
    print(f"state: {result.state.value}")
    if result.missing:
        print(f"missing: {', '.join(result.missing)}")
    print(f"write enabled: {service.write_enabled}")
    for name, count in service.repository.counts().items():
        print(f"{name}: {count}")
    return 0


def _cmd_init(service: TrackerService, args: argparse.Namespace) -> int:
    repo = service.initialize()
    print("Initialization complete.")
    for name, count in repo.counts().items():
        print(f"{name}: {count}")
    return 0


def _cmd_summary(service: TrackerService, args: argparse.Namespace) -> int:
    service.bootstrap()
    summary = dashboard_summary(service.repository, args.week)
    print(f"Week of {summary.week_start_date}")
    print(f"Active students: {summary.active_students}")
    print(f"% with entry this week: {summary.pct_with_entry}%")
    print(f"Completion rate this week: {summary.completion_rate}%")
    overview = student_overview(service.repository, summary.week_start_date)
    if not overview.empty:
        cols = ["full_name", "research_area", "current_status", "goals_achieved", "last_updated"]
        print(overview[cols].to_string(index=False))
    return 0


def _cmd_journal(config: TrackerConfig, args: argparse.Namespace) -> int:
    journals = list_journals(Path(config.journal_dir))
    if not journals:
        print("No sync journals found.")
        return 0
    latest = journals[0]
    print(f"Journal: {latest}")
    for event in read_events(latest, max_events=args.limit):
        details = {k: v for k, v in event.items() if k not in {"type", "ts_utc"}}
        print(f"{event.get('ts_utc', '')} {event.get('type', '?')} {details}")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    p = argparse.ArgumentParser(description="Weekly progress tracker: load, seed and inspect the CSV store.")
    p.add_argument("--owner", type=str, default=None, help="Repository owner (overrides TRACKER_GITHUB_OWNER).")
    p.add_argument("--repo", type=str, default=None, help="Repository name (overrides TRACKER_GITHUB_REPO).")
    p.add_argument("--branch", type=str, default=None, help="Branch (overrides TRACKER_GITHUB_BRANCH).")
    p.add_argument("--log-level", type=str, default=None)

    sub = p.add_subparsers(dest="command", required=True)
    sub.add_parser("status", help="Load the store and report its state.")
    sub.add_parser("init", help="Write a fresh seed batch to the store (requires a token).")
    summary = sub.add_parser("summary", help="Print the dashboard for a week.")
    summary.add_argument("--week", type=str, default=None, help="Week start (YYYY-MM-DD, a Monday).")
    journal = sub.add_parser("journal", help="Show events from the latest sync journal.")
    journal.add_argument("--limit", type=int, default=50)

    args = p.parse_args(argv)

    config = load_config(owner=args.owner, repo=args.repo, branch=args.branch)
    logging.basicConfig(
        level=(args.log_level or config.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "journal":
        return _cmd_journal(config, args)

    handlers = {
        "status": _cmd_status,
        "init": _cmd_init,
        "summary": _cmd_summary,
    }
    service = build_service(config)
    try:
        return handlers[args.command](service, args)
    except TrackerError as exc:
        logger.error("%s failed: %s", args.command, exc)
        print(f"Error: {exc}")
        return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
