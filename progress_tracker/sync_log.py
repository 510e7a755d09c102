"""Append-only journal of sync activity.

Goal
- Keep a durable, per-run record of what the orchestrator did against the
  remote store (reads, writes, conflicts, merge retries, failures) so a
  partially applied save can be diagnosed after the fact.

Design
- JSONL (newline-delimited JSON) per run.
- Best-effort atomicity: append a single line, flush, and fsync.
- Readers are tolerant: ignore malformed / partial lines.
"""

from __future__ import annotations

import json
import os
from collections import deque
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Iterable


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def create_run_id(ts: datetime | None = None) -> str:
    """Create a sortable run id (UTC)."""

    t = ts or datetime.now(timezone.utc)
    return t.strftime("%Y%m%dT%H%M%SZ")


def _safe_slug(s: str) -> str:
    return "".join(ch if (ch.isalnum() or ch in {"-", "_"}) else "_" for ch in str(s))


def make_journal_path(*, run_id: str, journal_dir: Path) -> Path:
    journal_dir.mkdir(parents=True, exist_ok=True)
    return journal_dir / f"sync_{_safe_slug(run_id)}.jsonl"


def json_friendly(obj: Any) -> Any:
    """Convert event values into JSON-serializable structures.

    - enums -> value
    - dict/list/tuple/set -> recursively converted

    Unknown objects are stringified as a last resort.
    """

    if isinstance(obj, Enum):
        return json_friendly(obj.value)

    if obj is None or isinstance(obj, (str, int, float, bool)):
        return obj

    if isinstance(obj, dict):
        return {str(k): json_friendly(v) for k, v in obj.items()}

    if isinstance(obj, (list, tuple, set)):
        return [json_friendly(v) for v in obj]

    return str(obj)


def append_event(path: Path, event: dict[str, Any]) -> None:
    """Append a single event to a JSONL file, stamping ``ts_utc`` if absent."""

    if "ts_utc" not in event:
        event = dict(event)
        event["ts_utc"] = _utc_now_iso()

    path.parent.mkdir(parents=True, exist_ok=True)
    line = json.dumps(json_friendly(event), ensure_ascii=False)

    with path.open("a", encoding="utf-8", newline="\n") as f:
        f.write(line)
        f.write("\n")
        f.flush()
        try:
            os.fsync(f.fileno())
        except OSError:
            # Some filesystems do not support fsync.
            pass


def read_events(path: Path, *, max_events: int | None = None) -> list[dict[str, Any]]:
    """Read events from a JSONL file, skipping blank and malformed lines."""

    if not path.exists():
        return []

    acc: deque[dict[str, Any]] = deque() if max_events is None else deque(maxlen=int(max_events))

    with path.open("r", encoding="utf-8") as f:
        for raw in f:
            line = raw.strip()
            if not line:
                continue
            try:
                obj = json.loads(line)
            except json.JSONDecodeError:
                continue
            if isinstance(obj, dict):
                acc.append(obj)

    return list(acc)


def journal_writer(path: Path) -> Callable[[dict[str, Any]], None]:
    """Return a ``log_fn`` that appends events to ``path``."""

    def _write(event: dict[str, Any]) -> None:
        append_event(path, event)

    return _write


def list_journals(journal_dir: Path) -> list[Path]:
    """Journal files under ``journal_dir``, most recent run first."""

    if not journal_dir.exists():
        return []
    return sorted(journal_dir.glob("sync_*.jsonl"), key=lambda p: p.name, reverse=True)


def latest_event(events: Iterable[dict[str, Any]], event_type: str) -> dict[str, Any] | None:
    for e in reversed(list(events)):
        if e.get("type") == event_type:
            return e
    return None
