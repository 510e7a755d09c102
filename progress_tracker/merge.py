"""Conflict recovery for a single collection blob.

Invoked only after a write fails with ``VersionConflict``: re-read the path,
union the fresh remote rows with the rows we tried to write (keyed by ``id``,
the local row wins wholesale on a shared id), and write once more against the
fresh version. A second conflict is terminal.

No timestamps are compared: a same-id remote edit made after our read is
replaced by the local row. Rows with different ids are never lost.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Mapping, Optional

from progress_tracker.core.csv_codec import decode, encode, header_of
from progress_tracker.errors import SyncFailed, VersionConflict
from progress_tracker.store import ObjectStore, WriteResult

logger = logging.getLogger(__name__)

RETRY_SUFFIX = " (retry)"


@dataclass(frozen=True)
class MergeResult:
    """The retried write plus the rows that now make up the blob."""

    write: WriteResult
    rows: list[dict[str, str]]

    @property
    def version(self) -> Optional[str]:
        return self.write.version


def merge_by_id(
    remote_rows: Iterable[Mapping[str, str]],
    local_rows: Iterable[Mapping[str, str]],
) -> list[dict[str, str]]:
    """Ordered union of two row sets keyed by ``id``.

    Remote rows keep their order; a local row replaces the remote row with
    the same id in place; local-only rows are appended in local order.
    """

    by_id: dict[str, dict[str, str]] = {}
    for row in remote_rows:
        by_id[str(row.get("id", ""))] = dict(row)
    for row in local_rows:
        by_id[str(row.get("id", ""))] = dict(row)
    return list(by_id.values())


def resolve_conflict(
    store: ObjectStore,
    path: str,
    local_content: str,
    message: str,
    *,
    log_fn: Callable[[dict], None] | None = None,
) -> MergeResult:
    """Merge ``local_content`` into the current remote blob and retry once.

    The caller must adopt ``MergeResult.rows`` as its new local state.

    Raises ``SyncFailed`` if the retry conflicts as well; any other store
    error propagates unchanged.
    """

    fresh = store.read(path)
    remote_content = fresh.content if fresh.exists else ""
    remote_rows = decode(remote_content or "")
    local_rows = decode(local_content)

    columns = header_of(local_content) or header_of(remote_content or "")
    merged = merge_by_id(remote_rows, local_rows)
    merged_content = encode(merged, columns)

    logger.info(
        "Merging %s: %d remote + %d local rows -> %d (retrying at version %s)",
        path,
        len(remote_rows),
        len(local_rows),
        len(merged),
        fresh.version,
    )

    try:
        result = store.write(path, merged_content, fresh.version if fresh.exists else None, message + RETRY_SUFFIX)
    except VersionConflict as exc:
        logger.error("Conflict persisted on %s after merge retry", path)
        if log_fn is not None:
            log_fn({"type": "sync_failed", "path": path, "expected_version": exc.expected_version})
        raise SyncFailed(path=path) from exc

    if log_fn is not None:
        log_fn(
            {
                "type": "merge_retry",
                "path": path,
                "remote_rows": len(remote_rows),
                "local_rows": len(local_rows),
                "merged_rows": len(merged),
                "version": result.version,
            }
        )
    return MergeResult(write=result, rows=merged)
