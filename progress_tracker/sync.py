"""Load and save the five collections against an object store.

This module wires together:
- the object store (``progress_tracker.store`` / ``progress_tracker.github_store``)
- the CSV codec (``progress_tracker.core.csv_codec``)
- the merge resolver (``progress_tracker.merge``)

Loading never exposes a partial state: unless every path exists the result is
``UNINITIALIZED`` and the caller decides whether to seed. Saving is strictly
sequential in collection order and not atomic across collections; the first
unrecovered error stops the run and propagates, leaving earlier paths written.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple

import requests

from progress_tracker.config import DataPathsConfig
from progress_tracker.core.csv_codec import decode, encode
from progress_tracker.core.models import COLLECTIONS, COLUMNS, empty_collections
from progress_tracker.errors import (
    ConfigurationError,
    TrackerError,
    TransportError,
    VersionConflict,
    WriteDisabled,
)
from progress_tracker.merge import resolve_conflict
from progress_tracker.store import ObjectStore

logger = logging.getLogger(__name__)

DEFAULT_SAVE_MESSAGE = "chore(data): sync"

Collections = Dict[str, List[Dict[str, str]]]
LogFn = Callable[[dict], None]

# Failures that make the remote unreachable for this session.
OFFLINE_ERRORS = (TransportError, ConfigurationError, requests.RequestException)


class LoadState(str, Enum):
    HYDRATED = "hydrated"
    UNINITIALIZED = "uninitialized"
    OFFLINE_FALLBACK = "offline_fallback"


@dataclass
class LoadResult:
    """Outcome of ``SyncOrchestrator.load_all``.

    ``collections`` is populated for ``HYDRATED`` (decoded blobs) and
    ``OFFLINE_FALLBACK`` (fallback data); it is empty for ``UNINITIALIZED``.
    ``missing`` lists the paths that did not exist.
    """

    state: LoadState
    collections: Collections = field(default_factory=dict)
    missing: List[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def is_hydrated(self) -> bool:
        return self.state is LoadState.HYDRATED


@dataclass
class SaveResult:
    """Outcome of ``SyncOrchestrator.save_all``.

    ``versions`` maps each written path to its new version. ``merged`` holds,
    per collection name, the rows written after a conflict merge; they differ
    from what was submitted and replace it in memory.
    """

    versions: Dict[str, Optional[str]] = field(default_factory=dict)
    merged: Collections = field(default_factory=dict)

    def apply_to(self, collections: Mapping[str, Sequence[Mapping[str, str]]]) -> Collections:
        out = {name: [dict(r) for r in rows] for name, rows in collections.items()}
        out.update(self.merged)
        return out


class SyncOrchestrator:
    def __init__(
        self,
        store: ObjectStore,
        *,
        paths: Optional[DataPathsConfig] = None,
        fallback: Optional[Callable[[], Collections]] = None,
        log_fn: Optional[LogFn] = None,
    ) -> None:
        self.store = store
        self.paths = paths or DataPathsConfig()
        self._fallback = fallback or empty_collections
        self._log_fn = log_fn

    def _emit(self, event: dict) -> None:
        if self._log_fn is not None:
            self._log_fn(event)

    def path_for(self, collection: str) -> str:
        return self.paths.path_for(collection)

    # -------------
    # Load
    # -------------

    def load_all(self) -> LoadResult:
        contents: Dict[str, str] = {}
        missing: List[str] = []

        try:
            for name in COLLECTIONS:
                path = self.path_for(name)
                result = self.store.read(path)
                if result.exists:
                    contents[name] = result.content or ""
                else:
                    missing.append(path)
        except OFFLINE_ERRORS as exc:
            logger.warning("Remote store unavailable, using offline fallback: %s", exc)
            self._emit({"type": "load", "state": LoadState.OFFLINE_FALLBACK.value, "error": str(exc)})
            return LoadResult(state=LoadState.OFFLINE_FALLBACK, collections=self._fallback(), error=str(exc))

        if missing:
            logger.info("Store uninitialized: %d of %d paths missing", len(missing), len(COLLECTIONS))
            self._emit({"type": "load", "state": LoadState.UNINITIALIZED.value, "missing": missing})
            return LoadResult(state=LoadState.UNINITIALIZED, missing=missing)

        collections = {name: decode(contents[name]) for name in COLLECTIONS}
        counts = {name: len(rows) for name, rows in collections.items()}
        logger.info("Loaded collections: %s", counts)
        self._emit({"type": "load", "state": LoadState.HYDRATED.value, "counts": counts})
        return LoadResult(state=LoadState.HYDRATED, collections=collections)

    # -------------
    # Save
    # -------------

    def encode_collection(self, name: str, rows: Sequence[Mapping[str, str]]) -> str:
        return encode(rows, COLUMNS[name])

    def save_all(
        self,
        collections: Mapping[str, Sequence[Mapping[str, str]]],
        message: str = DEFAULT_SAVE_MESSAGE,
    ) -> SaveResult:
        """Write every collection; return the new versions and any merged rows.

        Raises ``WriteDisabled`` before any I/O when the store cannot write.
        A ``VersionConflict`` is resolved once per path through
        ``resolve_conflict``; anything else stops the run and propagates.
        """

        if not self.store.write_enabled:
            raise WriteDisabled()

        saved = SaveResult()
        for name in COLLECTIONS:
            path = self.path_for(name)
            content = self.encode_collection(name, collections.get(name, []))
            try:
                version, merged = self._write_one(path, content, message)
            except TrackerError as exc:
                logger.error("Save stopped at %s: %s", path, exc)
                self._emit(
                    {
                        "type": "save_error",
                        "path": path,
                        "error": type(exc).__name__,
                        "detail": str(exc),
                        "written": list(saved.versions),
                    }
                )
                raise
            saved.versions[path] = version
            if merged is not None:
                saved.merged[name] = merged
        return saved

    def _write_one(
        self, path: str, content: str, message: str
    ) -> Tuple[Optional[str], Optional[List[Dict[str, str]]]]:
        expected = self.store.known_version(path)
        merged: Optional[List[Dict[str, str]]] = None
        try:
            result = self.store.write(path, content, expected, message)
        except VersionConflict as exc:
            logger.info("Conflict on %s at version %s, merging", path, expected)
            self._emit({"type": "conflict", "path": path, "expected_version": exc.expected_version})
            outcome = resolve_conflict(self.store, path, content, message, log_fn=self._log_fn)
            result, merged = outcome.write, outcome.rows
        self._emit({"type": "write", "path": path, "version": result.version})
        return result.version, merged
