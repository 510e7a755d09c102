"""Versioned object store abstractions.

One blob per entity collection, each addressed by a stable path and carrying
an opaque version token:
- ``read`` returns the content and version, or ``exists=False``.
- ``write`` requires the version last seen for an existing path and fails
  with ``VersionConflict`` when it is stale.

Implementations:
- ``InMemoryObjectStore`` (this module): single-process store for tests and
  offline use.
- ``GitHubContentsStore`` (``progress_tracker.github_store``): GitHub
  Contents API.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol

from progress_tracker.errors import TransportError, VersionConflict, WriteDisabled


@dataclass(frozen=True)
class ReadResult:
    """Outcome of a read. A missing path is a normal result, not an error."""

    exists: bool
    content: Optional[str] = None
    version: Optional[str] = None


@dataclass(frozen=True)
class WriteResult:
    version: Optional[str]


@dataclass(frozen=True)
class Commit:
    """One accepted write, as recorded by ``InMemoryObjectStore``."""

    path: str
    version: str
    message: str
    content: str


class ObjectStore(Protocol):
    """Read/write interface used by the sync orchestrator and merge resolver.

    Implementations keep a process-local cache of the last version seen for
    each path, refreshed on every successful read and write.
    """

    @property
    def write_enabled(self) -> bool:
        """True when writes may be attempted at all."""

    def read(self, path: str) -> ReadResult:
        """Fetch content and version for ``path``."""

    def write(
        self,
        path: str,
        content: str,
        expected_version: Optional[str],
        message: str,
    ) -> WriteResult:
        """Replace the blob at ``path``.

        ``expected_version`` is ``None`` only when creating a path believed
        not to exist. Raises ``VersionConflict`` when it does not match,
        ``WriteDisabled`` without a credential, ``TransportError`` otherwise.
        """

    def known_version(self, path: str) -> Optional[str]:
        """Last version observed for ``path`` by this client, if any."""


class InMemoryObjectStore:
    """In-memory, single-process object store.

    Versions are monotonically increasing integers rendered as strings.
    ``commits`` records every accepted write in order. ``fail_paths`` maps a
    path to an HTTP-like status that the next writes to it fail with, which
    lets tests simulate transport failures on specific collections.
    """

    def __init__(self, *, writable: bool = True, blobs: Optional[Dict[str, str]] = None) -> None:
        self.writable = writable
        self._next_version: int = 1
        self._blobs: Dict[str, tuple[str, str]] = {}
        self._versions: Dict[str, str] = {}
        self.commits: List[Commit] = []
        self.fail_paths: Dict[str, int] = {}
        self.reads: List[str] = []
        self.write_attempts: List[str] = []
        for path, content in (blobs or {}).items():
            self.put(path, content)

    @property
    def write_enabled(self) -> bool:
        return self.writable

    def _allocate_version(self) -> str:
        version = str(self._next_version)
        self._next_version += 1
        return version

    def put(self, path: str, content: str) -> str:
        """Replace a blob out-of-band, as a concurrent writer would.

        Does not touch this client's version cache.
        """
        version = self._allocate_version()
        self._blobs[path] = (content, version)
        return version

    def current_version(self, path: str) -> Optional[str]:
        blob = self._blobs.get(path)
        return blob[1] if blob else None

    def content_of(self, path: str) -> Optional[str]:
        blob = self._blobs.get(path)
        return blob[0] if blob else None

    def paths(self) -> List[str]:
        return sorted(self._blobs)

    def known_version(self, path: str) -> Optional[str]:
        return self._versions.get(path)

    def read(self, path: str) -> ReadResult:
        self.reads.append(path)
        blob = self._blobs.get(path)
        if blob is None:
            return ReadResult(exists=False)
        content, version = blob
        self._versions[path] = version
        return ReadResult(exists=True, content=content, version=version)

    def write(
        self,
        path: str,
        content: str,
        expected_version: Optional[str],
        message: str,
    ) -> WriteResult:
        if not self.writable:
            raise WriteDisabled()
        self.write_attempts.append(path)

        status = self.fail_paths.get(path)
        if status is not None:
            raise TransportError(path=path, status=status, body="simulated failure", method="PUT")

        current = self.current_version(path)
        if current != expected_version:
            raise VersionConflict(path=path, expected_version=expected_version, status=409)

        version = self._allocate_version()
        self._blobs[path] = (content, version)
        self._versions[path] = version
        self.commits.append(Commit(path=path, version=version, message=message, content=content))
        return WriteResult(version=version)
