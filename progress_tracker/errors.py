"""Error taxonomy for the tracker persistence layer.

- ``ValidationError``: rejected before any I/O (non-Monday week, duplicate
  weekly entry, empty goal list, unknown foreign key). State is unchanged.
- ``WriteDisabled``: a write was attempted without owner/repo/credential.
- ``VersionConflict``: the store rejected a write because the expected
  version is stale. Recovered once by ``merge.resolve_conflict``.
- ``TransportError``: any other non-success response from the store.
- ``SyncFailed``: a conflict survived the single merge-and-retry.

A path that does not exist is *not* an error: ``ObjectStore.read`` returns a
``ReadResult`` with ``exists=False``.
"""

from __future__ import annotations


class TrackerError(Exception):
    """Base class for all tracker errors."""


class ValidationError(TrackerError, ValueError):
    """Input rejected by a repository precondition."""


class CodecError(TrackerError, ValueError):
    """A persisted cell could not be decoded into its typed value."""


class ConfigurationError(TrackerError):
    """Store configuration is incomplete for the requested operation."""


class WriteDisabled(TrackerError):
    """Raised instead of attempting a write when no credential is configured."""

    def __init__(self, message: str = "Write not enabled. Provide token and repo config.") -> None:
        super().__init__(message)


class StoreError(TrackerError):
    """Base class for failures reported by an object store."""

    def __init__(self, message: str, *, path: str | None = None) -> None:
        super().__init__(message)
        self.path = path


class TransportError(StoreError):
    """Non-success response that is neither "not found" nor a version conflict."""

    def __init__(self, *, path: str | None, status: int, body: str, method: str = "GET") -> None:
        super().__init__(f"{method} {path} failed with status {status}: {body}", path=path)
        self.status = status
        self.body = body
        self.method = method


class VersionConflict(StoreError):
    """The expected version did not match the blob's current version."""

    def __init__(
        self,
        *,
        path: str,
        expected_version: str | None,
        status: int | None = None,
        body: str = "",
    ) -> None:
        super().__init__(
            f"Version conflict on {path} (expected version={expected_version!r})",
            path=path,
        )
        self.expected_version = expected_version
        self.status = status
        self.body = body


class SyncFailed(StoreError):
    """A write still conflicted after the merge-and-retry."""

    def __init__(self, *, path: str) -> None:
        super().__init__(f"Sync failed for {path}: conflict persisted after merge retry", path=path)
