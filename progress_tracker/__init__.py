"""Weekly progress tracker backed by CSV blobs in a versioned remote store.

Layers:
- ``progress_tracker.core``: pure building blocks (calendar, CSV codec, models)
- ``progress_tracker.store`` / ``progress_tracker.github_store``: object stores
- ``progress_tracker.merge`` / ``progress_tracker.sync``: optimistic-concurrency sync
- ``progress_tracker.repository``: in-memory entity collections and queries
- ``progress_tracker.service``: host-facing load/seed/mutate-and-save flow
"""

__all__ = ["core", "errors", "repository", "store", "sync"]
