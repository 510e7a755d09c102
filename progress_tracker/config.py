
# progress_tracker/config.py

import os
from dataclasses import dataclass, field

from progress_tracker.core.models import COLLECTIONS

# --- Base paths ---
# Project root can be overridden if needed (e.g. for tests or deployment)
BASE_DIR = os.path.abspath(os.getenv("TRACKER_BASE_DIR", os.path.join(os.path.dirname(__file__), "..")))

DEFAULT_BRANCH = "main"
DEFAULT_API_URL = "https://api.github.com"


def _optional_float(raw: str | None) -> float | None:
    if raw is None or not str(raw).strip():
        return None
    return float(raw)


# ---------------------------
# Structured configuration
# ---------------------------

@dataclass(frozen=True)
class GitHubConfig:
    """Remote store settings.

    Values can be overridden via environment variables:
    - TRACKER_GITHUB_OWNER
    - TRACKER_GITHUB_REPO
    - TRACKER_GITHUB_BRANCH (defaults to "main")
    - GITHUB_TOKEN
    - TRACKER_GITHUB_API_URL
    - TRACKER_HTTP_TIMEOUT (seconds; unset means no client-side timeout)
    """

    owner: str = field(default_factory=lambda: os.getenv("TRACKER_GITHUB_OWNER", ""))
    repo: str = field(default_factory=lambda: os.getenv("TRACKER_GITHUB_REPO", ""))
    branch: str = field(default_factory=lambda: os.getenv("TRACKER_GITHUB_BRANCH", "") or DEFAULT_BRANCH)
    token: str = field(default_factory=lambda: os.getenv("GITHUB_TOKEN", ""))
    api_url: str = field(default_factory=lambda: os.getenv("TRACKER_GITHUB_API_URL", DEFAULT_API_URL))
    timeout_seconds: float | None = field(
        default_factory=lambda: _optional_float(os.getenv("TRACKER_HTTP_TIMEOUT"))
    )

    @property
    def effective_branch(self) -> str:
        return (self.branch or "").strip() or DEFAULT_BRANCH

    @property
    def has_repository(self) -> bool:
        return bool(self.owner.strip() and self.repo.strip())

    @property
    def write_enabled(self) -> bool:
        """Owner, repo, branch and a credential are all present."""
        return bool(self.has_repository and self.effective_branch and self.token.strip())

    def __repr__(self) -> str:
        # Keep the credential out of logs and tracebacks.
        token = "***" if self.token else ""
        return (
            f"GitHubConfig(owner={self.owner!r}, repo={self.repo!r}, branch={self.branch!r}, "
            f"token={token!r}, api_url={self.api_url!r}, timeout_seconds={self.timeout_seconds!r})"
        )


@dataclass(frozen=True)
class DataPathsConfig:
    """Location of the five collection blobs inside the remote repository.

    ``TRACKER_DATA_DIR`` overrides the directory (default ``data``).
    """

    data_dir: str = field(default_factory=lambda: os.getenv("TRACKER_DATA_DIR", "data"))

    def path_for(self, collection: str) -> str:
        base = self.data_dir.strip().strip("/")
        name = f"{collection}.csv"
        return f"{base}/{name}" if base else name

    def all_paths(self) -> dict[str, str]:
        return {name: self.path_for(name) for name in COLLECTIONS}


@dataclass(frozen=True)
class TrackerConfig:
    """Top-level configuration handed to the service and CLI."""

    github: GitHubConfig = field(default_factory=GitHubConfig)
    paths: DataPathsConfig = field(default_factory=DataPathsConfig)
    journal_dir: str = field(
        default_factory=lambda: os.getenv("TRACKER_JOURNAL_DIR", os.path.join(BASE_DIR, "ui_state", "sync"))
    )
    log_level: str = field(default_factory=lambda: os.getenv("TRACKER_LOG_LEVEL", "INFO"))
    created_by: str = field(default_factory=lambda: os.getenv("TRACKER_CREATED_BY", "demo_user"))


def load_config(**github_overrides: object) -> TrackerConfig:
    """Build a fresh configuration from the environment.

    Keyword arguments override individual ``GitHubConfig`` fields, which is
    handy for CLI flags and tests.
    """

    overrides = {k: v for k, v in github_overrides.items() if v is not None}
    return TrackerConfig(github=GitHubConfig(**overrides))  # type: ignore[arg-type]
