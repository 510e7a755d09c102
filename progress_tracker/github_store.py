"""GitHub Contents API object store.

This module provides ``GitHubContentsStore``, an implementation of the
``ObjectStore`` interface defined in ``progress_tracker.store`` that keeps
each collection as a file in a GitHub repository.

- Read: ``GET /repos/{owner}/{repo}/contents/{path}?ref={branch}``. The blob
  SHA is the version token; content arrives base64 encoded.
- Write: ``PUT /repos/{owner}/{repo}/contents/{path}`` with a commit message,
  base64 content, the branch, and the SHA when updating an existing file.
  GitHub answers 409/422 when that SHA is stale or missing.
- Files over 1 MB come back from the contents endpoint with
  ``"encoding": "none"`` and no content; they are re-fetched with the raw
  media type.

A ``requests.Session`` can be injected for tests.
"""
from __future__ import annotations

import base64
import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

import requests

from progress_tracker.config import GitHubConfig
from progress_tracker.errors import ConfigurationError, TransportError, VersionConflict, WriteDisabled
from progress_tracker.store import ObjectStore, ReadResult, WriteResult

logger = logging.getLogger(__name__)

CONFLICT_STATUSES = frozenset({409, 422})
RAW_MEDIA_TYPE = "application/vnd.github.raw"


def encode_content(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def decode_content(payload: str) -> str:
    # The API wraps base64 at 60 columns; b64decode discards the newlines.
    return base64.b64decode(payload or "").decode("utf-8")


def _content_omitted(payload: Dict[str, Any]) -> bool:
    if payload.get("encoding") == "none":
        return True
    return not payload.get("content") and int(payload.get("size") or 0) > 0


class GitHubContentsStore(ObjectStore):
    """Object store backed by files in a GitHub repository.

    Reads work anonymously for public repositories. Writes require the
    configuration to be write-enabled (owner, repo, branch and token);
    otherwise ``write`` raises ``WriteDisabled`` without touching the network.
    """

    def __init__(
        self,
        config: GitHubConfig,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._config = config
        self._session = session if session is not None else requests.Session()
        self._versions: Dict[str, str] = {}

    @property
    def config(self) -> GitHubConfig:
        return self._config

    @property
    def write_enabled(self) -> bool:
        return self._config.write_enabled

    def known_version(self, path: str) -> Optional[str]:
        return self._versions.get(path)

    # -------------
    # Helpers
    # -------------

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/vnd.github+json"}
        token = self._config.token.strip()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def _contents_url(self, path: str) -> str:
        if not self._config.has_repository:
            raise ConfigurationError("GitHub owner and repo must be configured")
        owner = quote(self._config.owner.strip(), safe="")
        repo = quote(self._config.repo.strip(), safe="")
        return f"{self._config.api_url.rstrip('/')}/repos/{owner}/{repo}/contents/{quote(path, safe='/')}"

    def _request_kwargs(self) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {"headers": self._headers()}
        if self._config.timeout_seconds is not None:
            kwargs["timeout"] = self._config.timeout_seconds
        return kwargs

    def _read_raw(self, path: str, url: str) -> str:
        kwargs = self._request_kwargs()
        kwargs["headers"]["Accept"] = RAW_MEDIA_TYPE
        resp = self._session.get(url, params={"ref": self._config.effective_branch}, **kwargs)
        if not resp.ok:
            raise TransportError(path=path, status=resp.status_code, body=resp.text, method="GET")
        logger.debug("GET %s: fetched raw content", path)
        return resp.content.decode("utf-8")

    # -------------
    # ObjectStore
    # -------------

    def read(self, path: str) -> ReadResult:
        url = self._contents_url(path)
        resp = self._session.get(url, params={"ref": self._config.effective_branch}, **self._request_kwargs())

        if resp.status_code == 404:
            logger.debug("GET %s: not found", path)
            return ReadResult(exists=False)
        if not resp.ok:
            raise TransportError(path=path, status=resp.status_code, body=resp.text, method="GET")

        payload = resp.json()
        version = payload.get("sha")
        if _content_omitted(payload):
            content = self._read_raw(path, url)
        else:
            content = decode_content(payload.get("content", ""))
        if version:
            self._versions[path] = version
        logger.debug("GET %s: sha=%s (%d chars)", path, version, len(content))
        return ReadResult(exists=True, content=content, version=version)

    def write(
        self,
        path: str,
        content: str,
        expected_version: Optional[str],
        message: str,
    ) -> WriteResult:
        if not self.write_enabled:
            raise WriteDisabled()

        url = self._contents_url(path)
        body: Dict[str, Any] = {
            "message": message,
            "content": encode_content(content),
            "branch": self._config.effective_branch,
        }
        if expected_version:
            body["sha"] = expected_version

        resp = self._session.put(url, json=body, **self._request_kwargs())

        if resp.status_code in CONFLICT_STATUSES:
            logger.info("PUT %s: version conflict (status %s)", path, resp.status_code)
            raise VersionConflict(
                path=path,
                expected_version=expected_version,
                status=resp.status_code,
                body=resp.text,
            )
        if not resp.ok:
            raise TransportError(path=path, status=resp.status_code, body=resp.text, method="PUT")

        payload = resp.json() or {}
        version = (payload.get("content") or {}).get("sha")
        if version:
            self._versions[path] = version
        logger.debug("PUT %s: sha=%s", path, version)
        return WriteResult(version=version)
