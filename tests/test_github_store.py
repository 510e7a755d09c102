from __future__ import annotations

import base64
from typing import Any

import pytest

from progress_tracker.config import GitHubConfig
from progress_tracker.errors import ConfigurationError, TransportError, VersionConflict, WriteDisabled
from progress_tracker.github_store import GitHubContentsStore, decode_content, encode_content


class _FakeResponse:
    def __init__(self, status_code: int, payload: Any = None, text: str = "", content: bytes = b"") -> None:
        self.status_code = status_code
        self._payload = payload
        self.text = text
        self.content = content

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 400

    def json(self) -> Any:
        return self._payload


class _FakeSession:
    """Records calls and replays queued responses."""

    def __init__(self, *responses: _FakeResponse) -> None:
        self._responses = list(responses)
        self.calls: list[tuple[str, str, dict]] = []

    def _next(self) -> _FakeResponse:
        return self._responses.pop(0)

    def get(self, url: str, **kwargs: Any) -> _FakeResponse:
        self.calls.append(("GET", url, kwargs))
        return self._next()

    def put(self, url: str, **kwargs: Any) -> _FakeResponse:
        self.calls.append(("PUT", url, kwargs))
        return self._next()


def _config(**overrides: Any) -> GitHubConfig:
    values = dict(
        owner="acme",
        repo="tracker",
        branch="main",
        token="secret-token",
        api_url="https://api.github.com",
        timeout_seconds=None,
    )
    values.update(overrides)
    return GitHubConfig(**values)


def _contents_payload(text: str, sha: str) -> dict:
    raw = encode_content(text)
    # The API wraps base64 content at 60 columns.
    wrapped = "\n".join(raw[i : i + 60] for i in range(0, len(raw), 60))
    return {"sha": sha, "content": wrapped, "encoding": "base64"}


def test_read_decodes_content_and_caches_sha() -> None:
    text = "id,full_name\n1,Alice Chen\n" * 10
    session = _FakeSession(_FakeResponse(200, _contents_payload(text, "abc123")))
    store = GitHubContentsStore(_config(), session=session)

    result = store.read("data/students.csv")

    assert result.exists
    assert result.content == text
    assert result.version == "abc123"
    assert store.known_version("data/students.csv") == "abc123"

    method, url, kwargs = session.calls[0]
    assert method == "GET"
    assert url == "https://api.github.com/repos/acme/tracker/contents/data/students.csv"
    assert kwargs["params"] == {"ref": "main"}
    assert kwargs["headers"]["Authorization"] == "Bearer secret-token"
    assert "timeout" not in kwargs


def test_read_not_found_is_not_an_error() -> None:
    session = _FakeSession(_FakeResponse(404, {"message": "Not Found"}, "Not Found"))
    store = GitHubContentsStore(_config(token=""), session=session)

    result = store.read("data/teams.csv")

    assert not result.exists
    assert store.known_version("data/teams.csv") is None
    # Anonymous reads carry no credential.
    assert "Authorization" not in session.calls[0][2]["headers"]


def test_read_other_failures_raise_transport_error() -> None:
    session = _FakeSession(_FakeResponse(500, None, "boom"))
    store = GitHubContentsStore(_config(), session=session)
    with pytest.raises(TransportError) as excinfo:
        store.read("data/teams.csv")
    assert excinfo.value.status == 500
    assert excinfo.value.body == "boom"


def test_read_large_file_refetches_raw_content() -> None:
    text = "id,full_name\n" + "1,Ünïcode Student\n" * 3
    session = _FakeSession(
        _FakeResponse(200, {"sha": "big", "content": "", "encoding": "none", "size": 2_000_000}),
        _FakeResponse(200, content=text.encode("utf-8")),
    )
    store = GitHubContentsStore(_config(), session=session)

    result = store.read("data/weekly_entries.csv")

    assert result.content == text
    assert result.version == "big"
    assert store.known_version("data/weekly_entries.csv") == "big"
    assert [c[0] for c in session.calls] == ["GET", "GET"]
    assert session.calls[1][2]["headers"]["Accept"] == "application/vnd.github.raw"
    assert session.calls[1][2]["params"] == {"ref": "main"}
    # The first request keeps the JSON media type.
    assert session.calls[0][2]["headers"]["Accept"] == "application/vnd.github+json"


def test_read_large_file_raw_failure_is_not_empty_content() -> None:
    session = _FakeSession(
        _FakeResponse(200, {"sha": "big", "content": "", "size": 2_000_000}),
        _FakeResponse(403, None, "too large"),
    )
    store = GitHubContentsStore(_config(), session=session)

    with pytest.raises(TransportError) as excinfo:
        store.read("data/weekly_entries.csv")
    assert excinfo.value.status == 403
    assert store.known_version("data/weekly_entries.csv") is None


def test_read_empty_file_needs_no_second_request() -> None:
    session = _FakeSession(_FakeResponse(200, {"sha": "e", "content": "", "encoding": "base64", "size": 0}))
    store = GitHubContentsStore(_config(), session=session)
    assert store.read("data/teams.csv").content == ""
    assert len(session.calls) == 1


def test_write_sends_message_content_branch_and_sha() -> None:
    session = _FakeSession(_FakeResponse(200, {"content": {"sha": "new-sha"}}))
    store = GitHubContentsStore(_config(branch="data", timeout_seconds=5.0), session=session)

    result = store.write("data/teams.csv", "id\n1", "old-sha", "feat(data): add team")

    assert result.version == "new-sha"
    assert store.known_version("data/teams.csv") == "new-sha"
    method, url, kwargs = session.calls[0]
    assert method == "PUT"
    assert url.endswith("/repos/acme/tracker/contents/data/teams.csv")
    body = kwargs["json"]
    assert body["message"] == "feat(data): add team"
    assert body["branch"] == "data"
    assert body["sha"] == "old-sha"
    assert base64.b64decode(body["content"]).decode("utf-8") == "id\n1"
    assert kwargs["timeout"] == 5.0


def test_create_omits_sha() -> None:
    session = _FakeSession(_FakeResponse(201, {"content": {"sha": "s1"}}))
    store = GitHubContentsStore(_config(), session=session)
    store.write("data/teams.csv", "id\n", None, "create")
    assert "sha" not in session.calls[0][2]["json"]


@pytest.mark.parametrize("status", [409, 422])
def test_write_conflict_statuses_raise_version_conflict(status: int) -> None:
    session = _FakeSession(_FakeResponse(status, {"message": "sha mismatch"}, "sha mismatch"))
    store = GitHubContentsStore(_config(), session=session)
    with pytest.raises(VersionConflict) as excinfo:
        store.write("data/teams.csv", "id\n", "stale", "m")
    assert excinfo.value.status == status
    assert excinfo.value.expected_version == "stale"


def test_write_other_failure_raises_transport_error() -> None:
    session = _FakeSession(_FakeResponse(403, None, "forbidden"))
    store = GitHubContentsStore(_config(), session=session)
    with pytest.raises(TransportError) as excinfo:
        store.write("data/teams.csv", "id\n", None, "m")
    assert excinfo.value.status == 403
    assert excinfo.value.method == "PUT"


def test_write_without_token_never_touches_network() -> None:
    session = _FakeSession()
    store = GitHubContentsStore(_config(token=""), session=session)
    assert store.write_enabled is False
    with pytest.raises(WriteDisabled):
        store.write("data/teams.csv", "id\n", None, "m")
    assert session.calls == []


def test_missing_repository_is_a_configuration_error() -> None:
    session = _FakeSession()
    store = GitHubContentsStore(_config(owner="", repo=""), session=session)
    with pytest.raises(ConfigurationError):
        store.read("data/teams.csv")
    assert session.calls == []


def test_content_codec_handles_unicode() -> None:
    assert decode_content(encode_content("名前,ñ\n")) == "名前,ñ\n"
