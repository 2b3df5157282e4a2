"""Tests for the GitHub REST client."""

from __future__ import annotations

import threading
from typing import Any

import pytest
import requests
from requests.structures import CaseInsensitiveDict

from refpin.core.errors import MalformedResponseError, OperationCancelledError, RemoteLookupError
from refpin.core.rest import GitHubClient, RestResponse


class StubSession:
    """Session recording requests and returning one canned response."""

    def __init__(self, response: requests.Response | Exception):
        self.headers: dict[str, str] = {}
        self.response = response
        self.calls: list[tuple[str, str, Any]] = []

    def request(self, method: str, url: str, json: Any = None, timeout: float | None = None):
        self.calls.append((method, url, json))
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


def make_response(status: int, content: bytes = b"{}") -> requests.Response:
    response = requests.Response()
    response.status_code = status
    response._content = content
    response.headers = CaseInsensitiveDict({"Content-Type": "application/json"})
    return response


class TestGitHubClient:
    """Tests for GitHubClient."""

    def test_default_headers(self) -> None:
        session = StubSession(make_response(200))
        GitHubClient("ghp_secret", session=session)  # type: ignore[arg-type]
        assert session.headers["Authorization"] == "Bearer ghp_secret"
        assert session.headers["Accept"] == "application/vnd.github+json"
        assert session.headers["User-Agent"].startswith("refpin/")

    def test_anonymous(self) -> None:
        session = StubSession(make_response(200))
        GitHubClient(session=session)  # type: ignore[arg-type]
        assert "Authorization" not in session.headers

    def test_new_request_joins_base_url(self) -> None:
        client = GitHubClient(base_url="https://ghe.example.com/api/v3", session=StubSession(make_response(200)))  # type: ignore[arg-type]
        request = client.new_request("get", "repos/actions/checkout/git/refs/tags/v4")
        assert request.method == "GET"
        assert request.url == "https://ghe.example.com/api/v3/repos/actions/checkout/git/refs/tags/v4"

    def test_do_returns_error_status(self) -> None:
        """Test 404 responses are returned, not raised."""
        session = StubSession(make_response(404, b'{"message": "Not Found"}'))
        client = GitHubClient(session=session)  # type: ignore[arg-type]

        response = client.do(client.new_request("GET", "repos/a/b"))

        assert response.status_code == 404
        assert response.json() == {"message": "Not Found"}
        assert session.calls == [("GET", "https://api.github.com/repos/a/b", None)]

    def test_do_wraps_transport_errors(self) -> None:
        client = GitHubClient(session=StubSession(requests.Timeout("timed out")))  # type: ignore[arg-type]
        with pytest.raises(RemoteLookupError) as exc_info:
            client.do(client.new_request("GET", "repos/a/b"))
        assert exc_info.value.context["url"] == "https://api.github.com/repos/a/b"

    def test_do_cancelled(self) -> None:
        session = StubSession(make_response(200))
        client = GitHubClient(session=session)  # type: ignore[arg-type]
        cancel = threading.Event()
        cancel.set()

        with pytest.raises(OperationCancelledError):
            client.do(client.new_request("GET", "repos/a/b"), cancel)
        assert session.calls == []


class TestRestResponse:
    """Tests for RestResponse."""

    def test_json_list(self) -> None:
        assert RestResponse(status_code=200, content=b"[1, 2]").json() == [1, 2]

    def test_json_invalid(self) -> None:
        with pytest.raises(MalformedResponseError):
            RestResponse(status_code=200, content=b"not json").json()
