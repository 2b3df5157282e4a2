"""
REST interface for the source-control host.

The checksum resolver only needs two operations: build a request for a path,
and execute it. GitHubClient implements them on top of requests.
"""

from __future__ import annotations

import json
import logging
import threading
from abc import ABC, abstractmethod
from typing import Any
from urllib.parse import urljoin

import requests
from pydantic import BaseModel, Field

import refpin
from refpin.core.errors import MalformedResponseError, OperationCancelledError, RemoteLookupError

logger = logging.getLogger(__name__)

DEFAULT_GITHUB_API_URL = "https://api.github.com/"
DEFAULT_TIMEOUT = 30.0
USER_AGENT = f"refpin/{refpin.__version__}"


class RestRequest(BaseModel, frozen=True):
    """A prepared request."""

    method: str
    url: str
    body: Any = None


class RestResponse(BaseModel, frozen=True):
    """A fully read response."""

    status_code: int
    content: bytes = b""
    headers: dict[str, str] = Field(default_factory=dict)

    def json(self) -> Any:
        """Decode the body as JSON."""
        try:
            return json.loads(self.content.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            raise MalformedResponseError(f"cannot decode response: {e}") from e


class REST(ABC):
    """Minimal REST client contract."""

    @abstractmethod
    def new_request(self, method: str, path: str, body: Any = None) -> RestRequest:
        """Create a request for a path relative to the API root."""

    @abstractmethod
    def do(self, request: RestRequest, cancel: threading.Event | None = None) -> RestResponse:
        """
        Execute a request.

        Non-2xx responses are returned, not raised. Transport failures raise
        RemoteLookupError.
        """


def check_cancelled(cancel: threading.Event | None) -> None:
    """Raise if the caller cancelled the run."""
    if cancel is not None and cancel.is_set():
        raise OperationCancelledError("operation cancelled")


class GitHubClient(REST):
    """GitHub REST API client."""

    def __init__(
        self,
        token: str | None = None,
        *,
        base_url: str = DEFAULT_GITHUB_API_URL,
        timeout: float = DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ):
        """
        Initialize the client.

        Args:
            token: GitHub token; anonymous access has tighter rate limits
            base_url: API root, e.g. for GitHub Enterprise
            timeout: Per-request timeout in seconds
            session: Optional session to reuse
        """
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Accept": "application/vnd.github+json",
                "User-Agent": USER_AGENT,
                "X-GitHub-Api-Version": "2022-11-28",
            }
        )
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"

    def new_request(self, method: str, path: str, body: Any = None) -> RestRequest:
        return RestRequest(method=method.upper(), url=urljoin(self.base_url, path.lstrip("/")), body=body)

    def do(self, request: RestRequest, cancel: threading.Event | None = None) -> RestResponse:
        check_cancelled(cancel)
        logger.debug("GitHub API %s %s", request.method, request.url)

        try:
            response = self.session.request(
                request.method,
                request.url,
                json=request.body,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise RemoteLookupError(
                f"failed to do API request {request.method} {request.url}: {e}",
                context={"url": request.url},
            ) from e

        return RestResponse(
            status_code=response.status_code,
            content=response.content,
            headers=dict(response.headers),
        )
