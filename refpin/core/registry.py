"""
Container registry access.

Parses image references into registry/repository/identifier parts and looks
up manifest descriptors through the OCI distribution API.

Usage:
    from refpin.core.registry import RegistryClient, parse_reference

    ref = parse_reference("golang:1.22.2")
    print(ref.context_name)  # index.docker.io/library/golang
    desc = RegistryClient().get_descriptor(ref)
"""

from __future__ import annotations

import base64
import hashlib
import logging
import re
import threading
from abc import ABC, abstractmethod
from typing import Any

import requests
from pydantic import BaseModel

from refpin.core.errors import (
    ImageNotFoundError,
    InvalidImageReferenceError,
    MalformedResponseError,
    RemoteLookupError,
)
from refpin.core.models import Descriptor
from refpin.core.rest import DEFAULT_TIMEOUT, USER_AGENT, check_cancelled

logger = logging.getLogger(__name__)

DEFAULT_REGISTRY = "index.docker.io"
DEFAULT_TAG = "latest"
DOCKER_HUB_API_HOST = "registry-1.docker.io"

_DOCKER_HUB_ALIASES = {"docker.io", "index.docker.io", "registry-1.docker.io"}

_TAG_RE = re.compile(r"^[\w][\w.-]{0,127}$")
_DIGEST_RE = re.compile(r"^[a-z0-9]+(?:[.+_-][a-z0-9]+)*:[a-fA-F0-9]{32,}$")
_REPO_COMPONENT_RE = re.compile(r"^[a-z0-9]+(?:(?:[._]|__|-+)[a-z0-9]+)*$")

INDEX_MEDIA_TYPES = frozenset(
    {
        "application/vnd.oci.image.index.v1+json",
        "application/vnd.docker.distribution.manifest.list.v2+json",
    }
)

MANIFEST_ACCEPT = ", ".join(
    [
        "application/vnd.oci.image.index.v1+json",
        "application/vnd.docker.distribution.manifest.list.v2+json",
        "application/vnd.oci.image.manifest.v1+json",
        "application/vnd.docker.distribution.manifest.v2+json",
        "application/vnd.docker.distribution.manifest.v1+prettyjws",
    ]
)


# =============================================================================
# Reference Parsing
# =============================================================================


class ImageReference(BaseModel, frozen=True):
    """Parsed container image reference."""

    registry: str
    repository: str
    tag: str = ""
    digest: str = ""
    original: str = ""

    @property
    def context_name(self) -> str:
        """Fully qualified repository, e.g. 'index.docker.io/library/golang'."""
        return f"{self.registry}/{self.repository}"

    @property
    def identifier(self) -> str:
        """Digest if present, else tag (default 'latest')."""
        if self.digest:
            return self.digest
        return self.tag or DEFAULT_TAG

    @property
    def image_name(self) -> str:
        """Last path segment of the repository, e.g. 'golang'."""
        return self.repository.rsplit("/", 1)[-1]


class Platform(BaseModel, frozen=True):
    """Target platform of a multi-arch image."""

    os: str
    architecture: str

    def __str__(self) -> str:
        return f"{self.os}/{self.architecture}"


def _is_registry_host(component: str) -> bool:
    return "." in component or ":" in component or component == "localhost"


def parse_reference(reference: str) -> ImageReference:
    """
    Parse an image reference.

    Supports 'registry/repo:tag', 'registry/repo@digest' and
    'registry/repo:tag@digest'. The registry defaults to Docker Hub, where
    single-segment names live under 'library/'.

    Raises:
        InvalidImageReferenceError: If the reference is malformed
    """
    text = reference.strip()
    if not text:
        raise InvalidImageReferenceError("empty image reference")

    name = text
    tag = ""
    digest = ""

    if "@" in name:
        name, _, digest = name.partition("@")
        if not _DIGEST_RE.match(digest):
            raise InvalidImageReferenceError(f"invalid digest in image reference: {reference}")

    last_slash = name.rfind("/")
    last_colon = name.rfind(":")
    if last_colon > last_slash:
        name, tag = name[:last_colon], name[last_colon + 1 :]
        if not _TAG_RE.match(tag):
            raise InvalidImageReferenceError(f"invalid tag in image reference: {reference}")

    parts = name.split("/")
    if len(parts) > 1 and _is_registry_host(parts[0]):
        registry = parts[0]
        repo_parts = parts[1:]
    else:
        registry = DEFAULT_REGISTRY
        repo_parts = parts

    if registry in _DOCKER_HUB_ALIASES:
        registry = DEFAULT_REGISTRY
        if len(repo_parts) == 1:
            repo_parts = ["library", *repo_parts]

    if not repo_parts or not all(_REPO_COMPONENT_RE.match(p) for p in repo_parts):
        raise InvalidImageReferenceError(f"invalid repository in image reference: {reference}")

    return ImageReference(
        registry=registry,
        repository="/".join(repo_parts),
        tag=tag,
        digest=digest,
        original=text,
    )


def split_name_and_identifier(reference: str) -> tuple[str, str, str]:
    """
    Split a reference as written into (name, tag, digest) without normalizing.

    A colon belonging to a registry port is not mistaken for a tag separator.
    """
    name, _, digest = reference.partition("@")
    tag = ""
    last_slash = name.rfind("/")
    last_colon = name.rfind(":")
    if last_colon > last_slash:
        name, tag = name[:last_colon], name[last_colon + 1 :]
    return name, tag, digest


# =============================================================================
# Registry Interface
# =============================================================================


class Registry(ABC):
    """Manifest lookup contract consumed by the digest resolver."""

    @abstractmethod
    def get_descriptor(
        self,
        ref: ImageReference,
        platform: Platform | None = None,
        cancel: threading.Event | None = None,
    ) -> Descriptor:
        """Return the descriptor of the manifest the reference points at."""


class RegistryClient(Registry):
    """
    OCI distribution API client.

    Negotiates anonymous bearer tokens from the registry's WWW-Authenticate
    challenge. Basic credentials are used for the token endpoint and for
    registries that ask for basic auth.
    """

    def __init__(
        self,
        *,
        username: str | None = None,
        password: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ):
        self.username = username
        self.password = password
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": USER_AGENT})
        self._tokens: dict[tuple[str, str], str] = {}
        self._lock = threading.Lock()

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def get_descriptor(
        self,
        ref: ImageReference,
        platform: Platform | None = None,
        cancel: threading.Event | None = None,
    ) -> Descriptor:
        if platform is None:
            response = self._request("HEAD", ref, ref.identifier, cancel)
            digest = response.headers.get("Docker-Content-Digest", "")
            if response.status_code == 200 and digest:
                return Descriptor(
                    media_type=_content_type(response),
                    digest=digest,
                    size=int(response.headers.get("Content-Length", 0) or 0),
                )

        response = self._request("GET", ref, ref.identifier, cancel)
        media_type = _content_type(response)
        body = response.content
        digest = response.headers.get("Docker-Content-Digest") or "sha256:" + hashlib.sha256(body).hexdigest()

        if platform is not None:
            manifest = _decode_manifest(response, ref)
            media_type = media_type or manifest.get("mediaType", "")
            if media_type in INDEX_MEDIA_TYPES or "manifests" in manifest:
                return _select_platform(manifest, platform, ref)

        return Descriptor(media_type=media_type, digest=digest, size=len(body))

    # -------------------------------------------------------------------------
    # HTTP
    # -------------------------------------------------------------------------

    def _base_url(self, registry: str) -> str:
        host = DOCKER_HUB_API_HOST if registry == DEFAULT_REGISTRY else registry
        scheme = "http" if host.startswith(("localhost", "127.0.0.1")) else "https"
        return f"{scheme}://{host}/v2"

    def _request(
        self,
        method: str,
        ref: ImageReference,
        identifier: str,
        cancel: threading.Event | None,
    ) -> requests.Response:
        url = f"{self._base_url(ref.registry)}/{ref.repository}/manifests/{identifier}"
        headers = {"Accept": MANIFEST_ACCEPT}

        token = self._cached_token(ref)
        if token:
            headers["Authorization"] = f"Bearer {token}"

        response = self._send(method, url, headers, cancel)
        if response.status_code == 401:
            auth = self._authenticate(response, ref, cancel)
            if auth:
                headers["Authorization"] = auth
                response = self._send(method, url, headers, cancel)

        if response.status_code == 404:
            raise ImageNotFoundError(
                f"manifest unknown: {ref.context_name}:{identifier}",
                context={"reference": ref.original},
            )
        if response.status_code >= 400:
            raise RemoteLookupError(
                f"registry returned {response.status_code} for {method} {url}",
                context={"reference": ref.original, "status": response.status_code},
            )
        return response

    def _send(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        cancel: threading.Event | None,
    ) -> requests.Response:
        check_cancelled(cancel)
        logger.debug("Registry %s %s", method, url)
        try:
            return self.session.request(method, url, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise RemoteLookupError(f"failed to reach registry {url}: {e}", context={"url": url}) from e

    # -------------------------------------------------------------------------
    # Auth
    # -------------------------------------------------------------------------

    def _cached_token(self, ref: ImageReference) -> str | None:
        with self._lock:
            return self._tokens.get((ref.registry, ref.repository))

    def _authenticate(
        self,
        response: requests.Response,
        ref: ImageReference,
        cancel: threading.Event | None,
    ) -> str | None:
        """Answer a 401 challenge. Returns an Authorization header value."""
        scheme, params = parse_challenge(response.headers.get("WWW-Authenticate", ""))

        if scheme == "basic":
            if self.username is None:
                return None
            return _basic_header(self.username, self.password or "")

        if scheme != "bearer" or "realm" not in params:
            return None

        query = {"scope": params.get("scope") or f"repository:{ref.repository}:pull"}
        if "service" in params:
            query["service"] = params["service"]

        auth = (self.username, self.password or "") if self.username else None
        check_cancelled(cancel)
        try:
            token_response = self.session.get(params["realm"], params=query, auth=auth, timeout=self.timeout)
        except requests.RequestException as e:
            raise RemoteLookupError(f"failed to fetch registry token: {e}") from e

        if token_response.status_code >= 400:
            raise RemoteLookupError(
                f"registry token endpoint returned {token_response.status_code}",
                context={"reference": ref.original},
            )

        try:
            payload = token_response.json()
        except ValueError as e:
            raise MalformedResponseError(f"cannot decode registry token: {e}") from e

        token = payload.get("token") or payload.get("access_token") if isinstance(payload, dict) else None
        if not token:
            raise MalformedResponseError("registry token response has no token")

        with self._lock:
            self._tokens[(ref.registry, ref.repository)] = token
        return f"Bearer {token}"


# =============================================================================
# Helpers
# =============================================================================

_CHALLENGE_PARAM_RE = re.compile(r'(\w+)="([^"]*)"')


def parse_challenge(header: str) -> tuple[str, dict[str, str]]:
    """Parse 'Bearer realm="...",service="..."' into ('bearer', {...})."""
    scheme, _, rest = header.strip().partition(" ")
    return scheme.lower(), dict(_CHALLENGE_PARAM_RE.findall(rest))


def _basic_header(username: str, password: str) -> str:
    raw = f"{username}:{password}".encode()
    return "Basic " + base64.b64encode(raw).decode("ascii")


def _content_type(response: requests.Response) -> str:
    return response.headers.get("Content-Type", "").split(";")[0].strip()


def _decode_manifest(response: requests.Response, ref: ImageReference) -> dict[str, Any]:
    try:
        manifest = response.json()
    except ValueError as e:
        raise MalformedResponseError(f"cannot decode manifest for {ref.original}: {e}") from e
    if not isinstance(manifest, dict):
        raise MalformedResponseError(f"unexpected manifest shape for {ref.original}")
    return manifest


def _select_platform(manifest: dict[str, Any], platform: Platform, ref: ImageReference) -> Descriptor:
    for entry in manifest.get("manifests", []):
        if not isinstance(entry, dict):
            continue
        entry_platform = entry.get("platform") or {}
        if entry_platform.get("os") == platform.os and entry_platform.get("architecture") == platform.architecture:
            digest = entry.get("digest")
            if not isinstance(digest, str):
                raise MalformedResponseError(f"manifest entry without digest in {ref.original}")
            return Descriptor(
                media_type=entry.get("mediaType", ""),
                digest=digest,
                size=int(entry.get("size", 0) or 0),
            )

    raise ImageNotFoundError(
        f"no child with platform {platform} in index {ref.original}",
        context={"reference": ref.original, "platform": str(platform)},
    )
