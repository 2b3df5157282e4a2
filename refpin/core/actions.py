"""
GitHub Actions references.

Resolves 'uses: owner/repo@ref' lines to full commit SHAs. Tags are looked up
first, then branches. The 'uses: docker://image:tag' form is resolved as a
container image.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING
from urllib.parse import quote

from refpin.core.errors import (
    InvalidActionError,
    InvalidActionReferenceError,
    MalformedResponseError,
    ReferenceSkippedError,
    RemoteLookupError,
    UnresolvableReferenceError,
)
from refpin.core.image import get_image_digest_from_ref, should_skip_image_ref
from refpin.core.models import EntityRef, LookupStatus, ReferenceType, RefLookup
from refpin.core.parser import Parser
from refpin.core.registry import DEFAULT_TAG, split_name_and_identifier
from refpin.core.yamlkey import split_key_value, strip_quotes

if TYPE_CHECKING:
    from refpin.core.config import Config, GHActionsConfig
    from refpin.core.rest import REST

logger = logging.getLogger(__name__)

USES_KEY = "uses"
DOCKER_PREFIX = "docker://"
CHECKSUM_LENGTH = 40

GITHUB_ACTIONS_REGEX = (
    r"""(?<![\w-])uses[ \t]*:[ \t]*["']?[^\s"'#]+/[^\s"'#]+@[^\s"'#]+["']?"""
    r"""|(?<![\w-])uses[ \t]*:[ \t]*["']?docker://[^\s"'#]+:[^\s"'#]+["']?"""
)


# =============================================================================
# Reference helpers
# =============================================================================


def parse_action_reference(value: str) -> tuple[str, str]:
    """
    Split 'owner/repo[/path]@ref' into action and ref.

    Raises:
        InvalidActionReferenceError: If value does not contain exactly one '@'
    """
    frags = strip_quotes(value).split("@")
    if len(frags) != 2 or not all(frags):
        raise InvalidActionReferenceError(f"invalid action reference: {value}")
    return frags[0], frags[1]


def parse_action_fragments(action: str) -> tuple[str, str]:
    """
    Get owner and repo of an action.

    Sub-actions ('owner/repo/path') resolve against owner/repo.

    Raises:
        InvalidActionError: If action has fewer than two segments
    """
    frags = action.split("/")
    if len(frags) < 2 or not frags[0] or not frags[1]:
        raise InvalidActionError(f"invalid action: '{action}' reference is incorrect")
    return frags[0], frags[1]


def is_checksum(ref: str) -> bool:
    return len(ref) == CHECKSUM_LENGTH


def is_local(value: str) -> bool:
    return value.startswith("./") or value.startswith("../")


def should_exclude(config: GHActionsConfig, value: str) -> bool:
    return value in config.exclude


def exclude_branch(excludes: list[str], branch: str) -> bool:
    if not excludes:
        return False
    return "*" in excludes or branch in excludes


# =============================================================================
# Checksum resolver
# =============================================================================


def _repo_path(owner: str, repo: str, *parts: str) -> str:
    segments = ["repos", owner, repo, *parts]
    return "/".join(quote(segment, safe="/") for segment in segments)


def _do_get_reference(rest: REST, path: str, cancel: threading.Event | None) -> RefLookup:
    """
    Look up a git reference or tag object.

    A 404 and a list body (GitHub answers prefix matches with every matching
    ref) are both reported as not found.
    """
    request = rest.new_request("GET", path)
    response = rest.do(request, cancel)

    if response.status_code == 404:
        return RefLookup.not_found()
    if response.status_code >= 400:
        raise RemoteLookupError(
            f"failed to do API request {path}: HTTP {response.status_code}",
            context={"path": path, "status": response.status_code},
        )

    body = response.json()
    if isinstance(body, list):
        return RefLookup.not_found()

    obj = body.get("object") if isinstance(body, dict) else None
    if not isinstance(obj, dict) or not obj.get("sha"):
        return RefLookup.malformed(f"no object SHA in response for {path}")

    return RefLookup.found(obj["sha"], obj.get("type", ""))


def _resolved(lookup: RefLookup, path: str) -> str | None:
    if lookup.status == LookupStatus.MALFORMED:
        raise MalformedResponseError(f"cannot decode response: {lookup.detail}", context={"path": path})
    return lookup.sha if lookup.is_found else None


def _checksum_for_tag(rest: REST, owner: str, repo: str, tag: str, cancel: threading.Event | None) -> str | None:
    path = _repo_path(owner, repo, "git", "refs", "tags", tag)
    lookup = _do_get_reference(rest, path, cancel)
    sha = _resolved(lookup, path)
    if sha is None or lookup.object_type == "commit":
        return sha

    # Annotated tag: the ref points at a tag object, which points at the commit
    path = _repo_path(owner, repo, "git", "tags", sha)
    return _resolved(_do_get_reference(rest, path, cancel), path)


def _checksum_for_branch(
    rest: REST, owner: str, repo: str, branch: str, cancel: threading.Event | None
) -> str | None:
    path = _repo_path(owner, repo, "git", "refs", "heads", branch)
    return _resolved(_do_get_reference(rest, path, cancel), path)


def get_checksum(
    config: GHActionsConfig,
    rest: REST | None,
    action: str,
    ref: str,
    cancel: threading.Event | None = None,
) -> str:
    """
    Resolve an action reference to a commit SHA.

    Args:
        config: Actions filters, for the branch exclusion policy
        rest: REST client for the source-control host
        action: Action name, e.g. 'actions/checkout'
        ref: Tag, branch or SHA
        cancel: Optional cancellation event

    Returns:
        The 40-character commit SHA

    Raises:
        InvalidActionError: If action has no owner/repo
        ReferenceSkippedError: If ref is an excluded branch
        UnresolvableReferenceError: If ref is neither a tag nor a branch
        MalformedResponseError: If a lookup response has no object SHA
        RemoteLookupError: If a lookup fails
    """
    owner, repo = parse_action_fragments(action)

    if is_checksum(ref):
        return ref

    if rest is None:
        raise RemoteLookupError(f"no REST client available to resolve {action}@{ref}")

    sha = _checksum_for_tag(rest, owner, repo, ref, cancel)
    if sha:
        logger.debug("Resolved tag %s@%s to %s", action, ref, sha)
        return sha

    if exclude_branch(config.exclude_branches, ref):
        raise ReferenceSkippedError(f"branch is excluded: {ref}", context={"action": action})

    sha = _checksum_for_branch(rest, owner, repo, ref, cancel)
    if sha:
        logger.debug("Resolved branch %s@%s to %s", action, ref, sha)
        return sha

    raise UnresolvableReferenceError(
        "action reference is not a tag nor branch",
        context={"action": action, "ref": ref},
    )


# =============================================================================
# Parser
# =============================================================================


class ActionsParser(Parser):
    """Parser for GitHub Actions 'uses:' references."""

    default_regex = GITHUB_ACTIONS_REGEX

    def replace(
        self,
        matched: str,
        rest: REST | None,
        config: Config,
        cancel: threading.Event | None = None,
    ) -> EntityRef:
        kv = split_key_value(matched, USES_KEY)
        if kv is not None:
            value, prefix = kv.value, kv.prefix
        else:
            value, prefix = strip_quotes(matched), ""

        if value.startswith(DOCKER_PREFIX):
            entity = self._replace_docker(value, config, cancel)
        else:
            entity = self._replace_action(value, rest, config, cancel)

        return entity.with_prefix(prefix)

    def _replace_action(
        self,
        value: str,
        rest: REST | None,
        config: Config,
        cancel: threading.Event | None,
    ) -> EntityRef:
        if is_local(value) or should_exclude(config.ghactions, value):
            raise ReferenceSkippedError(f"action reference skipped: {value}")

        action, ref = parse_action_reference(value)
        if should_exclude(config.ghactions, action):
            raise ReferenceSkippedError(f"action reference skipped: {value}")

        sha = ""
        found = False
        if self.cache is not None:
            sha, found = self.cache.load(value)
            if found:
                logger.debug("Cache hit for %s", value)

        if not found:
            sha = get_checksum(config.ghactions, rest, action, ref, cancel)
            if self.cache is not None:
                self.cache.store(value, sha)

        if sha == ref:
            raise ReferenceSkippedError(f"action already referenced by checksum: {value}")

        return EntityRef(name=action, ref=sha, type=ReferenceType.ACTION, tag=ref)

    def _replace_docker(self, value: str, config: Config, cancel: threading.Event | None) -> EntityRef:
        image_ref = value[len(DOCKER_PREFIX) :]
        if is_local(image_ref) or should_exclude(config.ghactions, image_ref):
            raise ReferenceSkippedError(f"action reference skipped: {value}")
        if should_skip_image_ref(config, image_ref):
            raise ReferenceSkippedError(f"image reference {value} should be excluded")

        entity = get_image_digest_from_ref(image_ref, config.platform, self.cache, self.registry, cancel)
        if should_exclude(config.ghactions, entity.name):
            raise ReferenceSkippedError(f"action reference skipped: {value}")

        return entity.with_prefix(DOCKER_PREFIX)

    def convert_to_entity_ref(self, matched: str) -> EntityRef:
        kv = split_key_value(matched, USES_KEY)
        reference = kv.value if kv is not None else strip_quotes(matched)

        if reference.startswith(DOCKER_PREFIX):
            name, tag, digest = split_name_and_identifier(reference[len(DOCKER_PREFIX) :])
            if not name:
                raise InvalidActionReferenceError(f"invalid action reference: {reference}")
            return EntityRef(name=name, ref=digest or tag or DEFAULT_TAG, type=ReferenceType.CONTAINER)

        name, ref = parse_action_reference(reference)
        return EntityRef(name=name, ref=ref, type=ReferenceType.ACTION)
