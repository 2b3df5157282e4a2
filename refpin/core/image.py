"""
Container image references.

Resolves image tags to manifest digests and rewrites YAML 'image:' values and
Dockerfile FROM instructions.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

from refpin.core.dockerfile import declared_stage, parse_from
from refpin.core.errors import (
    InvalidDockerfileLineError,
    InvalidImageReferenceError,
    InvalidPlatformError,
    ReferenceSkippedError,
)
from refpin.core.models import EntityRef, ReferenceType
from refpin.core.parser import Parser
from refpin.core.registry import (
    DEFAULT_TAG,
    Platform,
    Registry,
    parse_reference,
    split_name_and_identifier,
)
from refpin.core.yamlkey import split_key_value, strip_quotes

if TYPE_CHECKING:
    from refpin.core.config import Config
    from refpin.core.rest import REST
    from refpin.core.store import RefCacher

logger = logging.getLogger(__name__)

# Matches YAML 'image:' values and Dockerfile FROM instructions with any
# number of BuildKit flags. Stops at the image token, so 'AS <stage>' stays
# outside the match.
CONTAINER_IMAGE_REGEX = (
    r"""(?<![\w-])image[ \t]*:[ \t]*["']?[^\s"'#]+["']?"""
    r"|(?<![\w-])FROM[ \t]+(?:--[\w-]+=\S+[ \t]+)*[^\s-]\S*"
)
IMAGE_KEY = "image"


def parse_platform(platform: str) -> Platform:
    """
    Parse an 'os/arch' platform string.

    Raises:
        InvalidPlatformError: If platform does not contain exactly one '/'
    """
    parts = platform.split("/")
    if len(parts) != 2 or not all(parts):
        raise InvalidPlatformError(f"platform must be in the format os/arch: {platform!r}")
    return Platform(os=parts[0], architecture=parts[1])


def get_image_digest_from_ref(
    image_ref: str,
    platform: str,
    cache: RefCacher | None,
    registry: Registry,
    cancel: threading.Event | None = None,
) -> EntityRef:
    """
    Resolve an image reference to its manifest digest.

    Args:
        image_ref: Reference as written, e.g. 'golang:1.22.2'
        platform: 'os/arch' or '' for the reference's own manifest
        cache: Optional cache keyed by the reference string
        registry: Registry client
        cancel: Optional cancellation event

    Returns:
        EntityRef with the fully qualified name, the digest and the original identifier

    Raises:
        ReferenceSkippedError: If the reference is already pinned to that digest
    """
    ref = parse_reference(image_ref)
    target = parse_platform(platform) if platform else None
    key = f"{image_ref}|{target}" if target else image_ref

    digest = ""
    found = False
    if cache is not None:
        digest, found = cache.load(key)
        if found:
            logger.debug("Cache hit for %s", key)

    if not found:
        digest = registry.get_descriptor(ref, target, cancel).digest
        if cache is not None:
            cache.store(key, digest)

    if digest == ref.identifier:
        raise ReferenceSkippedError(f"image already referenced by digest: {image_ref}")

    return EntityRef(
        name=ref.context_name,
        ref=digest,
        type=ReferenceType.CONTAINER,
        tag=ref.identifier,
    )


def should_skip_image_ref(config: Config, image_ref: str, *, skip_unparsable: bool = True) -> bool:
    """
    Check the image exclusion policy.

    Names in exclude_images are compared with the name as written, its last
    path segment, and the fully qualified repository. An untagged image counts
    as 'latest' for exclude_tags. Unparsable references (build args, templates)
    are skipped unless skip_unparsable is False, in which case they raise.
    """
    try:
        ref = parse_reference(image_ref)
    except InvalidImageReferenceError:
        if skip_unparsable:
            return True
        raise

    written_name, _, _ = split_name_and_identifier(image_ref)
    candidates = {written_name, ref.image_name, ref.repository, ref.context_name}
    if candidates.intersection(config.images.exclude_images):
        return True

    return ref.identifier in config.images.exclude_tags


def _literal_platform(flag: str | None) -> str | None:
    if flag and "$" not in flag and flag.count("/") == 1:
        return flag
    return None


class ImageParser(Parser):
    """Parser for container image references."""

    default_regex = CONTAINER_IMAGE_REGEX

    def replace(
        self,
        matched: str,
        rest: REST | None,
        config: Config,
        cancel: threading.Event | None = None,
    ) -> EntityRef:
        platform = config.platform

        if _is_from(matched):
            instruction = parse_from(matched)
            image_ref = strip_quotes(instruction.image)
            prefix = instruction.prefix
            platform = _literal_platform(instruction.flag("platform")) or platform
            skip = should_skip_image_ref(config, image_ref)
        else:
            kv = split_key_value(matched, IMAGE_KEY)
            if kv is not None:
                image_ref = kv.value
                prefix = kv.prefix
                skip = should_skip_image_ref(config, image_ref)
            else:
                image_ref = strip_quotes(matched)
                prefix = ""
                skip = should_skip_image_ref(config, image_ref, skip_unparsable=False)

        if skip:
            logger.debug("Skipping excluded image reference %s", image_ref)
            raise ReferenceSkippedError(f"image reference {matched} should be excluded")

        entity = get_image_digest_from_ref(image_ref, platform, self.cache, self.registry, cancel)
        return entity.with_prefix(prefix)

    def convert_to_entity_ref(self, matched: str) -> EntityRef:
        if _is_from(matched):
            reference = strip_quotes(parse_from(matched).image)
        else:
            kv = split_key_value(matched, IMAGE_KEY)
            reference = kv.value if kv is not None else strip_quotes(matched)

        # Build args and templates are not references
        parse_reference(reference)
        name, tag, digest = split_name_and_identifier(reference)

        return EntityRef(
            name=name,
            ref=digest or tag or DEFAULT_TAG,
            type=ReferenceType.CONTAINER,
            tag=tag if digest else "",
        )

    def declared_stage(self, line: str) -> str | None:
        return declared_stage(line)

    def references_stage(self, matched: str, stages: set[str]) -> bool:
        if not stages or not _is_from(matched):
            return False
        try:
            return parse_from(matched).image.lower() in stages
        except InvalidDockerfileLineError:
            return False

    def format_replacement(self, matched: str, entity: EntityRef) -> str:
        if not _is_from(matched):
            return super().format_replacement(matched, entity)

        suffix = parse_from(matched).suffix
        if not entity.tag or entity.tag.startswith("sha256:"):
            return f"{entity.prefix}{entity.name}@{entity.ref}{suffix}"
        return f"{entity.prefix}{entity.name}:{entity.tag}@{entity.ref}{suffix}"


def _is_from(matched: str) -> bool:
    return matched.lstrip()[:5].upper() in ("FROM ", "FROM\t")
