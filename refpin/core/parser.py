"""
Reference parser contract.

A parser owns a matching pattern, an exclusion policy and the rules to turn a
matched substring into an EntityRef. The cache and registry client are
injected at construction time.
"""

from __future__ import annotations

import re
import threading
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from refpin.core.registry import Registry, RegistryClient
from refpin.core.store import RefCacher, new_ref_cacher

if TYPE_CHECKING:
    from refpin.core.config import Config
    from refpin.core.models import EntityRef
    from refpin.core.rest import REST


class Parser(ABC):
    """Base class for reference parsers."""

    default_regex: str = ""

    def __init__(
        self,
        *,
        cache: RefCacher | None = None,
        registry: Registry | None = None,
        use_cache: bool = True,
    ):
        """
        Initialize parser.

        Args:
            cache: Cache for resolved references; a thread-safe one is created by default
            registry: Registry client for image digests
            use_cache: False disables caching entirely
        """
        self._regex = self.default_regex
        self._pattern = re.compile(self._regex)
        self.cache: RefCacher | None = (cache or new_ref_cacher()) if use_cache else None
        self.registry: Registry = registry or RegistryClient()

    def get_regex(self) -> str:
        """Get the matching pattern."""
        return self._regex

    def set_regex(self, regex: str) -> None:
        """Override the matching pattern. An empty string keeps the current one."""
        if regex:
            self._pattern = re.compile(regex)
            self._regex = regex

    @property
    def pattern(self) -> re.Pattern[str]:
        """Compiled matching pattern."""
        return self._pattern

    def set_cache(self, cache: RefCacher | None) -> None:
        """Replace the cache. None disables caching."""
        self.cache = cache

    @abstractmethod
    def replace(
        self,
        matched: str,
        rest: REST | None,
        config: Config,
        cancel: threading.Event | None = None,
    ) -> EntityRef:
        """
        Resolve a matched reference.

        Raises:
            ReferenceSkippedError: If the reference must be left untouched
            MalformedReferenceError: If the reference cannot be parsed
        """

    @abstractmethod
    def convert_to_entity_ref(self, matched: str) -> EntityRef:
        """Split a matched reference into an EntityRef without resolving it."""

    def declared_stage(self, line: str) -> str | None:
        """Name a line declares for later local reference, if any."""
        return None

    def references_stage(self, matched: str, stages: set[str]) -> bool:
        """Check if a match points at a name declared earlier in the file."""
        return False

    def format_replacement(self, matched: str, entity: EntityRef) -> str:
        """Build the text that replaces a match."""
        return f"{entity.prefix}{entity.name}@{entity.ref} # {entity.tag}"
