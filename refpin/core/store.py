"""
Reference cache.

Memoizes key -> digest lookups for the duration of one run.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod


class RefCacher(ABC):
    """Key/value store for resolved references."""

    @abstractmethod
    def store(self, key: str, value: str) -> None:
        """Store a value, replacing any previous one."""

    @abstractmethod
    def load(self, key: str) -> tuple[str, bool]:
        """Return (value, found). Absent keys return ("", False)."""


class RefCache(RefCacher):
    """Thread-safe cache, shared by concurrently processed files."""

    def __init__(self) -> None:
        self._cache: dict[str, str] = {}
        self._lock = threading.Lock()

    def store(self, key: str, value: str) -> None:
        with self._lock:
            self._cache[key] = value

    def load(self, key: str) -> tuple[str, bool]:
        with self._lock:
            if key in self._cache:
                return self._cache[key], True
        return "", False

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)


class UnsafeRefCache(RefCacher):
    """Cache without locking, for single-threaded callers."""

    def __init__(self) -> None:
        self._cache: dict[str, str] = {}

    def store(self, key: str, value: str) -> None:
        self._cache[key] = value

    def load(self, key: str) -> tuple[str, bool]:
        if key in self._cache:
            return self._cache[key], True
        return "", False

    def __len__(self) -> int:
        return len(self._cache)


def new_ref_cacher(*, thread_safe: bool = True) -> RefCacher:
    """Create a cache. The default implementation is thread-safe."""
    if thread_safe:
        return RefCache()
    return UnsafeRefCache()
