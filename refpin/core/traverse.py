"""
Discovery of manifest files below a path.

Directories are walked in lexical order without following symlinks. Entries
that cannot be read are skipped.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Iterator
from pathlib import Path

logger = logging.getLogger(__name__)


def is_yaml_or_dockerfile(path: Path) -> bool:
    """Check if a file name looks like a YAML manifest or a Dockerfile."""
    name = path.name
    return name.endswith(".yml") or name.endswith(".yaml") or "dockerfile" in name.lower()


def walk(base: Path | str) -> Iterator[Path]:
    """Yield every regular file below base, depth first, in lexical order."""
    base = Path(base)
    if base.is_symlink() or not base.is_dir():
        if base.is_file():
            yield base
        return

    try:
        names = sorted(os.listdir(base))
    except OSError as e:
        logger.debug("Skipping unreadable directory %s: %s", base, e)
        return

    for name in names:
        path = base / name
        if path.is_symlink():
            continue
        if path.is_dir():
            yield from walk(path)
        elif path.is_file():
            yield path


def traverse_yaml_dockerfiles(
    base: Path | str,
    predicate: Callable[[Path], bool] = is_yaml_or_dockerfile,
) -> list[Path]:
    """
    Collect candidate manifest files below base.

    Args:
        base: Directory or single file
        predicate: File filter

    Returns:
        Matching files in walk order
    """
    return [path for path in walk(base) if predicate(path)]
