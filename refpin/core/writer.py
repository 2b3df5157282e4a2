"""
Line handling and atomic file writes.

Lines are split with their endings so rewritten files keep CRLF, CR or LF
exactly as they were.
"""

from __future__ import annotations

import contextlib
import logging
import os
import tempfile
from pathlib import Path

logger = logging.getLogger(__name__)


def split_lines(text: str) -> list[tuple[str, str]]:
    """Split text into (content, ending) pairs, preserving line endings."""
    result: list[tuple[str, str]] = []
    i = 0
    start = 0

    while i < len(text):
        if text[i] == "\r":
            if i + 1 < len(text) and text[i + 1] == "\n":
                result.append((text[start:i], "\r\n"))
                i += 2
            else:
                result.append((text[start:i], "\r"))
                i += 1
            start = i
        elif text[i] == "\n":
            result.append((text[start:i], "\n"))
            i += 1
            start = i
        else:
            i += 1

    # Last line (may not have ending)
    if start < len(text):
        result.append((text[start:], ""))

    return result


def join_lines(lines: list[tuple[str, str]]) -> str:
    """Reassemble lines produced by split_lines."""
    return "".join(content + ending for content, ending in lines)


def write_file(path: Path | str, content: str, encoding: str = "utf-8", atomic: bool = True) -> None:
    """
    Write text to a file.

    Args:
        path: Target file
        content: New content
        encoding: Encoding to write with, normally the one the file was read with
        atomic: Write to a temp file in the same directory, then rename
    """
    path = Path(path)
    data = content.encode(encoding)

    if not atomic:
        path.write_bytes(data)
        return

    mode = path.stat().st_mode & 0o777 if path.exists() else None
    fd, temp_path = tempfile.mkstemp(dir=path.parent, prefix=".refpin_", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        if mode is not None:
            os.chmod(temp_path, mode)
        os.replace(temp_path, path)
    except Exception:
        with contextlib.suppress(OSError):
            os.unlink(temp_path)
        raise

    logger.debug("Wrote %s", path)


def write_modified(modified: dict[str, str], encodings: dict[str, str] | None = None) -> list[str]:
    """
    Write every modified file back.

    Returns:
        Paths written, in sorted order
    """
    encodings = encodings or {}
    written: list[str] = []
    for path in sorted(modified):
        write_file(path, modified[path], encodings.get(path, "utf-8"))
        written.append(path)
    return written
