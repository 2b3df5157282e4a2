"""
Encoding detection for manifest files.

Workflows, compose files and Dockerfiles are nearly always UTF-8, but files
with a BOM or a legacy code page are read and written back in their own
encoding.
"""

from __future__ import annotations

from pathlib import Path

from charset_normalizer import from_bytes

# Size of data to use for encoding detection
DETECTION_SAMPLE_SIZE = 8192


def detect_encoding(data: bytes) -> str:
    """
    Detect encoding of manifest data.

    Detection priority:
    1. BOM (UTF-8, UTF-16)
    2. charset-normalizer detection
    3. Fallback to UTF-8

    Args:
        data: File content

    Returns:
        Codec name usable with bytes.decode
    """
    if data.startswith(b"\xef\xbb\xbf"):
        return "utf-8-sig"

    if data.startswith(b"\xff\xfe") or data.startswith(b"\xfe\xff"):
        return "utf-16"

    if not data:
        return "utf-8"

    # Plain UTF-8 is by far the common case; only guess when it fails
    try:
        data.decode("utf-8")
        return "utf-8"
    except UnicodeDecodeError:
        pass

    best = from_bytes(data[:DETECTION_SAMPLE_SIZE]).best()
    if best is not None:
        return best.encoding.lower()

    return "utf-8"


def decode_with_fallback(data: bytes, encoding: str) -> str:
    """Decode bytes, using replacement characters for invalid sequences."""
    try:
        return data.decode(encoding)
    except UnicodeDecodeError:
        return data.decode(encoding, errors="replace")


def read_text(path: Path | str) -> tuple[str, str]:
    """
    Read a file as text.

    Returns:
        Tuple of (text, encoding); line endings are kept as written
    """
    data = Path(path).read_bytes()
    encoding = detect_encoding(data)
    return decode_with_fallback(data, encoding), encoding
