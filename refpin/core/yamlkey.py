"""
Tokenizer for YAML 'key: value' matches.

Splits matched text like 'uses: "actions/checkout@v4"' into the literal key
prefix ('uses: ') and the unquoted value, without parsing the document.
"""

from __future__ import annotations

import re

from pydantic import BaseModel

_KEY_VALUE_RE = re.compile(r"^(?P<key>[A-Za-z_][\w.-]*)(?P<sep>[ \t]*:[ \t]*)(?P<value>.*)$", re.DOTALL)


class KeyValue(BaseModel, frozen=True):
    """A split 'key: value' match."""

    key: str
    prefix: str
    value: str
    quote: str = ""


def strip_quotes(text: str) -> str:
    """Remove one pair of matching single or double quotes around text."""
    text = text.strip()
    if len(text) >= 2 and text[0] == text[-1] and text[0] in ("'", '"'):
        return text[1:-1]
    return text


def split_key_value(text: str, key: str | None = None) -> KeyValue | None:
    """
    Split a 'key: value' match.

    Args:
        text: Matched text, starting at the key
        key: Expected key name; None accepts any key

    Returns:
        KeyValue, or None if text does not start with the (expected) key
    """
    match = _KEY_VALUE_RE.match(text)
    if match is None:
        return None
    if key is not None and match.group("key") != key:
        return None

    raw_value = match.group("value").strip()
    quote = raw_value[0] if raw_value[:1] in ("'", '"') and raw_value[-1:] == raw_value[:1] else ""

    return KeyValue(
        key=match.group("key"),
        prefix=match.group("key") + match.group("sep"),
        value=strip_quotes(raw_value),
        quote=quote,
    )
