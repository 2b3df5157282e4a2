"""Logging setup with secret redaction."""

from __future__ import annotations

import logging
import re
import sys
from collections.abc import Iterable

LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"

_AUTH_HEADER_RE = re.compile(
    r"(Authorization:?[ \t]+(?:Bearer[ \t]+|Basic[ \t]+|token[ \t]+)?|Bearer[ \t]+)\S+",
    re.IGNORECASE,
)
_SECRET_PARAM_RE = re.compile(r"(token|secret|password)=[^\s&]+", re.IGNORECASE)
_GITHUB_TOKEN_RE = re.compile(r"\b(gh[pousr]_|github_pat_)[A-Za-z0-9_]+")


def redact(message: str) -> str:
    """Mask bearer tokens, credentials in query strings and GitHub tokens."""
    message = _AUTH_HEADER_RE.sub(r"\1***", message)
    message = _SECRET_PARAM_RE.sub(r"\1=***", message)
    return _GITHUB_TOKEN_RE.sub(r"\1***", message)


class RedactingFilter(logging.Filter):
    """Redact secret-bearing fields from log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = redact(record.getMessage())
        record.args = ()
        return True


def setup_logging(
    level: int = logging.WARNING,
    quiet_loggers: Iterable[str] = ("urllib3", "charset_normalizer"),
) -> None:
    """
    Configure the root logger to write to stderr.

    Args:
        level: Level for refpin loggers
        quiet_loggers: Third-party loggers kept at WARNING unless level is DEBUG
    """
    logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stderr, force=True)

    redacting = RedactingFilter()
    for handler in logging.getLogger().handlers:
        handler.addFilter(redacting)

    logging.getLogger("refpin").setLevel(level)
    for name in quiet_loggers:
        logging.getLogger(name).setLevel(level if level <= logging.DEBUG else logging.WARNING)
