"""
CLI for refpin.

Command-line interface for pinning GitHub Actions and container images.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from refpin.cli.context import CliHelper, ExitCode

if TYPE_CHECKING:
    from typer import Typer

    app: Typer


def __getattr__(name: str) -> Any:
    if name == "app":
        from refpin.cli.main import app as _app

        return _app
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "CliHelper",
    "ExitCode",
    "app",
]
