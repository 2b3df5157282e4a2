"""
CLI context shared by the commands.

Holds the flags common to every command and the helpers that print or write
results and decide the exit code.
"""

from __future__ import annotations

import sys
from enum import IntEnum
from typing import Any

import typer
from pydantic import BaseModel, Field

from refpin.core.models import ReplaceResult
from refpin.core.writer import write_modified


class ExitCode(IntEnum):
    """CLI exit codes following Unix conventions."""

    SUCCESS = 0  # Nothing to do, or files rewritten
    MODIFIED = 1  # Files would change and --error was given
    FATAL = 2  # Resolution or I/O failure
    USAGE = 64  # Command line usage error
    CONFIG = 78  # Configuration error


class CliHelper(BaseModel):
    """Flags shared by the pinning commands."""

    dry_run: bool = Field(default=False, description="Print new content instead of writing")
    quiet: bool = Field(default=False, description="Do not report processed and modified files")
    error_on_modified: bool = Field(default=False, description="Exit non-zero if files were modified")
    out: Any = Field(default_factory=lambda: sys.stdout, description="Stream for dry-run content")

    def log(self, message: str) -> None:
        """Report progress on stderr unless quiet."""
        if not self.quiet:
            typer.echo(message, err=True)

    def process_output(self, result: ReplaceResult) -> None:
        """
        Report a run and persist it.

        On dry run the new content of each modified file is printed; otherwise
        modified files are written back in their original encoding.
        """
        for processed in result.processed:
            self.log(f"Processed: {processed}")

        for modified in sorted(result.modified):
            self.log(f"Modified: {modified}")
            if self.dry_run:
                self.out.write(result.modified[modified])
                if not result.modified[modified].endswith("\n"):
                    self.out.write("\n")

        if not self.dry_run:
            write_modified(result.modified, result.encodings)

    def check_modified(self, modified: dict[str, str]) -> ExitCode:
        """Exit code for a run, honouring --error."""
        if modified and self.error_on_modified:
            self.log(f"Error: {len(modified)} file(s) modified")
            return ExitCode.MODIFIED
        return ExitCode.SUCCESS
