"""
Main CLI application.

Entry point for the refpin command.
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Annotated

import typer

import refpin
from refpin.cli.context import CliHelper, ExitCode
from refpin.cli.output import OutputFormat, get_output_adapter
from refpin.core.config import DEFAULT_CONFIG_FILE, Config, load_config
from refpin.core.errors import (
    ConfigError,
    InvalidPlatformError,
    MalformedReferenceError,
    ReferenceSkippedError,
    RefpinError,
)
from refpin.core.image import parse_platform
from refpin.core.replacer import Replacer, new_actions_replacer, new_container_images_replacer
from refpin.core.rest import DEFAULT_GITHUB_API_URL
from refpin.logutil import setup_logging

DEFAULT_WORKFLOWS_DIR = ".github/workflows"

# Create main app
app = typer.Typer(
    name="refpin",
    help="Pin GitHub Actions and container images to immutable references",
    add_completion=False,
    no_args_is_help=True,
)

list_app = typer.Typer(
    help="List references without resolving them",
    no_args_is_help=True,
)
app.add_typer(list_app, name="list")


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"refpin {refpin.__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log lookups, cache hits and skips"),
    ] = False,
) -> None:
    """Pin GitHub Actions and container images to immutable references."""
    setup_logging(logging.DEBUG if verbose else logging.WARNING)


# =============================================================================
# Shared Options
# =============================================================================

DryRunOption = Annotated[
    bool,
    typer.Option("--dry-run", "-n", help="Print the new content instead of writing files"),
]
QuietOption = Annotated[
    bool,
    typer.Option("--quiet", "-q", help="Do not report processed and modified files"),
]
ErrorOption = Annotated[
    bool,
    typer.Option("--error", "-e", help="Exit with an error code if any file was modified"),
]
RegexOption = Annotated[
    str,
    typer.Option("--regex", "-r", help="Override the regular expression used to find references"),
]
PlatformOption = Annotated[
    str,
    typer.Option("--platform", "-p", help="Platform for image digests, e.g. linux/amd64"),
]
ConfigOption = Annotated[
    Path,
    typer.Option("--config", "-c", help="Configuration file"),
]
OutputOption = Annotated[
    str,
    typer.Option("--output", "-o", help="Output format: table, json"),
]


def _load_config(config_file: Path, platform: str) -> Config:
    try:
        config = load_config(config_file)
    except ConfigError as e:
        typer.echo(f"Error loading configuration: {e}", err=True)
        raise typer.Exit(ExitCode.CONFIG) from None

    if platform:
        try:
            parse_platform(platform)
        except InvalidPlatformError as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(ExitCode.USAGE) from None

    return config.with_platform(platform)


def _with_regex(replacer: Replacer, regex: str) -> Replacer:
    try:
        return replacer.with_user_regex(regex)
    except re.error as e:
        typer.echo(f"Invalid regular expression {regex!r}: {e}", err=True)
        raise typer.Exit(ExitCode.USAGE) from None


def _run(replacer: Replacer, path_or_ref: str, helper: CliHelper) -> None:
    """Rewrite a path, or resolve a single reference."""
    if Path(path_or_ref).exists():
        try:
            result = replacer.parse_path(path_or_ref)
            helper.process_output(result)
        except RefpinError as e:
            typer.echo(f"Error processing {path_or_ref}: {e}", err=True)
            raise typer.Exit(ExitCode.FATAL) from None
        except OSError as e:
            typer.echo(f"Error processing {path_or_ref}: {e}", err=True)
            raise typer.Exit(ExitCode.FATAL) from None

        raise typer.Exit(helper.check_modified(result.modified))

    try:
        entity = replacer.parse_string(path_or_ref)
    except ReferenceSkippedError:
        typer.echo(path_or_ref)
        raise typer.Exit(ExitCode.SUCCESS) from None
    except MalformedReferenceError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(ExitCode.USAGE) from None
    except RefpinError as e:
        typer.echo(f"Error resolving {path_or_ref}: {e}", err=True)
        raise typer.Exit(ExitCode.FATAL) from None

    typer.echo(entity.pinned())


def _list(replacer: Replacer, path: Path, output: str) -> None:
    try:
        output_format = OutputFormat(output)
    except ValueError:
        typer.echo(f"Unknown output format: {output}", err=True)
        typer.echo("Available formats: table, json", err=True)
        raise typer.Exit(ExitCode.USAGE) from None

    try:
        result = replacer.list_path(path)
    except OSError as e:
        typer.echo(f"Error listing {path}: {e}", err=True)
        raise typer.Exit(ExitCode.FATAL) from None

    get_output_adapter(output_format).render_and_write(result)


# =============================================================================
# Pin Commands
# =============================================================================


@app.command()
def actions(
    path_or_ref: Annotated[
        str,
        typer.Argument(help="Workflow directory, file, or a single owner/repo@ref"),
    ] = DEFAULT_WORKFLOWS_DIR,
    dry_run: DryRunOption = False,
    quiet: QuietOption = False,
    error: ErrorOption = False,
    regex: RegexOption = "",
    platform: PlatformOption = "",
    config_file: ConfigOption = Path(DEFAULT_CONFIG_FILE),
) -> None:
    """Pin GitHub Actions 'uses:' references to commit SHAs."""
    config = _load_config(config_file, platform)
    helper = CliHelper(dry_run=dry_run, quiet=quiet, error_on_modified=error)

    replacer = new_actions_replacer(config).with_github_client_from_token(
        os.environ.get("GITHUB_TOKEN"),
        base_url=os.environ.get("GITHUB_API_URL", DEFAULT_GITHUB_API_URL),
    )
    _run(_with_regex(replacer, regex), path_or_ref, helper)


@app.command()
def image(
    path_or_ref: Annotated[
        str,
        typer.Argument(help="Directory, file, or a single image reference"),
    ] = ".",
    dry_run: DryRunOption = False,
    quiet: QuietOption = False,
    error: ErrorOption = False,
    regex: RegexOption = "",
    platform: PlatformOption = "",
    config_file: ConfigOption = Path(DEFAULT_CONFIG_FILE),
) -> None:
    """Pin container image references to manifest digests."""
    config = _load_config(config_file, platform)
    helper = CliHelper(dry_run=dry_run, quiet=quiet, error_on_modified=error)

    replacer = _with_regex(new_container_images_replacer(config), regex)
    _run(replacer, path_or_ref, helper)


# =============================================================================
# List Commands
# =============================================================================


@list_app.command("actions")
def list_actions(
    path: Annotated[
        Path,
        typer.Argument(help="Workflow directory or file", exists=True),
    ] = Path(DEFAULT_WORKFLOWS_DIR),
    output: OutputOption = "table",
    regex: RegexOption = "",
) -> None:
    """List GitHub Actions references."""
    _list(_with_regex(new_actions_replacer(), regex), path, output)


@list_app.command("image")
def list_image(
    path: Annotated[
        Path,
        typer.Argument(help="Directory or file", exists=True),
    ] = Path("."),
    output: OutputOption = "table",
    regex: RegexOption = "",
) -> None:
    """List container image references."""
    _list(_with_regex(new_container_images_replacer(), regex), path, output)


# =============================================================================
# CLI Entry Point
# =============================================================================


def run() -> None:
    """Run the CLI application."""
    app()


if __name__ == "__main__":
    run()
