"""
Output adapters for CLI.

Provides the list output formats: table and JSON.
"""

from refpin.cli.output.base import OutputAdapter, OutputFormat, get_output_adapter
from refpin.cli.output.json import JsonOutput
from refpin.cli.output.terminal import TerminalOutput

__all__ = [
    "JsonOutput",
    "OutputAdapter",
    "OutputFormat",
    "TerminalOutput",
    "get_output_adapter",
]
