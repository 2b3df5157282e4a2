"""
Terminal output adapter.

Renders listed references as an aligned table, with a bold header when
writing to a TTY.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, TextIO

from refpin.cli.output.base import OutputAdapter, OutputFormat

if TYPE_CHECKING:
    from refpin.core.models import ListResult

TABLE_HEADERS = ("No", "Type", "Name", "Ref")

STYLE_CODES = {
    "bold": "\033[1m",
    "dim": "\033[2m",
}
RESET = "\033[0m"


class TerminalOutput(OutputAdapter):
    """Plain table output."""

    format = OutputFormat.TABLE

    def __init__(self, stream: TextIO | None = None, color: bool = True):
        super().__init__(stream=stream, color=color)
        self._use_color = color and self._is_tty()

    def _is_tty(self) -> bool:
        return hasattr(self.stream, "isatty") and self.stream.isatty()

    def render_list(self, result: ListResult) -> str:
        rows = [
            (str(i), entity.type.value, entity.name, entity.ref)
            for i, entity in enumerate(result.entities, start=1)
        ]
        if not rows:
            return self._style("No references found.", "dim")

        widths = [max(len(row[col]) for row in [TABLE_HEADERS, *rows]) for col in range(len(TABLE_HEADERS))]

        lines = [self._style(self._format_row(TABLE_HEADERS, widths), "bold")]
        lines.append("  ".join("-" * width for width in widths))
        lines.extend(self._format_row(row, widths) for row in rows)
        return "\n".join(lines)

    def _format_row(self, row: tuple[str, ...], widths: list[int]) -> str:
        return "  ".join(cell.ljust(width) for cell, width in zip(row, widths)).rstrip()

    def _style(self, text: str, style: str) -> str:
        """Apply style to text if colors are enabled."""
        if not self._use_color:
            return text
        code = STYLE_CODES.get(style, "")
        return f"{code}{text}{RESET}" if code else text
