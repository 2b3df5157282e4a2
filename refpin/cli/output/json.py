"""
JSON output adapter.

Renders listed references as JSON for machine processing.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any, TextIO

from refpin.cli.output.base import OutputAdapter, OutputFormat

if TYPE_CHECKING:
    from refpin.core.models import EntityRef, ListResult


class JsonOutput(OutputAdapter):
    """JSON output adapter."""

    format = OutputFormat.JSON

    def __init__(self, stream: TextIO | None = None, color: bool = False, indent: int = 2):
        super().__init__(stream=stream, color=False)  # Never colorize JSON
        self.indent = indent

    def render_list(self, result: ListResult) -> str:
        output: dict[str, Any] = {
            "processed": result.processed,
            "entities": [self._entity_to_dict(e) for e in result.entities],
        }
        return json.dumps(output, indent=self.indent)

    def _entity_to_dict(self, entity: EntityRef) -> dict[str, str]:
        return {
            "name": entity.name,
            "ref": entity.ref,
            "type": entity.type.value,
        }
