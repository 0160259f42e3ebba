"""JSON rendering of tool results.

Provides JsonFileWriter, which accumulates results of one command and writes
them to a timestamped file.
"""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any

from GraphSearch.core.models import ToolResult
from GraphSearch.renderers.base import OutputWriter
from GraphSearch.utils.log import log


def render_json(result: ToolResult) -> dict[str, Any]:
    """Render a tool result into a JSON-serializable mapping."""
    return result.to_dict()


class JsonFileWriter(OutputWriter):
    """Accumulate results and write to a JSON file on finalize."""

    def __init__(self, base_dir: str) -> None:
        """Initialize JSON writer.

        Args:
            base_dir: Base output directory.
        """
        self.output_dir = Path(base_dir) / "json"
        self.all_results: list[dict[str, Any]] = []

    def write_result(self, result: ToolResult) -> None:
        self.all_results.append(render_json(result))

    def finalize(self, action: str) -> None:
        """Write accumulated results to ``<base_dir>/json/<action>_<timestamp>.json``."""
        if not self.all_results:
            return
        payload = json.dumps(self.all_results, ensure_ascii=False, indent=2)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        output_path = self.output_dir / f"{action}_{timestamp}.json"
        output_path.write_text(payload, encoding="utf-8")
        log.info("JSON saved to %s", output_path)
