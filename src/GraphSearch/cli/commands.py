"""Command implementations for the GraphSearch CLI.

Each command turns its CLI arguments into one service call and returns the
resulting ``ToolResult``; displaying it is left to the output writer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from GraphSearch.core.errors import ValidationError
from GraphSearch.core.models import ToolResult
from GraphSearch.services import CombineOptions, GraphSearchService, run_tool
from GraphSearch.storage import DatabaseManager, import_graph, read_graph_file
from GraphSearch.utils.log import log, log_progress


@dataclass(slots=True)
class LoadCommand:
    """Import a graph export file into the configured database."""

    db_manager: DatabaseManager
    graph_path: Path
    replace: bool = True

    def execute(self) -> ToolResult:
        def run():
            log.info("Loading graph from %s (replace=%s)", self.graph_path, self.replace)
            return import_graph(self.db_manager, read_graph_file(self.graph_path), replace=self.replace)

        return run_tool("load_graph", run)


@dataclass(slots=True)
class SearchCommand:
    """Search blocks with a query string."""

    service: GraphSearchService
    expression: str
    max_depth: int | None = None
    limit: int | None = None
    order_by: str | None = None
    save_as: str | None = None

    def execute(self) -> ToolResult:
        log.info("Searching: %s", self.expression)
        return self.service.search_expression(
            self.expression,
            max_depth=self.max_depth,
            limit=self.limit,
            order_by=self.order_by,
            save_as=self.save_as,
            on_progress=log_progress,
        )


@dataclass(slots=True)
class FindCommand:
    """Run a structured condition request read from a YAML or JSON file."""

    service: GraphSearchService
    request_path: Path
    pages: bool = False
    limit: int | None = None
    order_by: str | None = None
    save_as: str | None = None

    def execute(self) -> ToolResult:
        request = load_request_file(self.request_path)
        find = self.service.find_pages if self.pages else self.service.find_blocks
        return find(
            request,
            limit=self.limit,
            order_by=self.order_by,
            save_as=self.save_as,
            on_progress=log_progress,
        )


@dataclass(slots=True)
class ParseCommand:
    service: GraphSearchService
    expression: str

    def execute(self) -> ToolResult:
        return self.service.parse_query(self.expression)


@dataclass(slots=True)
class CombineCommand:
    """Combine stored results by id."""

    service: GraphSearchService
    result_ids: tuple[str, ...]
    operation: str
    options: CombineOptions
    save_as: str | None = None

    def execute(self) -> ToolResult:
        log.info("Combining %s with %s", ", ".join(self.result_ids), self.operation)
        return self.service.combine_results(
            result_ids=self.result_ids,
            operation=self.operation,
            options=self.options,
            save_as=self.save_as,
        )


@dataclass(slots=True)
class ExtractCommand:
    """Extract block hierarchies for explicit roots or a stored result."""

    service: GraphSearchService
    root_uids: tuple[str, ...] = field(default_factory=tuple)
    result_id: str | None = None

    def execute(self) -> ToolResult:
        return self.service.extract_hierarchy(self.root_uids, result_id=self.result_id)


def load_request_file(path: Path) -> dict[str, Any]:
    """Read a condition request mapping from YAML (JSON is a YAML subset).

    Raises:
        ValidationError: If the file root is not a mapping.
    """
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValidationError(f"Request file root must be a mapping: {path}")
    return data
