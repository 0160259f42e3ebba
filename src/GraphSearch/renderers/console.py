"""Console text rendering of tool results.

Provides ConsoleOutputWriter, which prints through the package logger.
"""

from __future__ import annotations

from GraphSearch.core.expression import ParsedQuery, format_expression
from GraphSearch.core.models import CombinedResult, HierarchyResult, SearchResult, ToolResult
from GraphSearch.renderers.base import OutputWriter
from GraphSearch.storage.loader import ImportSummary
from GraphSearch.utils.log import log

_SNIPPET_LENGTH = 120


def render_text(result: ToolResult) -> str:
    """Render a tool result into a human-readable text block.

    Args:
        result: Outcome of a service entry point.

    Returns:
        A formatted string ready to be printed.
    """
    if not result.success:
        lines = [f"{result.tool_name} failed: {result.error}"]
        available = result.metadata.get("available")
        if available:
            lines.append(f"   Available: {', '.join(available)}")
        return "\n".join(lines) + "\n"

    data = result.data
    if isinstance(data, SearchResult):
        lines = _search_lines(data)
    elif isinstance(data, CombinedResult):
        lines = _combined_lines(data)
    elif isinstance(data, HierarchyResult):
        lines = _hierarchy_lines(data)
    elif isinstance(data, ParsedQuery):
        lines = _parsed_lines(data)
    elif isinstance(data, ImportSummary):
        lines = [f"Imported {data.pages} pages, {data.blocks} blocks, {data.references} references"]
    else:
        lines = [str(data)]
    lines.append(f"({result.tool_name} took {result.execution_time:.3f}s)")
    return "\n".join(lines).rstrip() + "\n"


def _search_lines(data: SearchResult) -> list[str]:
    lines = [f"Query: {data.query}", f"Found {data.total_count} {data.kind.value}s, showing {len(data.records)}"]
    if data.result_id:
        lines.append(f"Saved as: {data.result_id}")
    for idx, record in enumerate(data.records, start=1):
        content = record.content.replace("\n", " ")
        if len(content) > _SNIPPET_LENGTH:
            content = content[:_SNIPPET_LENGTH] + "..."
        lines.append(f"{idx}. [{record.uid}] {content}")
        if record.page_title and record.page_title != record.content:
            lines.append(f"   Page: {record.page_title}")
    return lines


def _combined_lines(data: CombinedResult) -> list[str]:
    stats = data.stats
    lines = [
        f"Operation: {data.operation} ({data.kind.value}s)",
        f"Input: {stats.total_input_count} total, {stats.unique_input_count} unique, "
        f"{stats.duplicates_removed} duplicates",
        f"Result: {stats.final_count} identifiers, showing {len(data.identifiers)}",
    ]
    for idx, uid in enumerate(data.identifiers, start=1):
        line = f"{idx}. {uid}"
        if data.source_info is not None:
            line += f"   <- {', '.join(data.source_info.get(uid, ()))}"
        lines.append(line)
    return lines


def _hierarchy_lines(data: HierarchyResult) -> list[str]:
    lines: list[str] = []
    for content in data.contents:
        stats = content.stats
        lines.append(
            f"=== {content.root_uid} ({stats.total_blocks} blocks, depth {stats.max_depth}, "
            f"{stats.total_characters} chars{', truncated' if stats.truncated else ''}) ==="
        )
        lines.extend(content.text.rstrip("\n").splitlines())
        if content.references:
            refs = ", ".join(f"{ref.kind.value}:{ref.target}" for ref in content.references)
            lines.append(f"References: {refs}")
        lines.append("")
    if data.skipped:
        lines.append(f"Skipped: {', '.join(data.skipped)}")
    return lines


def _parsed_lines(data: ParsedQuery) -> list[str]:
    lines = [f"Input: {data.source}", f"Parsed: {type(data.expression).__name__} {format_expression(data.expression)}"]
    if data.degraded:
        lines.append("Note: input was not recognized and is searched as literal text")
    if data.simple is not None:
        terms = [("-" if cond.negate else "") + cond.text for cond in data.simple.conditions]
        lines.append(f"Simple compound: {data.simple.combinator.value} {terms}")
    return lines


class ConsoleOutputWriter(OutputWriter):
    """Write results to console via logging."""

    def write_result(self, result: ToolResult) -> None:
        for line in render_text(result).splitlines():
            log.info(line)

    def finalize(self, action: str) -> None:
        """No-op for console output."""
