"""Text rendering, reference listing and statistics for block trees."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Sequence

from GraphSearch.core.errors import ValidationError
from GraphSearch.core.models import BlockNode, HierarchyStats, ReferenceInfo

_PAGE_LINK_RE = re.compile(r"\[\[([^\]]+)\]\]")
_BLOCK_REF_RE = re.compile(r"\(\(([^)]+)\)\)")


class BulletStyle(str, Enum):
    DASH = "dash"
    BULLET = "bullet"
    NUMBER = "number"
    NONE = "none"


class LinkFormat(str, Enum):
    MARKDOWN = "markdown"
    PLAIN = "plain"
    SOURCE = "source"


@dataclass(frozen=True, slots=True)
class RenderOptions:
    indent_size: int = 2
    bullet_style: BulletStyle = BulletStyle.DASH
    link_format: LinkFormat = LinkFormat.MARKDOWN
    truncate_length: int = 500
    include_block_ids: bool = False
    include_page_context: bool = False

    def __post_init__(self) -> None:
        if not 1 <= self.indent_size <= 8:
            raise ValidationError(f"indent_size must be between 1 and 8: {self.indent_size}")
        if self.truncate_length <= 0:
            raise ValidationError(f"truncate_length must be positive: {self.truncate_length}")


def truncate(content: str, max_length: int) -> str:
    if len(content) <= max_length:
        return content
    return content[:max_length] + "..."


def format_links(content: str, link_format: LinkFormat) -> str:
    """Rewrite ``[[Page]]`` and ``((uid))`` references for the output format."""
    if link_format is LinkFormat.MARKDOWN:
        content = _PAGE_LINK_RE.sub(r"[\1](\1)", content)
        return _BLOCK_REF_RE.sub(r"[Block \1](\1)", content)
    if link_format is LinkFormat.PLAIN:
        content = _PAGE_LINK_RE.sub(r"\1", content)
        return _BLOCK_REF_RE.sub(r"Block \1", content)
    return content


def render_hierarchy(structure: Sequence[BlockNode], options: RenderOptions) -> str:
    """Serialize a tree into indented text, one line per node."""
    lines: list[str] = []
    if options.include_page_context and structure and structure[0].page_title:
        lines.append(f"## Page: {structure[0].page_title}\n\n")
    for index, node in enumerate(structure):
        _render_node(node, index, options, lines)
    return "".join(lines)


def _render_node(node: BlockNode, position: int, options: RenderOptions, lines: list[str]) -> None:
    indent = " " * (max(node.level, 0) * options.indent_size)
    content = format_links(truncate(node.content, options.truncate_length), options.link_format)
    line = indent + _bullet(node, position, options.bullet_style) + content
    if options.include_block_ids:
        line += f" `{node.uid}`"
    lines.append(line + "\n")
    for index, child in enumerate(node.children):
        _render_node(child, index, options, lines)


def _bullet(node: BlockNode, position: int, style: BulletStyle) -> str:
    if style is BulletStyle.DASH:
        return "# " if node.level == 0 else "- "
    if style is BulletStyle.BULLET:
        return "• "
    if style is BulletStyle.NUMBER:
        return f"{position + 1}. "
    return ""


def iter_nodes(structure: Sequence[BlockNode]) -> Iterator[BlockNode]:
    """Depth-first pre-order walk."""
    for node in structure:
        yield node
        yield from iter_nodes(node.children)


def collect_references(structure: Sequence[BlockNode]) -> list[ReferenceInfo]:
    """All references in the tree, deduplicated by kind and target."""
    seen: set[ReferenceInfo] = set()
    out: list[ReferenceInfo] = []
    for node in iter_nodes(structure):
        for ref in node.references:
            if ref not in seen:
                seen.add(ref)
                out.append(ref)
    return out


def hierarchy_stats(
    structure: Sequence[BlockNode],
    truncate_length: int,
    *,
    exclude_context: bool = False,
) -> HierarchyStats:
    """Compute statistics by walking the whole tree.

    Args:
        structure: Top-level nodes.
        truncate_length: Content longer than this counts as truncated.
        exclude_context: Skip injected parent nodes.
    """
    total_blocks = 0
    max_depth = 0
    total_characters = 0
    truncated = False
    for node in iter_nodes(structure):
        if exclude_context and node.is_context:
            continue
        total_blocks += 1
        max_depth = max(max_depth, node.level)
        total_characters += len(node.content)
        if len(node.content) > truncate_length:
            truncated = True
    return HierarchyStats(
        total_blocks=total_blocks,
        max_depth=max_depth,
        total_characters=total_characters,
        truncated=truncated,
    )
