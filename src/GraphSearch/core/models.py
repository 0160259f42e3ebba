from __future__ import annotations

from dataclasses import dataclass
from dataclasses import field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional, Sequence


class NodeKind(str, Enum):
    PAGE = "page"
    BLOCK = "block"


@dataclass(frozen=True, slots=True)
class NodeRecord:
    """A page or block returned by a search.

    The ``kind`` discriminant is set when the record is built and is never
    inferred from which optional fields happen to be present.

    Attributes:
        uid: Node identifier.
        kind: Whether the record is a page or a block.
        content: Block text, or the page title for page records.
        page_uid: Identifier of the containing page (the page itself for pages).
        page_title: Title of the containing page.
    """

    uid: str
    kind: NodeKind
    content: str = ""
    page_uid: Optional[str] = None
    page_title: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "uid": self.uid,
            "kind": self.kind.value,
            "content": self.content,
            "page_uid": self.page_uid,
            "page_title": self.page_title,
        }


@dataclass(frozen=True, slots=True)
class ResultSet:
    """Named ordered identifier set, the unit operated on by the combiner."""

    name: str
    identifiers: Sequence[str]
    kind: NodeKind
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "identifiers", tuple(self.identifiers))
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))


@dataclass(frozen=True, slots=True)
class CombinationStats:
    """Counts describing one combination call.

    ``final_count`` is measured before the result limit is applied.
    """

    total_input_count: int
    unique_input_count: int
    final_count: int
    duplicates_removed: int
    per_set_counts: Mapping[str, int]

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_input_count": self.total_input_count,
            "unique_input_count": self.unique_input_count,
            "final_count": self.final_count,
            "duplicates_removed": self.duplicates_removed,
            "per_set_counts": dict(self.per_set_counts),
        }


@dataclass(frozen=True, slots=True)
class CombinedResult:
    identifiers: tuple[str, ...]
    kind: NodeKind
    operation: str
    stats: CombinationStats
    source_info: Optional[Mapping[str, tuple[str, ...]]] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "identifiers": list(self.identifiers),
            "kind": self.kind.value,
            "operation": self.operation,
            "stats": self.stats.to_dict(),
        }
        if self.source_info is not None:
            data["source_info"] = {uid: list(names) for uid, names in self.source_info.items()}
        return data


@dataclass(frozen=True, slots=True)
class ReferenceInfo:
    """A reference found in block content (``kind`` is page or block)."""

    kind: NodeKind
    target: str


@dataclass(slots=True)
class BlockNode:
    """Element of an extracted hierarchy tree.

    Nodes are mutable while the builder resolves references into ``content``;
    children are owned by their parent, so the tree never has back-edges.

    Attributes:
        uid: Block identifier.
        content: Block text, with resolved reference snippets appended.
        level: Depth relative to the root (negative for injected parents).
        children: Ordered child nodes.
        page_title: Title of the containing page.
        page_uid: Identifier of the containing page.
        references: References found in the block, recorded as opaque targets.
        is_context: True for parent nodes injected above the root.
    """

    uid: str
    content: str
    level: int
    children: list[BlockNode] = field(default_factory=list)
    page_title: Optional[str] = None
    page_uid: Optional[str] = None
    references: list[ReferenceInfo] = field(default_factory=list)
    is_context: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "uid": self.uid,
            "content": self.content,
            "level": self.level,
            "page_title": self.page_title,
            "page_uid": self.page_uid,
            "references": [{"type": ref.kind.value, "target": ref.target} for ref in self.references],
            "is_context": self.is_context,
            "children": [child.to_dict() for child in self.children],
        }


@dataclass(frozen=True, slots=True)
class HierarchyStats:
    total_blocks: int
    max_depth: int
    total_characters: int
    truncated: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_blocks": self.total_blocks,
            "max_depth": self.max_depth,
            "total_characters": self.total_characters,
            "truncated": self.truncated,
        }


@dataclass(frozen=True, slots=True)
class HierarchyContent:
    """Rendered hierarchy for one root block."""

    root_uid: str
    page_title: Optional[str]
    nodes: tuple[BlockNode, ...]
    text: str
    references: tuple[ReferenceInfo, ...]
    stats: HierarchyStats

    def to_dict(self) -> dict[str, Any]:
        return {
            "root_uid": self.root_uid,
            "page_title": self.page_title,
            "text": self.text,
            "references": [{"type": ref.kind.value, "target": ref.target} for ref in self.references],
            "stats": self.stats.to_dict(),
            "nodes": [node.to_dict() for node in self.nodes],
        }


@dataclass(frozen=True, slots=True)
class ToolResult:
    """Tagged success/failure outcome of a public service operation.

    Attributes:
        success: Whether the operation completed.
        tool_name: Name of the operation that produced the result.
        data: Operation payload when ``success`` is true.
        error: Human-readable failure message when ``success`` is false.
        execution_time: Wall time in seconds.
        metadata: Extra details (e.g. available result ids after a lookup miss).
    """

    success: bool
    tool_name: str
    data: Any = None
    error: Optional[str] = None
    execution_time: float = 0.0
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data = self.data.to_dict() if hasattr(self.data, "to_dict") else self.data
        return {
            "success": self.success,
            "tool_name": self.tool_name,
            "data": data,
            "error": self.error,
            "execution_time": round(self.execution_time, 4),
            "metadata": dict(self.metadata),
        }


@dataclass(frozen=True, slots=True)
class SearchResult:
    """Ranked records returned by a block, page or expression search.

    Attributes:
        kind: Kind shared by every record.
        records: Matching records after ranking and limiting.
        total_count: Number of matches before the limit was applied.
        query: Human-readable description of what was searched.
        result_id: Result-store identifier when the result was saved.
    """

    kind: NodeKind
    records: tuple[NodeRecord, ...]
    total_count: int
    query: str
    result_id: Optional[str] = None

    @property
    def identifiers(self) -> tuple[str, ...]:
        return tuple(record.uid for record in self.records)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "query": self.query,
            "total_count": self.total_count,
            "returned_count": len(self.records),
            "result_id": self.result_id,
            "records": [record.to_dict() for record in self.records],
        }


@dataclass(frozen=True, slots=True)
class HierarchyResult:
    """Hierarchies extracted for a batch of roots; ``skipped`` lists roots left out."""

    contents: tuple[HierarchyContent, ...]
    skipped: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "contents": [content.to_dict() for content in self.contents],
            "skipped": list(self.skipped),
        }
