"""Build bounded block trees from the graph backend.

Recursion stops at ``max_depth`` and yields a partial tree rather than an
error. Lookup failures for individual nodes or references are logged and
skipped so one bad node does not abort the extraction.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from GraphSearch.core.errors import ValidationError
from GraphSearch.core.events import CancellationSignal, check_cancelled
from GraphSearch.core.models import BlockNode, NodeKind, NodeRecord
from GraphSearch.hierarchy.render import truncate
from GraphSearch.query.matching import extract_references
from GraphSearch.storage.backend import GraphBackend, ancestors
from GraphSearch.utils.log import log

PARENT_MARKER = "[Parent] "
REFERENCE_SNIPPET_LENGTH = 100


@dataclass(frozen=True, slots=True)
class HierarchyOptions:
    """Options controlling tree extraction.

    Attributes:
        max_depth: Levels to build below (and including) the root.
        include_parents: Inject ancestors above the root as context nodes.
        include_children: Recurse into child blocks.
        parent_depth: Number of ancestors to inject.
        truncate_length: Length used to shorten injected parent text.
        max_blocks: Cap on real (non-context) nodes per tree.
    """

    max_depth: int = 3
    include_parents: bool = False
    include_children: bool = True
    parent_depth: int = 1
    truncate_length: int = 500
    max_blocks: int = 100

    def __post_init__(self) -> None:
        if self.max_depth < 0:
            raise ValidationError(f"max_depth must be >= 0: {self.max_depth}")
        if self.parent_depth < 0:
            raise ValidationError(f"parent_depth must be >= 0: {self.parent_depth}")
        if self.truncate_length <= 0:
            raise ValidationError(f"truncate_length must be positive: {self.truncate_length}")
        if self.max_blocks <= 0:
            raise ValidationError(f"max_blocks must be positive: {self.max_blocks}")


class HierarchyBuilder:
    """Assemble strict trees of ``BlockNode`` from a backend."""

    def __init__(self, backend: GraphBackend, *, cancel: CancellationSignal | None = None):
        self.backend = backend
        self.cancel = cancel

    def build(self, root_uid: str, options: HierarchyOptions) -> list[BlockNode]:
        """Build the tree rooted at ``root_uid``.

        Returns:
            Injected parent context nodes (farthest first) followed by the root,
            or an empty list when ``max_depth`` is 0 or the root is missing.

        Raises:
            SearchCancelled: If cancellation is requested during recursion.
        """
        budget = [options.max_blocks]
        return self._build(root_uid, options, level=0, budget=budget)

    def _build(self, uid: str, options: HierarchyOptions, *, level: int, budget: list[int]) -> list[BlockNode]:
        check_cancelled(self.cancel, f"hierarchy build at {uid}")
        if level >= options.max_depth or budget[0] <= 0:
            return []

        record = self._safe_lookup("node", uid)
        if record is None:
            log.warning("Hierarchy node skipped: uid=%s not found", uid)
            return []

        budget[0] -= 1
        root = _node_from_record(record, level)
        structure: list[BlockNode] = []
        if options.include_parents and level == 0 and options.parent_depth > 0:
            structure.extend(self._parent_nodes(record, options))
        structure.append(root)

        if options.include_children:
            children = self._safe_lookup("children", uid) or []
            for child in children:
                if budget[0] <= 0:
                    break
                root.children.extend(self._build(child.uid, options, level=level + 1, budget=budget))
        return structure

    def _parent_nodes(self, record: NodeRecord, options: HierarchyOptions) -> list[BlockNode]:
        try:
            chain = ancestors(self.backend, record.uid, options.parent_depth)
        except Exception as error:  # noqa: BLE001 - parent lookup failure must be isolated
            log.warning("Parent lookup failed: uid=%s error=%s", record.uid, error)
            return []
        nodes: list[BlockNode] = []
        for idx in range(len(chain) - 1, -1, -1):
            parent = chain[idx]
            nodes.append(
                BlockNode(
                    uid=parent.uid,
                    content=PARENT_MARKER + truncate(parent.content, options.truncate_length),
                    level=-(idx + 1),
                    page_title=parent.page_title,
                    page_uid=parent.page_uid,
                    references=extract_references(parent.content),
                    is_context=True,
                )
            )
        return nodes

    def resolve_references(self, structure: Sequence[BlockNode], max_reference_depth: int) -> None:
        """Append resolved reference snippets to node content in place.

        The tree shape never changes; ``max_reference_depth`` is decremented per
        tree level so reference cycles cannot cause unbounded work.
        """
        if max_reference_depth <= 0:
            return
        for node in structure:
            check_cancelled(self.cancel, f"reference resolution at {node.uid}")
            for ref in node.references:
                if ref.kind is NodeKind.BLOCK:
                    target = self._safe_lookup("node", ref.target)
                    if target is not None and target.kind is NodeKind.BLOCK:
                        node.content += f"\n  → Block: {truncate(target.content, REFERENCE_SNIPPET_LENGTH)}"
                else:
                    page = self._safe_lookup("page_by_title", ref.target)
                    if page is not None:
                        node.content += f"\n  → Page: [[{ref.target}]]"
            if node.children:
                self.resolve_references(node.children, max_reference_depth - 1)

    def _safe_lookup(self, method: str, arg: str):
        try:
            return getattr(self.backend, method)(arg)
        except Exception as error:  # noqa: BLE001 - per-node lookup failure must be isolated
            log.warning("Hierarchy lookup failed: %s(%s) error=%s", method, arg, error)
            return None


def _node_from_record(record: NodeRecord, level: int) -> BlockNode:
    if record.kind is NodeKind.PAGE:
        return BlockNode(
            uid=record.uid,
            content=record.content,
            level=level,
            page_title=record.content,
            page_uid=record.uid,
        )
    return BlockNode(
        uid=record.uid,
        content=record.content,
        level=level,
        page_title=record.page_title,
        page_uid=record.page_uid,
        references=extract_references(record.content),
    )
