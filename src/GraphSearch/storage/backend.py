"""Graph backend collaborator interface."""

from __future__ import annotations

from typing import Protocol, Sequence

from GraphSearch.core.models import NodeKind, NodeRecord
from GraphSearch.query.compiler import NodePattern

# (uid, content, page_uid, page_title); for pages the content is the title.
Row = tuple[str, str, "str | None", "str | None"]


class GraphBackend(Protocol):
    """Protocol for a hierarchical document graph.

    Implementations must return rows and child lists in a stable order and may
    raise any exception on failure; callers decide whether a failure is fatal.
    """

    def query(self, pattern: NodePattern) -> Sequence[Row]:
        """Return rows for nodes matching a declarative pattern."""
        raise NotImplementedError

    def node(self, uid: str) -> NodeRecord | None:
        """Return the page or block with this identifier."""
        raise NotImplementedError

    def children(self, uid: str) -> Sequence[NodeRecord]:
        """Return ordered child blocks of a block, or top-level blocks of a page."""
        raise NotImplementedError

    def parent(self, uid: str) -> NodeRecord | None:
        """Return the parent block, or None for top-level blocks and pages."""
        raise NotImplementedError

    def referrers(self, uid: str) -> Sequence[NodeRecord]:
        """Return blocks referencing a block (by uid) or a page (by title)."""
        raise NotImplementedError

    def page_by_title(self, title: str) -> NodeRecord | None:
        raise NotImplementedError


def record_from_row(kind: NodeKind, row: Sequence[object]) -> NodeRecord:
    """Build a ``NodeRecord`` from a backend row."""
    uid, content, page_uid, page_title = row[0], row[1], row[2], row[3]
    return NodeRecord(
        uid=str(uid),
        kind=kind,
        content=str(content or ""),
        page_uid=None if page_uid is None else str(page_uid),
        page_title=None if page_title is None else str(page_title),
    )


def ancestors(backend: GraphBackend, uid: str, max_depth: int) -> list[NodeRecord]:
    """Walk parent links up to ``max_depth`` levels, nearest ancestor first."""
    chain: list[NodeRecord] = []
    current = uid
    seen = {uid}
    for _ in range(max_depth):
        parent = backend.parent(current)
        if parent is None or parent.uid in seen:
            break
        chain.append(parent)
        seen.add(parent.uid)
        current = parent.uid
    return chain
