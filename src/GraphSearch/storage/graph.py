"""SQLite implementation of the graph backend."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Sequence

from GraphSearch.core.conditions import Combinator
from GraphSearch.core.models import NodeKind, NodeRecord
from GraphSearch.query.compiler import ClauseOp, MatchClause, NodePattern
from GraphSearch.storage.backend import Row, record_from_row
from GraphSearch.utils.log import log

if TYPE_CHECKING:
    from GraphSearch.storage.db import DatabaseManager

_BLOCK_SELECT = """
    SELECT b.uid, b.string, b.page_uid, p.title
    FROM blocks b JOIN pages p ON p.uid = b.page_uid
"""
_PAGE_SELECT = "SELECT p.uid, p.title, p.uid, p.title FROM pages p"


class SqliteGraphBackend:
    """Read-only graph queries over the schema created by ``init_schema``."""

    def __init__(self, db_manager: DatabaseManager):
        """Initialize backend.

        Args:
            db_manager: Database manager owning the connection.
        """
        self.conn = db_manager.get_connection()

    def query(self, pattern: NodePattern) -> list[Row]:
        """Run a declarative pattern and return rows in load order."""
        if pattern.restrict_to is not None and not pattern.restrict_to:
            return []

        params: list[object] = []
        if pattern.kind is NodeKind.PAGE:
            select, uid_col, order = _PAGE_SELECT, "p.uid", "p.seq"
        else:
            select, uid_col, order = _BLOCK_SELECT, "b.uid", "b.seq"

        conditions: list[str] = []
        if pattern.clauses:
            joiner = " AND " if pattern.combinator is Combinator.AND else " OR "
            parts = [_clause_sql(clause, pattern.kind, params) for clause in pattern.clauses]
            conditions.append("(" + joiner.join(parts) + ")")
        if pattern.restrict_to is not None:
            conditions.append(f"{uid_col} IN (SELECT value FROM json_each(?))")
            params.append(json.dumps(sorted(pattern.restrict_to)))

        sql = select
        if conditions:
            sql += " WHERE " + " AND ".join(conditions)
        sql += f" ORDER BY {order}"
        rows = [tuple(row) for row in self.conn.execute(sql, params)]
        log.debug("Graph query: kind=%s clauses=%d rows=%d", pattern.kind.value, len(pattern.clauses), len(rows))
        return rows

    def node(self, uid: str) -> NodeRecord | None:
        row = self.conn.execute(_BLOCK_SELECT + " WHERE b.uid = ?", (uid,)).fetchone()
        if row is not None:
            return record_from_row(NodeKind.BLOCK, row)
        row = self.conn.execute(_PAGE_SELECT + " WHERE p.uid = ?", (uid,)).fetchone()
        if row is not None:
            return record_from_row(NodeKind.PAGE, row)
        return None

    def children(self, uid: str) -> list[NodeRecord]:
        cursor = self.conn.execute(
            _BLOCK_SELECT
            + """
            WHERE b.parent_uid = ?
               OR (b.parent_uid IS NULL AND b.page_uid = ?)
            ORDER BY b.sort_order, b.seq
            """,
            (uid, uid),
        )
        return [record_from_row(NodeKind.BLOCK, row) for row in cursor]

    def parent(self, uid: str) -> NodeRecord | None:
        row = self.conn.execute(
            _BLOCK_SELECT + " WHERE b.uid = (SELECT parent_uid FROM blocks WHERE uid = ?)",
            (uid,),
        ).fetchone()
        return None if row is None else record_from_row(NodeKind.BLOCK, row)

    def referrers(self, uid: str) -> list[NodeRecord]:
        target = self.node(uid)
        if target is None:
            return []
        if target.kind is NodeKind.PAGE:
            sql = (
                _BLOCK_SELECT
                + """
                WHERE EXISTS (
                  SELECT 1 FROM refs r
                  WHERE r.block_uid = b.uid AND r.kind = 'page' AND gs_fold(r.target) = gs_fold(?)
                )
                ORDER BY b.seq
                """
            )
            value = target.content
        else:
            sql = (
                _BLOCK_SELECT
                + """
                WHERE EXISTS (
                  SELECT 1 FROM refs r
                  WHERE r.block_uid = b.uid AND r.kind = 'block' AND r.target = ?
                )
                ORDER BY b.seq
                """
            )
            value = uid
        return [record_from_row(NodeKind.BLOCK, row) for row in self.conn.execute(sql, (value,))]

    def page_by_title(self, title: str) -> NodeRecord | None:
        row = self.conn.execute(_PAGE_SELECT + " WHERE p.title = ?", (title,)).fetchone()
        return None if row is None else record_from_row(NodeKind.PAGE, row)

    def page_titles(self) -> list[str]:
        return [row[0] for row in self.conn.execute("SELECT title FROM pages ORDER BY seq")]


def _clause_sql(clause: MatchClause, kind: NodeKind, params: list[object]) -> str:
    """Render one clause; every text comparison goes through the shared SQL functions."""
    column = "p.title" if kind is NodeKind.PAGE else "b.string"
    if clause.op is ClauseOp.CONTAINS:
        sql = f"gs_contains({column}, ?)"
        params.append(clause.value)
    elif clause.op is ClauseOp.EQUALS:
        sql = f"{column} = ?"
        params.append(clause.value)
    elif clause.op is ClauseOp.REGEX:
        sql = f"gs_regexp(?, ?, {column})"
        params.extend([clause.value, clause.flags])
    elif clause.op is ClauseOp.PAGE_REF:
        placeholders = _placeholders(clause.values)
        if kind is NodeKind.PAGE:
            sql = f"gs_fold(p.title) IN ({placeholders})"
        else:
            sql = (
                "EXISTS (SELECT 1 FROM refs r WHERE r.block_uid = b.uid AND r.kind = 'page'"
                f" AND gs_fold(r.target) IN ({placeholders}))"
            )
        params.extend(clause.values)
    elif clause.op is ClauseOp.BLOCK_REF:
        if kind is NodeKind.PAGE:
            sql = "0"
        else:
            sql = "EXISTS (SELECT 1 FROM refs r WHERE r.block_uid = b.uid AND r.kind = 'block' AND r.target = ?)"
            params.append(clause.value)
    else:
        raise ValueError(f"Unsupported clause op: {clause.op}")
    return f"NOT ({sql})" if clause.negate else f"({sql})"


def _placeholders(values: Sequence[str]) -> str:
    return ",".join("gs_fold(?)" for _ in values)
