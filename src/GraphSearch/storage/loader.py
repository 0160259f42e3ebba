"""Import graph export files into the SQLite graph database.

Expected shape (YAML or JSON)::

    pages:
      - uid: page-1
        title: Machine Learning
        children:
          - uid: blk-1
            string: "Notes on [[AI]]"
            children: [...]
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Mapping

import yaml

from GraphSearch.core.errors import ValidationError
from GraphSearch.query.matching import extract_references
from GraphSearch.utils.log import log

if TYPE_CHECKING:
    from GraphSearch.storage.db import DatabaseManager


@dataclass(frozen=True, slots=True)
class ImportSummary:
    pages: int
    blocks: int
    references: int

    def to_dict(self) -> dict[str, int]:
        return {"pages": self.pages, "blocks": self.blocks, "references": self.references}


def read_graph_file(path: Path) -> dict[str, Any]:
    """Read a graph export file (``.json`` or YAML).

    Raises:
        ValidationError: If the file root is not a mapping.
    """
    text = path.read_text(encoding="utf-8")
    data = json.loads(text) if path.suffix.lower() == ".json" else yaml.safe_load(text)
    if not isinstance(data, Mapping):
        raise ValidationError(f"Graph file root must be a mapping: {path}")
    return dict(data)


def import_graph(db_manager: DatabaseManager, data: Mapping[str, Any], *, replace: bool = True) -> ImportSummary:
    """Load pages and nested blocks into the database.

    Runs in one transaction; malformed input leaves the database unchanged.

    Args:
        db_manager: Target database.
        data: Parsed export mapping with a ``pages`` list.
        replace: Clear existing graph content first.

    Returns:
        Counts of imported pages, blocks and references.

    Raises:
        ValidationError: If the export structure is invalid.
    """
    pages = data.get("pages")
    if not isinstance(pages, list):
        raise ValidationError("Graph export must contain a 'pages' list")

    conn = db_manager.get_connection()
    counter = _Counter()
    with conn:
        if replace:
            conn.execute("DELETE FROM refs")
            conn.execute("DELETE FROM blocks")
            conn.execute("DELETE FROM pages")
        else:
            counter.seq = conn.execute(
                "SELECT COALESCE(MAX(seq), 0) FROM (SELECT seq FROM pages UNION ALL SELECT seq FROM blocks)"
            ).fetchone()[0]

        for idx, page in enumerate(pages):
            key = f"pages[{idx}]"
            if not isinstance(page, Mapping):
                raise ValidationError(f"{key} must be an object")
            uid = _require_str(page, "uid", key)
            title = _require_str(page, "title", key)
            conn.execute(
                "INSERT OR REPLACE INTO pages (uid, title, seq) VALUES (?, ?, ?)",
                (uid, title, counter.next()),
            )
            counter.pages += 1
            _import_children(conn, page.get("children"), page_uid=uid, parent_uid=None, key=key, counter=counter)

    summary = ImportSummary(pages=counter.pages, blocks=counter.blocks, references=counter.references)
    log.info(
        "Graph imported: pages=%d blocks=%d references=%d",
        summary.pages,
        summary.blocks,
        summary.references,
    )
    return summary


class _Counter:
    def __init__(self) -> None:
        self.seq = 0
        self.pages = 0
        self.blocks = 0
        self.references = 0

    def next(self) -> int:
        self.seq += 1
        return self.seq


def _import_children(conn, children: Any, *, page_uid: str, parent_uid: str | None, key: str, counter: _Counter) -> None:
    if children is None:
        return
    if not isinstance(children, list):
        raise ValidationError(f"{key}.children must be a list")
    for order, block in enumerate(children):
        block_key = f"{key}.children[{order}]"
        if not isinstance(block, Mapping):
            raise ValidationError(f"{block_key} must be an object")
        uid = _require_str(block, "uid", block_key)
        text = block.get("string", block.get("text", ""))
        if not isinstance(text, str):
            raise ValidationError(f"{block_key}.string must be a string")
        conn.execute(
            """
            INSERT OR REPLACE INTO blocks (uid, string, page_uid, parent_uid, sort_order, seq)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (uid, text, page_uid, parent_uid, order, counter.next()),
        )
        conn.execute("DELETE FROM refs WHERE block_uid = ?", (uid,))
        for position, ref in enumerate(extract_references(text)):
            conn.execute(
                "INSERT INTO refs (block_uid, kind, target, position) VALUES (?, ?, ?, ?)",
                (uid, ref.kind.value, ref.target, position),
            )
            counter.references += 1
        counter.blocks += 1
        _import_children(conn, block.get("children"), page_uid=page_uid, parent_uid=uid, key=block_key, counter=counter)


def _require_str(value: Mapping[str, Any], field: str, key: str) -> str:
    item = value.get(field)
    if not isinstance(item, str) or not item.strip():
        raise ValidationError(f"{key}.{field} must be a non-empty string")
    return item
