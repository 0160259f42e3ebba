"""Shared sample graph for tests that need a populated SQLite database.

Pre-order layout (block content in quotes)::

    Project Alpha (page-alpha)
      a1      "Goals for #Q3"
        a1-1    "Ship the [[Search]] redesign before the deadline"
          a1-1-1  "Deadline moved, TODO confirm"
        a1-2    "Status:: pending review"
      a2      "Meeting notes, see ((a1-1))"
    Search (page-search)
      s1      "Ranking ideas for [[Project Alpha]]"
        s1-1    "Regex support with case folding"
      s2      ""
    Daily Log (page-daily)
      d1      "TODO review [[Project Alpha]] deadline with #team"
      d2      "Nothing planned"
"""

from __future__ import annotations

import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT / "src"))

from GraphSearch.storage.db import DatabaseManager
from GraphSearch.storage.graph import SqliteGraphBackend
from GraphSearch.storage.loader import import_graph

SAMPLE_GRAPH = {
    "pages": [
        {
            "uid": "page-alpha",
            "title": "Project Alpha",
            "children": [
                {
                    "uid": "a1",
                    "string": "Goals for #Q3",
                    "children": [
                        {
                            "uid": "a1-1",
                            "string": "Ship the [[Search]] redesign before the deadline",
                            "children": [
                                {"uid": "a1-1-1", "string": "Deadline moved, TODO confirm"},
                            ],
                        },
                        {"uid": "a1-2", "string": "Status:: pending review"},
                    ],
                },
                {"uid": "a2", "string": "Meeting notes, see ((a1-1))"},
            ],
        },
        {
            "uid": "page-search",
            "title": "Search",
            "children": [
                {
                    "uid": "s1",
                    "string": "Ranking ideas for [[Project Alpha]]",
                    "children": [
                        {"uid": "s1-1", "string": "Regex support with case folding"},
                    ],
                },
                {"uid": "s2", "string": ""},
            ],
        },
        {
            "uid": "page-daily",
            "title": "Daily Log",
            "children": [
                {"uid": "d1", "string": "TODO review [[Project Alpha]] deadline with #team"},
                {"uid": "d2", "string": "Nothing planned"},
            ],
        },
    ]
}


def open_sample_graph() -> tuple[DatabaseManager, SqliteGraphBackend]:
    """Return an in-memory database loaded with ``SAMPLE_GRAPH`` and its backend.

    The caller owns the manager and must close it.
    """
    manager = DatabaseManager(Path(":memory:"))
    import_graph(manager, SAMPLE_GRAPH)
    return manager, SqliteGraphBackend(manager)


def uids(records) -> list[str]:
    return [record.uid for record in records]
