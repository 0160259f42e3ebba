"""Tests for graph import, the SQLite backend and result stores."""

from __future__ import annotations

import json
import sys
import tempfile
import unittest
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT / "src"))

from graph_fixtures import SAMPLE_GRAPH, open_sample_graph, uids

from GraphSearch.core.errors import LookupMiss, ValidationError
from GraphSearch.core.models import NodeKind, NodeRecord
from GraphSearch.query.compiler import NodePattern
from GraphSearch.storage.backend import ancestors
from GraphSearch.storage.db import DatabaseManager
from GraphSearch.storage.loader import import_graph, read_graph_file
from GraphSearch.storage.results import (
    JsonResultStore,
    MemoryResultStore,
    load_stored_result,
    resolve_result_sets,
)


class TestGraphImport(unittest.TestCase):
    def test_import_counts(self) -> None:
        manager = DatabaseManager(Path(":memory:"))
        try:
            summary = import_graph(manager, SAMPLE_GRAPH)
            self.assertEqual(summary.to_dict(), {"pages": 3, "blocks": 10, "references": 7})
        finally:
            manager.close()

    def test_append_keeps_existing_pages_and_order(self) -> None:
        manager, backend = open_sample_graph()
        try:
            extra = {"pages": [{"uid": "page-new", "title": "New", "children": [{"uid": "n1", "string": "deadline"}]}]}
            import_graph(manager, extra, replace=False)
            records = backend.query(NodePattern(kind=NodeKind.PAGE))
            self.assertEqual([row[0] for row in records], ["page-alpha", "page-search", "page-daily", "page-new"])
        finally:
            manager.close()

    def test_invalid_export_leaves_database_unchanged(self) -> None:
        manager, backend = open_sample_graph()
        try:
            broken = {"pages": [{"uid": "p", "title": "P", "children": [{"string": "no uid"}]}]}
            with self.assertRaisesRegex(ValidationError, r"pages\[0\]\.children\[0\]\.uid"):
                import_graph(manager, broken)
            self.assertEqual(backend.page_titles(), ["Project Alpha", "Search", "Daily Log"])
        finally:
            manager.close()

    def test_missing_pages_list(self) -> None:
        manager = DatabaseManager(Path(":memory:"))
        try:
            with self.assertRaisesRegex(ValidationError, "pages"):
                import_graph(manager, {"blocks": []})
        finally:
            manager.close()

    def test_read_graph_file_yaml_and_json(self) -> None:
        tmp_dir = Path(tempfile.mkdtemp())
        json_path = tmp_dir / "graph.json"
        json_path.write_text(json.dumps(SAMPLE_GRAPH), encoding="utf-8")
        yaml_path = tmp_dir / "graph.yml"
        yaml_path.write_text("pages:\n  - uid: p1\n    title: One\n", encoding="utf-8")
        self.assertEqual(read_graph_file(json_path), SAMPLE_GRAPH)
        self.assertEqual(read_graph_file(yaml_path), {"pages": [{"uid": "p1", "title": "One"}]})

        list_path = tmp_dir / "list.yml"
        list_path.write_text("- a\n- b\n", encoding="utf-8")
        with self.assertRaises(ValidationError):
            read_graph_file(list_path)


class TestSqliteGraphBackend(unittest.TestCase):
    def setUp(self) -> None:
        self.manager, self.backend = open_sample_graph()

    def tearDown(self) -> None:
        self.manager.close()

    def test_node_lookup(self) -> None:
        block = self.backend.node("a1-1")
        self.assertEqual(block.kind, NodeKind.BLOCK)
        self.assertEqual(block.page_title, "Project Alpha")
        page = self.backend.node("page-search")
        self.assertEqual(page.kind, NodeKind.PAGE)
        self.assertEqual(page.content, "Search")
        self.assertIsNone(self.backend.node("missing"))

    def test_children_and_parent(self) -> None:
        self.assertEqual(uids(self.backend.children("page-alpha")), ["a1", "a2"])
        self.assertEqual(uids(self.backend.children("a1")), ["a1-1", "a1-2"])
        self.assertEqual(self.backend.children("d2"), [])
        self.assertEqual(self.backend.parent("a1-1-1").uid, "a1-1")
        self.assertIsNone(self.backend.parent("a1"))

    def test_ancestors_nearest_first(self) -> None:
        self.assertEqual(uids(ancestors(self.backend, "a1-1-1", 5)), ["a1-1", "a1"])
        self.assertEqual(uids(ancestors(self.backend, "a1-1-1", 1)), ["a1-1"])

    def test_referrers(self) -> None:
        self.assertEqual(uids(self.backend.referrers("page-alpha")), ["s1", "d1"])
        self.assertEqual(uids(self.backend.referrers("a1-1")), ["a2"])
        self.assertEqual(self.backend.referrers("missing"), [])

    def test_page_by_title(self) -> None:
        self.assertEqual(self.backend.page_by_title("Daily Log").uid, "page-daily")
        self.assertIsNone(self.backend.page_by_title("Q3"))

    def test_query_without_clauses_returns_all_in_load_order(self) -> None:
        rows = self.backend.query(NodePattern(kind=NodeKind.BLOCK))
        self.assertEqual(
            [row[0] for row in rows],
            ["a1", "a1-1", "a1-1-1", "a1-2", "a2", "s1", "s1-1", "s2", "d1", "d2"],
        )
        self.assertEqual(self.backend.query(NodePattern(kind=NodeKind.BLOCK, restrict_to=frozenset())), [])


def _record(uid: str, kind: NodeKind = NodeKind.BLOCK) -> NodeRecord:
    return NodeRecord(uid=uid, kind=kind, content=f"content {uid}", page_uid="p1", page_title="Page")


class TestResultStores(unittest.TestCase):
    def test_memory_store_miss_lists_available(self) -> None:
        store = MemoryResultStore()
        store.put("first", NodeKind.BLOCK, [_record("b1")])
        with self.assertRaises(LookupMiss) as ctx:
            store.get("second")
        self.assertEqual(ctx.exception.identifier, "second")
        self.assertEqual(ctx.exception.available, ("first",))
        self.assertIn("Available results: first", str(ctx.exception))

    def test_json_store_round_trip_keeps_kind(self) -> None:
        store = JsonResultStore(Path(tempfile.mkdtemp()) / "results")
        self.assertEqual(store.ids(), [])
        store.put("pages-1", NodeKind.PAGE, [_record("p1", NodeKind.PAGE)])
        store.put("blocks-1", NodeKind.BLOCK, [_record("b1"), _record("b2")])

        loaded = store.get("blocks-1")
        self.assertIs(loaded.kind, NodeKind.BLOCK)
        self.assertEqual(loaded.records, (_record("b1"), _record("b2")))
        self.assertEqual(store.ids(), ["blocks-1", "pages-1"])

        with self.assertRaises(LookupMiss) as ctx:
            store.get("nope")
        self.assertEqual(ctx.exception.available, ("blocks-1", "pages-1"))

    def test_put_rejects_mixed_kinds_and_bad_ids(self) -> None:
        store = MemoryResultStore()
        with self.assertRaisesRegex(ValidationError, "must all be blocks"):
            store.put("mixed", NodeKind.BLOCK, [_record("b1"), _record("p1", NodeKind.PAGE)])
        with self.assertRaisesRegex(ValidationError, "Invalid result id"):
            store.put("../escape", NodeKind.BLOCK, [])

    def test_load_stored_result_validates_kind(self) -> None:
        with self.assertRaisesRegex(ValidationError, "kind"):
            load_stored_result({"kind": "tag", "records": []}, source="x.json")
        with self.assertRaisesRegex(ValidationError, "uid"):
            load_stored_result({"kind": "block", "records": [{"content": "no uid"}]}, source="x.json")

    def test_resolve_result_sets(self) -> None:
        store = MemoryResultStore()
        store.put("a", NodeKind.BLOCK, [_record("b1"), _record("b2")])
        store.put("b", NodeKind.BLOCK, [_record("b2")])
        sets = resolve_result_sets(store, ["a", "b"])
        self.assertEqual([s.name for s in sets], ["a", "b"])
        self.assertEqual(sets[0].identifiers, ("b1", "b2"))
        self.assertEqual(sets[0].metadata["record_count"], 2)
        with self.assertRaises(LookupMiss):
            resolve_result_sets(store, ["a", "c"])


if __name__ == "__main__":
    unittest.main()
