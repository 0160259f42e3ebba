"""Tests for the public search service boundary."""

from __future__ import annotations

import sys
import threading
import unittest
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT / "src"))

from graph_fixtures import open_sample_graph

from GraphSearch.core.errors import LookupMiss
from GraphSearch.core.expression import Hierarchical
from GraphSearch.core.models import CombinedResult, HierarchyResult, NodeKind, SearchResult
from GraphSearch.hierarchy.builder import HierarchyOptions
from GraphSearch.llm.service import ExpansionService
from GraphSearch.query.evaluator import ConditionEvaluator
from GraphSearch.services.search import ExtractionSettings, GraphSearchService, SearchSettings, run_tool
from GraphSearch.storage.results import MemoryResultStore
from GraphSearch.utils.log import log_progress


class StubProvider:
    name = "stub"

    def __init__(self, variants: dict[str, list[str]]) -> None:
        self.variants = variants

    def expand_term(self, term, mode, *, kind=None, max_variants=5, exclude=()):
        return self.variants.get(term, [])


class ServiceTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.manager, self.backend = open_sample_graph()
        self.store = MemoryResultStore()
        self.service = GraphSearchService(
            backend=self.backend,
            evaluator=ConditionEvaluator(self.backend),
            result_store=self.store,
        )

    def tearDown(self) -> None:
        self.manager.close()


class TestFindBlocks(ServiceTestCase):
    def test_success_is_tagged(self) -> None:
        result = self.service.find_blocks({"conditions": [{"text": "deadline"}, {"text": "Project Alpha", "type": "page_ref"}]})
        self.assertTrue(result.success)
        self.assertEqual(result.tool_name, "find_blocks")
        self.assertIsInstance(result.data, SearchResult)
        self.assertEqual(result.data.identifiers, ("d1",))
        self.assertGreaterEqual(result.execution_time, 0.0)

    def test_validation_error_becomes_failed_result(self) -> None:
        result = self.service.find_blocks({"conditions": [{"text": "a"}], "groups": [{"conditions": [{"text": "b"}]}]})
        self.assertFalse(result.success)
        self.assertIn("not both", result.error)
        self.assertEqual(result.metadata["error_type"], "ValidationError")

    def test_invalid_regex_fails_before_search(self) -> None:
        result = self.service.find_blocks({"conditions": [{"text": "(", "type": "regex"}]})
        self.assertFalse(result.success)
        self.assertIn("Invalid regex", result.error)

    def test_limit_keeps_total_count(self) -> None:
        result = self.service.find_blocks({"conditions": [{"text": "e"}]}, limit=2)
        self.assertEqual(result.data.identifiers, ("a1-1", "a1-1-1"))
        self.assertEqual(result.data.total_count, 8)

    def test_order_by_validation(self) -> None:
        result = self.service.find_blocks({"conditions": [{"text": "e"}]}, order_by="newest")
        self.assertFalse(result.success)
        self.assertIn("order_by", result.error)

    def test_progress_events(self) -> None:
        events = []
        self.service.find_blocks({"conditions": [{"text": "todo"}]}, on_progress=events.append)
        self.assertEqual([e.kind for e in events], ["group_completed", "completed"])
        self.assertEqual(events[-1].data, {"total": 2, "returned": 2})

    def test_cancellation_is_reported(self) -> None:
        cancel = threading.Event()
        cancel.set()
        result = self.service.find_blocks({"conditions": [{"text": "todo"}]}, cancel=cancel)
        self.assertFalse(result.success)
        self.assertEqual(result.metadata["error_type"], "SearchCancelled")

    def test_backend_failure_is_reported(self) -> None:
        class BrokenBackend:
            def query(self, pattern):
                raise RuntimeError("disk I/O error")

        service = GraphSearchService(backend=BrokenBackend(), evaluator=ConditionEvaluator(BrokenBackend()))
        result = service.find_blocks({"conditions": [{"text": "x"}]})
        self.assertFalse(result.success)
        self.assertEqual(result.metadata["error_type"], "BackendFailure")

    def test_find_pages(self) -> None:
        result = self.service.find_pages({"conditions": [{"text": "search"}]})
        self.assertEqual(result.tool_name, "find_pages")
        self.assertIs(result.data.kind, NodeKind.PAGE)
        self.assertEqual(result.data.identifiers, ("page-search",))


class TestSearchExpression(ServiceTestCase):
    def _ids(self, expression: str, **kwargs) -> tuple[str, ...]:
        result = self.service.search_expression(expression, **kwargs)
        self.assertTrue(result.success, result.error)
        return result.data.identifiers

    def test_simple_compound_fast_path(self) -> None:
        self.assertEqual(self._ids("(deadline + -todo)"), ("a1-1",))
        self.assertEqual(self._ids("(todo | ref:Search)"), ("a1-1-1", "d1", "a1-1"))

    def test_mixed_compound_uses_full_parser(self) -> None:
        self.assertEqual(self._ids("(nothing|goals)+planned"), ("d2",))

    def test_hierarchical_operators(self) -> None:
        cases = {
            "Goals > deadline": ("a1",),
            "Goals > TODO": (),
            "Goals >> TODO": ("a1",),
            "TODO < deadline": ("a1-1-1",),
            "TODO << Goals": ("a1-1-1",),
            "deadline => TODO": ("a1-1-1", "d1", "a1-1"),
            "deadline <=> TODO": ("a1-1-1", "d1", "a1-1"),
            "ref:Search <= Goals": ("a1-1",),
        }
        for expression, expected in cases.items():
            with self.subTest(expression=expression):
                self.assertEqual(self._ids(expression), expected)

    def test_max_depth_override(self) -> None:
        self.assertEqual(self._ids("Goals >> TODO", max_depth=1), ())
        self.assertEqual(self._ids("Goals >> TODO", max_depth=2), ("a1",))
        result = self.service.search_expression("Goals >> TODO", max_depth=0)
        self.assertFalse(result.success)

    def test_invalid_regex_fails_before_any_backend_query(self) -> None:
        class CountingBackend:
            def __init__(self, inner) -> None:
                self.inner = inner
                self.queries = 0

            def query(self, pattern):
                self.queries += 1
                return self.inner.query(pattern)

            def __getattr__(self, name):
                return getattr(self.inner, name)

        backend = CountingBackend(self.backend)
        service = GraphSearchService(backend=backend, evaluator=ConditionEvaluator(backend))
        events = []
        result = service.search_expression("deadline > regex:/*a/", on_progress=events.append)
        self.assertFalse(result.success)
        self.assertIn("Invalid regex", result.error)
        self.assertEqual(backend.queries, 0)
        self.assertNotIn("group_completed", [e.kind for e in events])

    def test_joined_regex_literals_are_searched_together(self) -> None:
        self.assertEqual(self._ids("regex:/^goals/i + regex:/#q3$/i"), ("a1",))

    def test_degraded_query_searches_literal_text(self) -> None:
        events = []
        result = self.service.search_expression("(TODO", on_progress=events.append)
        self.assertTrue(result.success)
        self.assertEqual(result.data.identifiers, ())
        self.assertIn("degraded", [e.kind for e in events])

    def test_degraded_query_is_logged_by_progress_logger(self) -> None:
        with self.assertLogs("GraphSearch", level="WARNING") as logs:
            self.service.search_expression("(TODO", on_progress=log_progress)
        self.assertTrue(any("[parse/degraded]" in line for line in logs.output))

    def test_save_as_stores_full_ranked_result(self) -> None:
        result = self.service.search_expression("deadline", limit=1, save_as="deadlines")
        self.assertEqual(result.data.result_id, "deadlines")
        self.assertEqual(len(result.data.records), 1)
        stored = self.store.get("deadlines")
        self.assertEqual([r.uid for r in stored.records], ["a1-1", "a1-1-1", "d1"])

    def test_parse_query(self) -> None:
        result = self.service.parse_query("A => B")
        self.assertTrue(result.success)
        self.assertIsInstance(result.data.expression, Hierarchical)
        self.assertFalse(result.data.degraded)
        self.assertIsNone(result.data.simple)
        data = result.data.to_dict()
        self.assertEqual(data["formatted"], "A => B")
        self.assertEqual(data["expression"]["operator"], "=>")

        degraded = self.service.parse_query("a +")
        self.assertTrue(degraded.data.degraded)
        simple = self.service.parse_query("(a | b)")
        self.assertEqual(len(simple.data.simple.conditions), 2)

    def test_expansion_is_applied(self) -> None:
        service = GraphSearchService(
            backend=self.backend,
            evaluator=ConditionEvaluator(self.backend),
            expansion=ExpansionService(provider=StubProvider({"postponed": ["moved"]})),
        )
        result = service.search_expression("postponed*")
        self.assertEqual(result.data.identifiers, ("a1-1-1",))
        plain = service.search_expression("postponed")
        self.assertEqual(plain.data.identifiers, ())

    def test_expand_all_setting(self) -> None:
        service = GraphSearchService(
            backend=self.backend,
            evaluator=ConditionEvaluator(self.backend),
            expansion=ExpansionService(provider=StubProvider({"postponed": ["moved"]})),
            settings=SearchSettings(expand_all=True),
        )
        result = service.find_blocks({"conditions": [{"text": "postponed"}]})
        self.assertEqual(result.data.identifiers, ("a1-1-1",))


class TestCombineResults(ServiceTestCase):
    def test_explicit_sets(self) -> None:
        result = self.service.combine_results(
            [
                {"name": "s1", "identifiers": ["a", "b", "c"], "kind": "block"},
                {"name": "s2", "identifiers": ["b", "c", "d"], "kind": "block"},
            ],
            operation="symmetric_difference",
        )
        self.assertTrue(result.success)
        self.assertIsInstance(result.data, CombinedResult)
        self.assertEqual(result.data.identifiers, ("a", "d"))

    def test_kind_mismatch_reported(self) -> None:
        result = self.service.combine_results(
            [
                {"name": "s1", "identifiers": ["p"], "kind": "page"},
                {"name": "s2", "identifiers": ["b"], "kind": "block"},
            ]
        )
        self.assertFalse(result.success)
        self.assertEqual(result.metadata["error_type"], "TypeMismatchError")
        self.assertIsNone(result.data)

    def test_stored_results_and_save_as(self) -> None:
        self.service.search_expression("deadline", save_as="deadlines")
        self.service.search_expression("todo", save_as="todos")
        result = self.service.combine_results(
            result_ids=["deadlines", "todos"],
            operation="difference",
            save_as="deadline-only",
        )
        self.assertEqual(result.data.identifiers, ("a1-1",))
        stored = self.store.get("deadline-only")
        self.assertIs(stored.kind, NodeKind.BLOCK)
        self.assertEqual(stored.records[0].content, "Ship the [[Search]] redesign before the deadline")

    def test_missing_result_lists_available(self) -> None:
        self.service.search_expression("deadline", save_as="deadlines")
        result = self.service.combine_results(result_ids=["deadlines", "unknown"])
        self.assertFalse(result.success)
        self.assertEqual(result.metadata["identifier"], "unknown")
        self.assertEqual(result.metadata["available"], ["deadlines"])

    def test_unknown_operation(self) -> None:
        result = self.service.combine_results(
            [
                {"name": "s1", "identifiers": ["a"], "kind": "block"},
                {"name": "s2", "identifiers": ["b"], "kind": "block"},
            ],
            operation="xor",
        )
        self.assertFalse(result.success)
        self.assertIn("operation", result.error)


class TestExtractHierarchy(ServiceTestCase):
    def test_extract_roots(self) -> None:
        result = self.service.extract_hierarchy(["a1", "missing", "a1", "s2"])
        self.assertTrue(result.success)
        self.assertIsInstance(result.data, HierarchyResult)
        self.assertEqual([c.root_uid for c in result.data.contents], ["a1"])
        self.assertEqual(result.data.skipped, ("missing", "s2"))

        content = result.data.contents[0]
        self.assertEqual(content.page_title, "Project Alpha")
        self.assertTrue(content.text.startswith("# Goals for"))
        self.assertEqual(content.stats.total_blocks, 4)
        self.assertEqual(content.stats.max_depth, 2)
        self.assertEqual(
            [(ref.kind.value, ref.target) for ref in content.references],
            [("page", "Q3"), ("page", "Search"), ("page", "Status")],
        )

    def test_extract_from_stored_result(self) -> None:
        self.service.search_expression("todo", save_as="todos")
        result = self.service.extract_hierarchy(result_id="todos", hierarchy=HierarchyOptions(max_depth=1))
        self.assertEqual([c.root_uid for c in result.data.contents], ["a1-1-1", "d1"])

    def test_first_root_per_page_when_not_separated(self) -> None:
        service = GraphSearchService(
            backend=self.backend,
            evaluator=ConditionEvaluator(self.backend),
            extraction=ExtractionSettings(separate_pages=False),
        )
        result = service.extract_hierarchy(["a1", "a2", "d1"])
        self.assertEqual([c.root_uid for c in result.data.contents], ["a1", "d1"])
        self.assertEqual(result.data.skipped, ("a2",))

    def test_references_are_resolved_into_text(self) -> None:
        result = self.service.extract_hierarchy(["a2"])
        self.assertIn("→ Block: Ship the [[Search]] redesign", result.data.contents[0].nodes[0].content)

    def test_requires_roots(self) -> None:
        result = self.service.extract_hierarchy()
        self.assertFalse(result.success)
        missing = self.service.extract_hierarchy(result_id="nope")
        self.assertFalse(missing.success)
        self.assertEqual(missing.metadata["identifier"], "nope")


class TestRunTool(unittest.TestCase):
    def test_unexpected_errors_are_formatted(self) -> None:
        def boom():
            raise KeyError("x")

        with self.assertLogs("GraphSearch", level="ERROR"):
            result = run_tool("boom", boom)
        self.assertFalse(result.success)
        self.assertTrue(result.error.startswith("Unexpected error:"))
        self.assertEqual(result.metadata["error_type"], "KeyError")

    def test_lookup_miss_metadata(self) -> None:
        def miss():
            raise LookupMiss("gone", identifier="r1", available=["r2"])

        result = run_tool("lookup", miss)
        self.assertEqual(result.to_dict()["metadata"], {"identifier": "r1", "available": ["r2"]})


if __name__ == "__main__":
    unittest.main()
