"""Tests for condition models, request parsing and matching primitives."""

from __future__ import annotations

import sys
import unittest
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT / "src"))

from GraphSearch.core.conditions import (
    Combinator,
    ConditionQuery,
    ExpansionMode,
    MatchMode,
    SearchCondition,
    TermKind,
    parse_condition_query,
    split_expansion_marker,
)
from GraphSearch.core.errors import ValidationError
from GraphSearch.core.models import NodeKind, NodeRecord, ReferenceInfo
from GraphSearch.query import matching
from GraphSearch.query.compiler import ClauseOp, clause_matches, compile_condition, compile_query


class TestSearchCondition(unittest.TestCase):
    def test_empty_text_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            SearchCondition(text="   ")

    def test_negative_weight_rejected(self) -> None:
        with self.assertRaisesRegex(ValidationError, "weight"):
            SearchCondition(text="a", weight=-1)

    def test_page_ref_or_titles(self) -> None:
        condition = SearchCondition(text="AI | Machine Learning|", type=TermKind.PAGE_REF_OR)
        self.assertEqual(condition.page_titles(), ("AI", "Machine Learning"))
        with self.assertRaises(ValidationError):
            SearchCondition(text="|", type=TermKind.PAGE_REF_OR)

    def test_negated_returns_copy(self) -> None:
        condition = SearchCondition(text="a")
        self.assertTrue(condition.negated().negate)
        self.assertFalse(condition.negate)

    def test_split_expansion_marker(self) -> None:
        self.assertEqual(split_expansion_marker("learn*"), ("learn", ExpansionMode.FUZZY))
        self.assertEqual(split_expansion_marker("car ~"), ("car", ExpansionMode.SYNONYMS))
        self.assertEqual(split_expansion_marker("*"), ("*", None))


class TestConditionQuery(unittest.TestCase):
    def test_conditions_and_groups_are_exclusive(self) -> None:
        with self.assertRaisesRegex(ValidationError, "not both"):
            parse_condition_query(
                {
                    "conditions": [{"text": "a"}],
                    "groups": [{"conditions": [{"text": "b"}]}],
                }
            )

    def test_neither_conditions_nor_groups(self) -> None:
        with self.assertRaisesRegex(ValidationError, "Must provide either"):
            parse_condition_query({"combinator": "OR"})

    def test_flat_request(self) -> None:
        query = parse_condition_query(
            {
                "conditions": [
                    {"text": "AI", "type": "page_ref"},
                    {"text": " deadline ", "negate": True, "weight": 2},
                    {"text": "^todo", "type": "regex"},
                ],
                "combinator": "or",
            }
        )
        self.assertIs(query.combinator, Combinator.OR)
        first, second, third = query.conditions
        self.assertIs(first.type, TermKind.PAGE_REF)
        self.assertEqual(second.text, "deadline")
        self.assertTrue(second.negate)
        self.assertEqual(second.weight, 2.0)
        self.assertIs(third.match_mode, MatchMode.REGEX)

    def test_grouped_request(self) -> None:
        query = parse_condition_query(
            {
                "groups": [
                    {"conditions": [{"text": "a"}, {"text": "b"}], "combinator": "OR"},
                    {"conditions": [{"text": "c", "expansion": "synonyms"}]},
                ],
                "group_combinator": "AND",
            }
        )
        groups, group_combinator = query.as_groups()
        self.assertEqual(len(groups), 2)
        self.assertIs(groups[0].combinator, Combinator.OR)
        self.assertIs(group_combinator, Combinator.AND)
        self.assertIs(groups[1].conditions[0].expansion, ExpansionMode.SYNONYMS)
        self.assertEqual([c.text for c in query.all_conditions()], ["a", "b", "c"])

    def test_flat_query_as_single_group(self) -> None:
        query = ConditionQuery(conditions=(SearchCondition(text="a"),), combinator=Combinator.OR)
        groups, group_combinator = query.as_groups()
        self.assertEqual(len(groups), 1)
        self.assertIs(groups[0].combinator, Combinator.OR)
        self.assertIs(group_combinator, Combinator.AND)

    def test_invalid_values_report_key(self) -> None:
        with self.assertRaisesRegex(ValidationError, r"conditions\[0\]\.type"):
            parse_condition_query({"conditions": [{"text": "a", "type": "tag"}]})
        with self.assertRaisesRegex(ValidationError, r"groups\[0\]\.combinator"):
            parse_condition_query({"groups": [{"conditions": [{"text": "a"}], "combinator": "XOR"}]})
        with self.assertRaisesRegex(ValidationError, "at least one condition"):
            parse_condition_query({"groups": [{"conditions": []}]})
        with self.assertRaisesRegex(ValidationError, r"conditions\[0\]\.negate"):
            parse_condition_query({"conditions": [{"text": "a", "negate": "yes"}]})


class TestMatching(unittest.TestCase):
    def test_extract_references_order_and_dedup(self) -> None:
        refs = matching.extract_references("See [[A]] and #B then ((x1)), again [[A]] and #[[Multi Word]]")
        self.assertEqual(
            refs,
            [
                ReferenceInfo(NodeKind.PAGE, "A"),
                ReferenceInfo(NodeKind.PAGE, "B"),
                ReferenceInfo(NodeKind.BLOCK, "x1"),
                ReferenceInfo(NodeKind.PAGE, "Multi Word"),
            ],
        )

    def test_attribute_reference(self) -> None:
        self.assertEqual(
            matching.extract_references("Status:: done"),
            [ReferenceInfo(NodeKind.PAGE, "Status")],
        )

    def test_regex_without_flags_is_case_insensitive(self) -> None:
        self.assertTrue(matching.regex_search("abc", "", "xx ABC"))
        self.assertFalse(matching.regex_search("abc", "g", "xx ABC"))
        self.assertTrue(matching.regex_search("abc", "gi", "xx ABC"))

    def test_multiline_flag(self) -> None:
        self.assertFalse(matching.regex_search("^b", "i", "a\nb"))
        self.assertTrue(matching.regex_search("^b", "im", "a\nb"))

    def test_invalid_regex_and_flag(self) -> None:
        with self.assertRaisesRegex(ValidationError, "Invalid regex"):
            matching.compile_regex("(unclosed")
        with self.assertRaisesRegex(ValidationError, "flag 'x'"):
            matching.compile_regex("a", "x")

    def test_references_page_is_case_insensitive(self) -> None:
        self.assertTrue(matching.references_page("Notes on [[machine learning]]", ("Machine Learning",)))
        self.assertFalse(matching.references_page("Machine Learning", ("Machine Learning",)))


class TestCompiler(unittest.TestCase):
    def setUp(self) -> None:
        self.block = NodeRecord(
            uid="b1",
            kind=NodeKind.BLOCK,
            content="Review [[AI]] plan, see ((b0))",
            page_uid="p1",
            page_title="Plans",
        )

    def test_clause_ops(self) -> None:
        self.assertIs(compile_condition(SearchCondition(text="plan")).op, ClauseOp.CONTAINS)
        self.assertIs(compile_condition(SearchCondition(text="x", match_mode=MatchMode.EXACT)).op, ClauseOp.EQUALS)
        self.assertIs(
            compile_condition(SearchCondition(text="a.*", match_mode=MatchMode.REGEX)).op,
            ClauseOp.REGEX,
        )
        self.assertIs(compile_condition(SearchCondition(text="b0", type=TermKind.BLOCK_REF)).op, ClauseOp.BLOCK_REF)

    def test_in_memory_matching(self) -> None:
        cases = [
            (SearchCondition(text="PLAN"), True),
            (SearchCondition(text="plan", negate=True), False),
            (SearchCondition(text="AI", type=TermKind.PAGE_REF), True),
            (SearchCondition(text="Robots|ai", type=TermKind.PAGE_REF_OR), True),
            (SearchCondition(text="b0", type=TermKind.BLOCK_REF), True),
            (SearchCondition(text="b9", type=TermKind.BLOCK_REF), False),
            (SearchCondition(text=r"^review", type=TermKind.REGEX, match_mode=MatchMode.REGEX), True),
        ]
        for condition, expected in cases:
            with self.subTest(condition=condition):
                self.assertEqual(clause_matches(compile_condition(condition), self.block), expected)

    def test_page_records_match_titles(self) -> None:
        page = NodeRecord(uid="p1", kind=NodeKind.PAGE, content="Plans", page_uid="p1", page_title="Plans")
        self.assertTrue(clause_matches(compile_condition(SearchCondition(text="plans", type=TermKind.PAGE_REF)), page))
        self.assertFalse(clause_matches(compile_condition(SearchCondition(text="b0", type=TermKind.BLOCK_REF)), page))

    def test_invalid_regex_fails_compilation(self) -> None:
        query = ConditionQuery(
            conditions=(
                SearchCondition(text="ok"),
                SearchCondition(text="[bad", type=TermKind.REGEX, match_mode=MatchMode.REGEX),
            )
        )
        with self.assertRaises(ValidationError):
            compile_query(query)


if __name__ == "__main__":
    unittest.main()
