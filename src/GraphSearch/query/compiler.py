"""Compile search conditions into backend-neutral match clauses.

A ``MatchClause`` is the compiled predicate for one condition. The same clause
can be sent to a backend inside a ``NodePattern`` or evaluated in memory with
``clause_matches``; both paths use the primitives in ``query.matching``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from GraphSearch.core.conditions import (
    Combinator,
    ConditionQuery,
    MatchMode,
    SearchCondition,
    TermKind,
)
from GraphSearch.core.models import NodeKind, NodeRecord
from GraphSearch.query import matching


class ClauseOp(str, Enum):
    CONTAINS = "contains"
    EQUALS = "equals"
    REGEX = "regex"
    PAGE_REF = "page_ref"
    BLOCK_REF = "block_ref"


@dataclass(frozen=True, slots=True)
class MatchClause:
    """Compiled predicate for a single condition.

    Attributes:
        op: Comparison applied to the node text.
        values: Operand(s); several titles for an any-of page reference.
        flags: Regex flag letters for ``REGEX`` clauses.
        negate: Invert the clause result.
        weight: Relevance weight carried over from the condition.
    """

    op: ClauseOp
    values: tuple[str, ...]
    flags: str = ""
    negate: bool = False
    weight: float = 1.0

    @property
    def value(self) -> str:
        return self.values[0]


@dataclass(frozen=True, slots=True)
class CompiledGroup:
    clauses: tuple[MatchClause, ...]
    combinator: Combinator


@dataclass(frozen=True, slots=True)
class CompiledQuery:
    groups: tuple[CompiledGroup, ...]
    group_combinator: Combinator

    def clauses(self) -> tuple[MatchClause, ...]:
        return tuple(clause for group in self.groups for clause in group.clauses)


@dataclass(frozen=True, slots=True)
class NodePattern:
    """Declarative query handed to a ``GraphBackend``.

    An empty ``clauses`` tuple matches every node of ``kind``. When
    ``restrict_to`` is set only those node identifiers are considered.
    """

    kind: NodeKind
    clauses: tuple[MatchClause, ...] = ()
    combinator: Combinator = Combinator.AND
    restrict_to: frozenset[str] | None = None


def compile_condition(condition: SearchCondition) -> MatchClause:
    """Compile one condition.

    Raises:
        ValidationError: If a regex condition carries an invalid pattern.
    """
    kind = condition.type
    if condition.is_regex:
        matching.compile_regex(condition.text, condition.regex_flags)
        return MatchClause(
            op=ClauseOp.REGEX,
            values=(condition.text,),
            flags=condition.regex_flags,
            negate=condition.negate,
            weight=condition.weight,
        )
    if kind is TermKind.TEXT:
        op = ClauseOp.EQUALS if condition.match_mode is MatchMode.EXACT else ClauseOp.CONTAINS
        return MatchClause(op=op, values=(condition.text,), negate=condition.negate, weight=condition.weight)
    if kind in (TermKind.PAGE_REF, TermKind.PAGE_REF_OR):
        return MatchClause(
            op=ClauseOp.PAGE_REF,
            values=condition.page_titles(),
            negate=condition.negate,
            weight=condition.weight,
        )
    if kind is TermKind.BLOCK_REF:
        return MatchClause(
            op=ClauseOp.BLOCK_REF,
            values=(condition.text.strip("() "),),
            negate=condition.negate,
            weight=condition.weight,
        )
    raise ValueError(f"Unsupported condition type: {kind}")


def compile_query(query: ConditionQuery) -> CompiledQuery:
    """Compile a flat or grouped condition request.

    Every regex is validated here, so an invalid pattern fails the whole
    request before any backend work starts.
    """
    groups, group_combinator = query.as_groups()
    return CompiledQuery(
        groups=tuple(
            CompiledGroup(
                clauses=tuple(compile_condition(cond) for cond in group.conditions),
                combinator=group.combinator,
            )
            for group in groups
        ),
        group_combinator=group_combinator,
    )


def clause_matches(clause: MatchClause, record: NodeRecord) -> bool:
    """Evaluate a clause against a record in memory.

    Page records are matched on their title; a page reference clause matches a
    page whose title is one of the referenced titles.
    """
    text = record.content
    if clause.op is ClauseOp.CONTAINS:
        result = matching.text_contains(text, clause.value)
    elif clause.op is ClauseOp.EQUALS:
        result = text == clause.value
    elif clause.op is ClauseOp.REGEX:
        result = matching.regex_search(clause.value, clause.flags, text)
    elif clause.op is ClauseOp.PAGE_REF:
        if record.kind is NodeKind.PAGE:
            result = matching.fold(text) in {matching.fold(title) for title in clause.values}
        else:
            result = matching.references_page(text, clause.values)
    elif clause.op is ClauseOp.BLOCK_REF:
        result = record.kind is NodeKind.BLOCK and matching.references_block(text, clause.value)
    else:
        raise ValueError(f"Unsupported clause op: {clause.op}")
    return result != clause.negate


def all_match(clauses: Iterable[MatchClause], record: NodeRecord) -> bool:
    return all(clause_matches(clause, record) for clause in clauses)

