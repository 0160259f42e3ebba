"""Expression tree produced by the query-string parser."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Union

from GraphSearch.core.conditions import Combinator, ConditionGroup, TermKind


class HierarchyOperator(str, Enum):
    """Relation operators, listed in matching priority order."""

    DEEP_BIDIRECTIONAL = "<<=>>"
    BIDIRECTIONAL = "<=>"
    DEEP_FLEXIBLE_ANCESTOR = "<<="
    DEEP_FLEXIBLE_DESCENDANT = "=>>"
    DEEP_STRICT_DESCENDANT = ">>"
    DEEP_STRICT_ANCESTOR = "<<"
    FLEXIBLE_DESCENDANT = "=>"
    FLEXIBLE_ANCESTOR = "<="
    STRICT_DESCENDANT = ">"
    STRICT_ANCESTOR = "<"

    @property
    def is_deep(self) -> bool:
        return self.value in ("<<=>>", "<<=", "=>>", ">>", "<<")

    @property
    def includes_same_block(self) -> bool:
        return "=" in self.value

    @property
    def default_depth(self) -> int:
        return 5 if self.is_deep else 3


# Longest tokens first so "=>" is never split into "=" and ">".
OPERATOR_PRIORITY: tuple[HierarchyOperator, ...] = tuple(HierarchyOperator)


@dataclass(frozen=True, slots=True)
class Term:
    text: str
    search_type: TermKind = TermKind.TEXT
    regex_flags: str = ""
    negate: bool = False


@dataclass(frozen=True, slots=True)
class Compound:
    operator: Combinator
    operands: tuple[Expression, ...]


@dataclass(frozen=True, slots=True)
class Hierarchical:
    """Relation between two sub-expressions with a traversal depth bound.

    The parser only records ``max_depth``; the hierarchical search enforces it.
    """

    operator: HierarchyOperator
    left: Expression
    right: Expression
    max_depth: int


Expression = Union[Term, Compound, Hierarchical]


def format_expression(expr: Expression) -> str:
    """Render an expression back to a readable query string."""
    if isinstance(expr, Term):
        prefix = "-" if expr.negate else ""
        if expr.search_type is TermKind.PAGE_REF:
            return f"{prefix}ref:{expr.text}"
        if expr.search_type is TermKind.BLOCK_REF:
            return f"{prefix}(({expr.text}))"
        if expr.search_type is TermKind.REGEX:
            return f"{prefix}regex:/{expr.text}/{expr.regex_flags}"
        return f"{prefix}{expr.text}"
    if isinstance(expr, Compound):
        joiner = "+" if expr.operator is Combinator.AND else "|"
        return "(" + joiner.join(format_expression(op) for op in expr.operands) + ")"
    if isinstance(expr, Hierarchical):
        return f"{format_expression(expr.left)} {expr.operator.value} {format_expression(expr.right)}"
    raise TypeError(f"Unsupported expression node: {type(expr).__name__}")


def expression_to_dict(expr: Expression) -> dict[str, Any]:
    """Serialize an expression tree into plain data."""
    if isinstance(expr, Term):
        return {
            "type": "term",
            "text": expr.text,
            "search_type": expr.search_type.value,
            "regex_flags": expr.regex_flags,
            "negate": expr.negate,
        }
    if isinstance(expr, Compound):
        return {
            "type": "compound",
            "operator": expr.operator.value,
            "operands": [expression_to_dict(op) for op in expr.operands],
        }
    if isinstance(expr, Hierarchical):
        return {
            "type": "hierarchical",
            "operator": expr.operator.value,
            "max_depth": expr.max_depth,
            "left": expression_to_dict(expr.left),
            "right": expression_to_dict(expr.right),
        }
    raise TypeError(f"Unsupported expression node: {type(expr).__name__}")


@dataclass(frozen=True, slots=True)
class ParsedQuery:
    """Outcome of parsing a query string.

    Attributes:
        source: The raw query string.
        expression: Parsed expression tree.
        simple: Condition group when the simple-compound fast path accepts the input.
        degraded: True when the input fell back to a literal text term.
    """

    source: str
    expression: Expression
    simple: Optional[ConditionGroup] = None
    degraded: bool = False

    def to_dict(self) -> dict[str, Any]:
        simple = None
        if self.simple is not None:
            simple = {
                "combinator": self.simple.combinator.value,
                "conditions": [
                    {"text": cond.text, "type": cond.type.value, "negate": cond.negate}
                    for cond in self.simple.conditions
                ],
            }
        return {
            "source": self.source,
            "formatted": format_expression(self.expression),
            "degraded": self.degraded,
            "expression": expression_to_dict(self.expression),
            "simple": simple,
        }
