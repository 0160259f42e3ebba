"""Evaluation of parsed expression trees, including hierarchical relations.

Relation semantics (A and B are the left and right operands):

- ``A > B``: A-blocks with a direct child matching B.
- ``A >> B``: A-blocks with a descendant matching B within ``max_depth`` levels.
- ``A < B``: A-blocks whose direct parent matches B.
- ``A << B``: A-blocks with an ancestor matching B within ``max_depth`` levels.
- ``=>``, ``<=``, ``=>>``, ``<<=``: blocks matching both A and B first, then the
  directional variant.
- ``<=>`` / ``<<=>>``: same-block matches, then ``A > B`` (``>>``), then ``B > A``
  (``>>``).
"""

from __future__ import annotations

from typing import Callable, Sequence

from GraphSearch.core.conditions import Combinator, ConditionQuery
from GraphSearch.core.errors import BackendFailure, GraphSearchError
from GraphSearch.core.events import CancellationSignal, ProgressCallback, ProgressEvent, check_cancelled, emit
from GraphSearch.core.expression import Compound, Expression, Hierarchical, HierarchyOperator, Term
from GraphSearch.core.models import NodeKind, NodeRecord
from GraphSearch.query.compiler import compile_query
from GraphSearch.query.evaluator import ConditionEvaluator, intersect_records, union_records
from GraphSearch.query.parser import term_to_condition
from GraphSearch.storage.backend import ancestors


class ExpressionSearch:
    """Evaluate an ``Expression`` into an ordered list of block records."""

    def __init__(
        self,
        evaluator: ConditionEvaluator,
        *,
        expand: Callable[[ConditionQuery], ConditionQuery] | None = None,
        on_progress: ProgressCallback | None = None,
        cancel: CancellationSignal | None = None,
    ):
        self.evaluator = evaluator
        self.expand = expand
        self.backend = evaluator.backend
        self.on_progress = on_progress
        self.cancel = cancel

    def evaluate(self, expr: Expression, *, max_depth: int | None = None) -> list[NodeRecord]:
        """Evaluate an expression.

        Args:
            expr: Parsed expression.
            max_depth: Override for the depth bound of every hierarchical node.

        Raises:
            BackendFailure: If a backend lookup fails.
            ValidationError: If a term carries an invalid regex.
            SearchCancelled: If cancellation is requested.
        """
        check_cancelled(self.cancel, "expression evaluation")
        if isinstance(expr, Term):
            return self._evaluate_terms((expr,), Combinator.AND)
        if isinstance(expr, Compound):
            if all(isinstance(op, Term) for op in expr.operands):
                return self._evaluate_terms(expr.operands, expr.operator)
            parts = [self.evaluate(op, max_depth=max_depth) for op in expr.operands]
            if expr.operator is Combinator.AND:
                return intersect_records(parts)
            return union_records(parts)
        if isinstance(expr, Hierarchical):
            return self._evaluate_hierarchical(expr, max_depth)
        raise TypeError(f"Unsupported expression node: {type(expr).__name__}")

    def _evaluate_terms(self, terms: Sequence[Term], combinator: Combinator) -> list[NodeRecord]:
        query = ConditionQuery(conditions=tuple(term_to_condition(term) for term in terms), combinator=combinator)
        if self.expand is not None:
            query = self.expand(query)
        compiled = compile_query(query)
        return self.evaluator.evaluate(compiled, NodeKind.BLOCK, on_progress=self.on_progress, cancel=self.cancel)

    def _evaluate_hierarchical(self, expr: Hierarchical, max_depth: int | None) -> list[NodeRecord]:
        depth = max_depth if max_depth is not None else expr.max_depth
        left = self.evaluate(expr.left, max_depth=max_depth)
        right = self.evaluate(expr.right, max_depth=max_depth)
        op = expr.operator
        right_uids = {record.uid for record in right}
        left_uids = {record.uid for record in left}

        parts: list[list[NodeRecord]] = []
        if op.includes_same_block:
            parts.append([record for record in left if record.uid in right_uids])

        if op in (HierarchyOperator.STRICT_DESCENDANT, HierarchyOperator.FLEXIBLE_DESCENDANT):
            parts.append(self._with_descendant(left, right_uids, 1))
        elif op in (HierarchyOperator.DEEP_STRICT_DESCENDANT, HierarchyOperator.DEEP_FLEXIBLE_DESCENDANT):
            parts.append(self._with_descendant(left, right_uids, depth))
        elif op in (HierarchyOperator.STRICT_ANCESTOR, HierarchyOperator.FLEXIBLE_ANCESTOR):
            parts.append(self._with_ancestor(left, right_uids, 1))
        elif op is HierarchyOperator.DEEP_STRICT_ANCESTOR or op is HierarchyOperator.DEEP_FLEXIBLE_ANCESTOR:
            parts.append(self._with_ancestor(left, right_uids, depth))
        elif op is HierarchyOperator.BIDIRECTIONAL:
            parts.append(self._with_descendant(left, right_uids, 1))
            parts.append(self._with_descendant(right, left_uids, 1))
        elif op is HierarchyOperator.DEEP_BIDIRECTIONAL:
            parts.append(self._with_descendant(left, right_uids, depth))
            parts.append(self._with_descendant(right, left_uids, depth))

        results = union_records(parts)
        emit(
            self.on_progress,
            ProgressEvent(
                stage="search",
                kind="hierarchy_completed",
                message=f"'{op.value}' matched {len(results)} blocks",
                data={"operator": op.value, "left": len(left), "right": len(right), "count": len(results)},
            ),
        )
        return results

    def _with_descendant(self, candidates: Sequence[NodeRecord], targets: set[str], depth: int) -> list[NodeRecord]:
        if not targets:
            return []
        matched: list[NodeRecord] = []
        for record in candidates:
            check_cancelled(self.cancel, "descendant search")
            frontier = [record.uid]
            seen = {record.uid}
            found = False
            for _ in range(depth):
                next_frontier: list[str] = []
                for uid in frontier:
                    for child in self._lookup(self.backend.children, uid):
                        if child.uid in targets:
                            found = True
                            break
                        if child.uid not in seen:
                            seen.add(child.uid)
                            next_frontier.append(child.uid)
                    if found:
                        break
                if found or not next_frontier:
                    break
                frontier = next_frontier
            if found:
                matched.append(record)
        return matched

    def _with_ancestor(self, candidates: Sequence[NodeRecord], targets: set[str], depth: int) -> list[NodeRecord]:
        if not targets:
            return []
        matched: list[NodeRecord] = []
        for record in candidates:
            check_cancelled(self.cancel, "ancestor search")
            chain = self._lookup(lambda uid: ancestors(self.backend, uid, depth), record.uid)
            if any(parent.uid in targets for parent in chain):
                matched.append(record)
        return matched

    @staticmethod
    def _lookup(func, uid: str):
        try:
            return func(uid)
        except GraphSearchError:
            raise
        except Exception as error:
            raise BackendFailure(f"Graph backend lookup failed for {uid}: {error}") from error
