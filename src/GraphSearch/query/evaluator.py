"""Boolean evaluation of compiled condition groups against a graph backend.

Groups are evaluated first, then combined with the outer group combinator.
Inside an AND group the evaluator either sends every clause to the backend
in one pattern (``backend``) or lets the backend run a single driving clause
and filters its candidates in memory (``hybrid``). Both strategies return the
same records in the same order.
"""

from __future__ import annotations

from enum import Enum
from typing import Iterable, Mapping, Protocol, Sequence

from GraphSearch.core.conditions import Combinator
from GraphSearch.core.errors import BackendFailure, GraphSearchError, ValidationError
from GraphSearch.core.events import CancellationSignal, ProgressCallback, ProgressEvent, check_cancelled, emit
from GraphSearch.core.models import NodeKind, NodeRecord
from GraphSearch.query.compiler import (
    ClauseOp,
    CompiledGroup,
    CompiledQuery,
    MatchClause,
    NodePattern,
    all_match,
    clause_matches,
)
from GraphSearch.storage.backend import GraphBackend, record_from_row
from GraphSearch.utils.log import log


class AndStrategy(str, Enum):
    HYBRID = "hybrid"
    BACKEND = "backend"


class OrderBy(str, Enum):
    FIRST_SEEN = "first_seen"
    RELEVANCE = "relevance"
    PAGE = "page"


class DrivingStrategy(Protocol):
    """Selects the clause an AND group sends to the backend."""

    name: str

    def choose(self, clauses: Sequence[MatchClause]) -> int:
        """Return the index of the driving clause."""
        raise NotImplementedError


class FirstPositiveStrategy:
    """First non-negated clause, or the first clause if all are negated."""

    name = "first"

    def choose(self, clauses: Sequence[MatchClause]) -> int:
        for idx, clause in enumerate(clauses):
            if not clause.negate:
                return idx
        return 0


class SelectiveStrategy:
    """Prefer the clause likely to match the fewest nodes.

    Positive clauses rank exact > block reference > page reference > regex >
    contains; among contains clauses the longest text wins.
    """

    name = "selective"

    _RANK: Mapping[ClauseOp, int] = {
        ClauseOp.EQUALS: 0,
        ClauseOp.BLOCK_REF: 1,
        ClauseOp.PAGE_REF: 2,
        ClauseOp.REGEX: 3,
        ClauseOp.CONTAINS: 4,
    }

    def choose(self, clauses: Sequence[MatchClause]) -> int:
        best = 0
        best_key: tuple[int, int, int, int] | None = None
        for idx, clause in enumerate(clauses):
            key = (
                1 if clause.negate else 0,
                self._RANK[clause.op],
                -len(clause.value) if clause.op is ClauseOp.CONTAINS else 0,
                idx,
            )
            if best_key is None or key < best_key:
                best, best_key = idx, key
        return best


DRIVING_STRATEGIES: Mapping[str, type] = {
    FirstPositiveStrategy.name: FirstPositiveStrategy,
    SelectiveStrategy.name: SelectiveStrategy,
}


def create_driving_strategy(name: str) -> DrivingStrategy:
    """Instantiate a driving strategy by configured name.

    Raises:
        ValidationError: If the name is unknown.
    """
    strategy_cls = DRIVING_STRATEGIES.get(name)
    if strategy_cls is None:
        raise ValidationError(f"Unknown driving strategy: {name} (expected one of {sorted(DRIVING_STRATEGIES)})")
    return strategy_cls()


class ConditionEvaluator:
    """Evaluate compiled queries against a backend.

    Holds no per-call state, so one instance may serve concurrent callers
    sharing the same backend.
    """

    def __init__(
        self,
        backend: GraphBackend,
        *,
        and_strategy: AndStrategy = AndStrategy.HYBRID,
        driving: DrivingStrategy | None = None,
    ):
        self.backend = backend
        self.and_strategy = and_strategy
        self.driving = driving or FirstPositiveStrategy()

    def evaluate(
        self,
        query: CompiledQuery,
        kind: NodeKind,
        *,
        restrict_to: frozenset[str] | None = None,
        on_progress: ProgressCallback | None = None,
        cancel: CancellationSignal | None = None,
    ) -> list[NodeRecord]:
        """Evaluate every group, then combine groups.

        Args:
            query: Compiled conditions.
            kind: Search blocks or pages.
            restrict_to: Optional identifier whitelist.
            on_progress: Optional progress callback.
            cancel: Optional cooperative cancellation signal.

        Returns:
            Matching records, deduplicated, in first-seen order.

        Raises:
            BackendFailure: If a backend query fails.
            SearchCancelled: If the cancellation signal is set between groups.
        """
        results: list[list[NodeRecord]] = []
        scope = restrict_to
        for idx, group in enumerate(query.groups):
            check_cancelled(cancel, f"group {idx + 1}/{len(query.groups)}")
            records = self.evaluate_group(group, kind, restrict_to=scope)
            results.append(records)
            emit(
                on_progress,
                ProgressEvent(
                    stage="search",
                    kind="group_completed",
                    message=f"Group {idx + 1}/{len(query.groups)} matched {len(records)} {kind.value}s",
                    data={"group": idx, "count": len(records)},
                ),
            )
            if query.group_combinator is Combinator.AND:
                # Later groups can only narrow the result.
                scope = frozenset(record.uid for record in records)
                if restrict_to is not None:
                    scope &= restrict_to

        if query.group_combinator is Combinator.AND:
            return intersect_records(results)
        return union_records(results)

    def evaluate_group(
        self,
        group: CompiledGroup,
        kind: NodeKind,
        *,
        restrict_to: frozenset[str] | None = None,
    ) -> list[NodeRecord]:
        clauses = group.clauses
        if group.combinator is Combinator.OR:
            return union_records(
                self._run(NodePattern(kind=kind, clauses=(clause,), restrict_to=restrict_to)) for clause in clauses
            )
        if len(clauses) == 1 or self.and_strategy is AndStrategy.BACKEND:
            return self._run(NodePattern(kind=kind, clauses=clauses, restrict_to=restrict_to))

        driving_idx = self.driving.choose(clauses)
        driving = clauses[driving_idx]
        rest = clauses[:driving_idx] + clauses[driving_idx + 1:]
        candidates = self._run(NodePattern(kind=kind, clauses=(driving,), restrict_to=restrict_to))
        matched = [record for record in candidates if all_match(rest, record)]
        log.debug(
            "Hybrid AND: driving=%s:%r candidates=%d matched=%d",
            driving.op.value,
            driving.value,
            len(candidates),
            len(matched),
        )
        return matched

    def _run(self, pattern: NodePattern) -> list[NodeRecord]:
        try:
            rows = self.backend.query(pattern)
        except GraphSearchError:
            raise
        except Exception as error:
            raise BackendFailure(f"Graph backend query failed: {error}") from error
        return [record_from_row(pattern.kind, row) for row in rows]


def union_records(results: Iterable[Iterable[NodeRecord]]) -> list[NodeRecord]:
    """Concatenate record lists keeping the first occurrence of each uid."""
    seen: set[str] = set()
    out: list[NodeRecord] = []
    for records in results:
        for record in records:
            if record.uid not in seen:
                seen.add(record.uid)
                out.append(record)
    return out


def intersect_records(results: Sequence[Sequence[NodeRecord]]) -> list[NodeRecord]:
    """Keep records of the first list whose uid appears in every other list."""
    if not results:
        return []
    others = [{record.uid for record in records} for records in results[1:]]
    return [record for record in union_records([results[0]]) if all(record.uid in uids for uids in others)]


def rank_records(records: Sequence[NodeRecord], clauses: Sequence[MatchClause], order_by: OrderBy) -> list[NodeRecord]:
    """Order records; all orderings are stable.

    ``relevance`` sums the weights of the positive clauses a record satisfies.
    """
    if order_by is OrderBy.FIRST_SEEN:
        return list(records)
    if order_by is OrderBy.PAGE:
        return sorted(records, key=lambda record: (record.page_title or "").casefold())
    positive = [clause for clause in clauses if not clause.negate]
    scores = {
        record.uid: sum(clause.weight for clause in positive if clause_matches(clause, record))
        for record in records
    }
    return sorted(records, key=lambda record: -scores[record.uid])
