"""Public search operations over a graph backend.

Every entry point returns a ``ToolResult``. Errors raised by the core are
converted at this boundary into a failed result with a readable message, so
callers never see an internal exception.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Sequence

from GraphSearch.core.conditions import ConditionQuery, parse_condition_query
from GraphSearch.core.errors import GraphSearchError, LookupMiss, ValidationError
from GraphSearch.core.events import CancellationSignal, ProgressCallback, ProgressEvent, check_cancelled, emit
from GraphSearch.core.expression import Compound, Expression, Hierarchical, ParsedQuery, Term, format_expression
from GraphSearch.core.models import (
    HierarchyContent,
    HierarchyResult,
    NodeKind,
    NodeRecord,
    ResultSet,
    SearchResult,
    ToolResult,
)
from GraphSearch.hierarchy.builder import HierarchyBuilder, HierarchyOptions
from GraphSearch.hierarchy.render import RenderOptions, collect_references, hierarchy_stats, render_hierarchy
from GraphSearch.llm.service import ExpansionService
from GraphSearch.query.compiler import MatchClause, compile_condition, compile_query
from GraphSearch.query.evaluator import ConditionEvaluator, OrderBy, rank_records
from GraphSearch.query.hierarchy_search import ExpressionSearch
from GraphSearch.query.parser import parse_expression, parse_simple_compound, term_to_condition
from GraphSearch.services.combine import CombineOptions, SetOperation, combine_result_sets
from GraphSearch.storage.backend import GraphBackend
from GraphSearch.storage.results import ResultStore, resolve_result_sets
from GraphSearch.utils.log import log


@dataclass(frozen=True, slots=True)
class SearchSettings:
    """Defaults applied to block, page and expression searches."""

    limit: int = 500
    order_by: OrderBy = OrderBy.FIRST_SEEN
    expand_all: bool = False

    def __post_init__(self) -> None:
        if self.limit <= 0:
            raise ValidationError(f"limit must be positive: {self.limit}")


@dataclass(frozen=True, slots=True)
class ExtractionSettings:
    """Defaults applied to hierarchy extraction.

    Attributes:
        hierarchy: Tree building options.
        render: Text rendering options.
        resolve_references: Append referenced block and page snippets.
        max_reference_depth: Tree levels that receive reference snippets.
        exclude_empty: Skip roots whose content is blank.
        separate_pages: Extract every root; when false only the first root per page.
    """

    hierarchy: HierarchyOptions = field(default_factory=HierarchyOptions)
    render: RenderOptions = field(default_factory=RenderOptions)
    resolve_references: bool = True
    max_reference_depth: int = 1
    exclude_empty: bool = True
    separate_pages: bool = True

    def __post_init__(self) -> None:
        if not 0 <= self.max_reference_depth <= 3:
            raise ValidationError(f"max_reference_depth must be between 0 and 3: {self.max_reference_depth}")


@dataclass(slots=True)
class GraphSearchService:
    """Application service exposing search, combination and extraction.

    The service keeps no per-call state; one instance can serve concurrent
    callers that share a read-mostly backend.
    """

    backend: GraphBackend
    evaluator: ConditionEvaluator
    result_store: ResultStore | None = None
    expansion: ExpansionService | None = None
    settings: SearchSettings = field(default_factory=SearchSettings)
    combine_options: CombineOptions = field(default_factory=CombineOptions)
    extraction: ExtractionSettings = field(default_factory=ExtractionSettings)

    def find_blocks(
        self,
        request: ConditionQuery | Mapping[str, Any],
        *,
        limit: int | None = None,
        order_by: OrderBy | str | None = None,
        save_as: str | None = None,
        on_progress: ProgressCallback | None = None,
        cancel: CancellationSignal | None = None,
    ) -> ToolResult:
        """Find blocks matching a flat or grouped condition request.

        Args:
            request: ``ConditionQuery`` or its mapping form.
            limit: Maximum records returned (defaults to the configured limit).
            order_by: ``first_seen``, ``relevance`` or ``page``.
            save_as: Store the full result under this result-store id.
            on_progress: Optional progress callback.
            cancel: Optional cooperative cancellation signal.

        Returns:
            ToolResult whose data is a ``SearchResult``.
        """
        return run_tool(
            "find_blocks",
            lambda: self._search_conditions(
                request, NodeKind.BLOCK, limit, order_by, save_as, on_progress, cancel
            ),
        )

    def find_pages(
        self,
        request: ConditionQuery | Mapping[str, Any],
        *,
        limit: int | None = None,
        order_by: OrderBy | str | None = None,
        save_as: str | None = None,
        on_progress: ProgressCallback | None = None,
        cancel: CancellationSignal | None = None,
    ) -> ToolResult:
        """Find pages whose titles match the request (see ``find_blocks``)."""
        return run_tool(
            "find_pages",
            lambda: self._search_conditions(
                request, NodeKind.PAGE, limit, order_by, save_as, on_progress, cancel
            ),
        )

    def parse_query(self, expression: str) -> ToolResult:
        """Parse a query string without searching.

        Returns:
            ToolResult whose data is a ``ParsedQuery``.
        """

        def run() -> ParsedQuery:
            events: list[ProgressEvent] = []
            expr = parse_expression(expression, on_progress=events.append)
            return ParsedQuery(
                source=expression,
                expression=expr,
                simple=parse_simple_compound(expression),
                degraded=any(event.kind == "degraded" for event in events),
            )

        return run_tool("parse_query", run)

    def search_expression(
        self,
        expression: str,
        *,
        max_depth: int | None = None,
        limit: int | None = None,
        order_by: OrderBy | str | None = None,
        save_as: str | None = None,
        on_progress: ProgressCallback | None = None,
        cancel: CancellationSignal | None = None,
    ) -> ToolResult:
        """Search blocks with a query string such as ``(a + b)`` or ``A => B``.

        Simple compounds take the condition fast path; anything else is parsed
        into an expression tree. Unparseable input degrades to a text search.

        Args:
            expression: Query string.
            max_depth: Override the traversal depth of hierarchical operators.
            limit: Maximum records returned.
            order_by: Result ordering.
            save_as: Store the full result under this result-store id.
            on_progress: Optional progress callback.
            cancel: Optional cooperative cancellation signal.
        """

        def run() -> SearchResult:
            if max_depth is not None and max_depth < 1:
                raise ValidationError(f"max_depth must be >= 1: {max_depth}")
            group = parse_simple_compound(expression)
            if group is not None:
                log.debug("Simple compound fast path: %s", expression)
                query = ConditionQuery(conditions=group.conditions, combinator=group.combinator)
                return self._search_conditions(
                    query, NodeKind.BLOCK, limit, order_by, save_as, on_progress, cancel, label=expression
                )

            expr = parse_expression(expression, on_progress=on_progress)
            log.info("Parsed expression: %s", format_expression(expr))
            clauses = [compile_condition(term_to_condition(term)) for term in _iter_terms(expr)]
            search = ExpressionSearch(
                self.evaluator,
                expand=self._expander(),
                on_progress=on_progress,
                cancel=cancel,
            )
            records = search.evaluate(expr, max_depth=max_depth)
            return self._finish(
                records, clauses, NodeKind.BLOCK, format_expression(expr), limit, order_by, save_as, on_progress
            )

        return run_tool("search_expression", run)

    def combine_results(
        self,
        sets: Sequence[ResultSet | Mapping[str, Any]] = (),
        *,
        result_ids: Sequence[str] = (),
        operation: SetOperation | str = SetOperation.UNION,
        options: CombineOptions | None = None,
        save_as: str | None = None,
    ) -> ToolResult:
        """Combine explicit result sets and stored results.

        Args:
            sets: Result sets, or mappings with ``name``, ``identifiers`` and ``kind``.
            result_ids: Result-store ids, resolved after the explicit sets.
            operation: ``union``, ``intersection``, ``difference`` or
                ``symmetric_difference``.
            options: Post-processing options (defaults from configuration).
            save_as: Store the combined identifiers under this result-store id.

        Returns:
            ToolResult whose data is a ``CombinedResult``. A missing stored
            result fails the call and lists the available ids in metadata.
        """

        def run():
            op = _parse_choice(SetOperation, operation, "operation")
            result_sets = [_parse_result_set(item, idx) for idx, item in enumerate(sets)]
            if result_ids:
                result_sets.extend(resolve_result_sets(self._store(), result_ids))
            combined = combine_result_sets(result_sets, op, options or self.combine_options)
            if save_as:
                records = [self._record_for(uid, combined.kind) for uid in combined.identifiers]
                self._store().put(save_as, combined.kind, records)
            return combined

        return run_tool("combine_results", run)

    def extract_hierarchy(
        self,
        root_uids: Sequence[str] = (),
        *,
        result_id: str | None = None,
        hierarchy: HierarchyOptions | None = None,
        render: RenderOptions | None = None,
        cancel: CancellationSignal | None = None,
    ) -> ToolResult:
        """Extract and render the block tree under each root.

        Args:
            root_uids: Root block (or page) identifiers.
            result_id: Take additional roots from a stored result.
            hierarchy: Tree options (defaults from configuration).
            render: Rendering options (defaults from configuration).
            cancel: Optional cooperative cancellation signal.

        Returns:
            ToolResult whose data is a ``HierarchyResult``.
        """

        def run() -> HierarchyResult:
            roots = list(root_uids)
            if result_id is not None:
                roots.extend(record.uid for record in self._store().get(result_id).records)
            if not roots:
                raise ValidationError("Provide at least one root uid or a result_id")
            return self._extract(roots, hierarchy or self.extraction.hierarchy, render or self.extraction.render, cancel)

        return run_tool("extract_hierarchy", run)

    def _search_conditions(
        self,
        request: ConditionQuery | Mapping[str, Any],
        kind: NodeKind,
        limit: int | None,
        order_by: OrderBy | str | None,
        save_as: str | None,
        on_progress: ProgressCallback | None,
        cancel: CancellationSignal | None,
        *,
        label: str | None = None,
    ) -> SearchResult:
        query = request if isinstance(request, ConditionQuery) else parse_condition_query(request)
        expand = self._expander()
        if expand is not None:
            query = expand(query)
        compiled = compile_query(query)
        records = self.evaluator.evaluate(compiled, kind, on_progress=on_progress, cancel=cancel)
        description = label or _describe_query(query)
        return self._finish(records, compiled.clauses(), kind, description, limit, order_by, save_as, on_progress)

    def _finish(
        self,
        records: Sequence[NodeRecord],
        clauses: Sequence[MatchClause],
        kind: NodeKind,
        description: str,
        limit: int | None,
        order_by: OrderBy | str | None,
        save_as: str | None,
        on_progress: ProgressCallback | None,
    ) -> SearchResult:
        order = self.settings.order_by if order_by is None else _parse_choice(OrderBy, order_by, "order_by")
        max_results = self.settings.limit if limit is None else limit
        if max_results <= 0:
            raise ValidationError(f"limit must be positive: {max_results}")

        ranked = rank_records(records, clauses, order)
        if save_as:
            self._store().put(save_as, kind, ranked)
        limited = tuple(ranked[:max_results])
        emit(
            on_progress,
            ProgressEvent(
                stage="search",
                kind="completed",
                message=f"Found {len(ranked)} {kind.value}s",
                data={"total": len(ranked), "returned": len(limited)},
            ),
        )
        log.info("Search %r: kind=%s total=%d returned=%d", description, kind.value, len(ranked), len(limited))
        return SearchResult(
            kind=kind,
            records=limited,
            total_count=len(ranked),
            query=description,
            result_id=save_as or None,
        )

    def _extract(
        self,
        roots: Sequence[str],
        hierarchy: HierarchyOptions,
        render: RenderOptions,
        cancel: CancellationSignal | None,
    ) -> HierarchyResult:
        builder = HierarchyBuilder(self.backend, cancel=cancel)
        contents: list[HierarchyContent] = []
        skipped: list[str] = []
        seen_roots: set[str] = set()
        seen_pages: set[str] = set()

        for uid in roots:
            check_cancelled(cancel, f"hierarchy extraction at {uid}")
            if uid in seen_roots:
                continue
            seen_roots.add(uid)

            structure = builder.build(uid, hierarchy)
            root = next((node for node in structure if not node.is_context), None)
            if root is None:
                skipped.append(uid)
                continue
            if self.extraction.exclude_empty and not root.content.strip():
                log.debug("Hierarchy root skipped (empty): %s", uid)
                skipped.append(uid)
                continue
            if not self.extraction.separate_pages and root.page_uid is not None:
                if root.page_uid in seen_pages:
                    log.debug("Hierarchy root skipped (page already extracted): %s", uid)
                    skipped.append(uid)
                    continue
                seen_pages.add(root.page_uid)

            # Collected before snippets are appended so references stay opaque targets.
            references = tuple(collect_references(structure))
            if self.extraction.resolve_references:
                builder.resolve_references(structure, self.extraction.max_reference_depth)
            contents.append(
                HierarchyContent(
                    root_uid=uid,
                    page_title=root.page_title,
                    nodes=tuple(structure),
                    text=render_hierarchy(structure, render),
                    references=references,
                    stats=hierarchy_stats(structure, render.truncate_length, exclude_context=True),
                )
            )

        log.info("Extracted %d hierarchies (skipped %d)", len(contents), len(skipped))
        return HierarchyResult(contents=tuple(contents), skipped=tuple(skipped))

    def _expander(self) -> Callable[[ConditionQuery], ConditionQuery] | None:
        if self.expansion is None:
            return None
        expansion = self.expansion
        expand_all = self.settings.expand_all
        return lambda query: expansion.expand_query(query, expand_all=expand_all)

    def _store(self) -> ResultStore:
        if self.result_store is None:
            raise ValidationError("No result store is configured")
        return self.result_store

    def _record_for(self, uid: str, kind: NodeKind) -> NodeRecord:
        try:
            record = self.backend.node(uid)
        except Exception as error:  # noqa: BLE001 - record enrichment failure must be isolated
            log.warning("Record lookup failed: uid=%s error=%s", uid, error)
            record = None
        if record is None or record.kind is not kind:
            return NodeRecord(uid=uid, kind=kind)
        return record


def run_tool(tool_name: str, func: Callable[[], Any]) -> ToolResult:
    """Run ``func`` and wrap its outcome, or its error, in a ``ToolResult``."""
    started = time.perf_counter()
    try:
        data = func()
    except LookupMiss as error:
        log.error("%s failed: %s", tool_name, error)
        return ToolResult(
            success=False,
            tool_name=tool_name,
            error=str(error),
            execution_time=time.perf_counter() - started,
            metadata={"identifier": error.identifier, "available": list(error.available)},
        )
    except GraphSearchError as error:
        log.error("%s failed: %s", tool_name, error)
        return ToolResult(
            success=False,
            tool_name=tool_name,
            error=str(error),
            execution_time=time.perf_counter() - started,
            metadata={"error_type": type(error).__name__},
        )
    except Exception as error:  # noqa: BLE001 - service boundary
        log.exception("%s failed unexpectedly", tool_name)
        return ToolResult(
            success=False,
            tool_name=tool_name,
            error=f"Unexpected error: {error}",
            execution_time=time.perf_counter() - started,
            metadata={"error_type": type(error).__name__},
        )
    return ToolResult(success=True, tool_name=tool_name, data=data, execution_time=time.perf_counter() - started)


def _iter_terms(expr: Expression):
    if isinstance(expr, Term):
        yield expr
    elif isinstance(expr, Compound):
        for operand in expr.operands:
            yield from _iter_terms(operand)
    elif isinstance(expr, Hierarchical):
        yield from _iter_terms(expr.left)
        yield from _iter_terms(expr.right)


def _describe_query(query: ConditionQuery) -> str:
    groups, group_combinator = query.as_groups()
    parts = []
    for group in groups:
        terms = [("NOT " if cond.negate else "") + f"{cond.type.value}:{cond.text}" for cond in group.conditions]
        parts.append("(" + f" {group.combinator.value} ".join(terms) + ")")
    return f" {group_combinator.value} ".join(parts)


def _parse_choice(enum_cls, value: Any, key: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError as error:
        allowed = sorted(member.value for member in enum_cls)
        raise ValidationError(f"{key} must be one of {allowed}, got: {value}") from error


def _parse_result_set(item: ResultSet | Mapping[str, Any], idx: int) -> ResultSet:
    if isinstance(item, ResultSet):
        return item
    if not isinstance(item, Mapping):
        raise ValidationError(f"sets[{idx}] must be an object")
    name = item.get("name")
    identifiers = item.get("identifiers")
    if not isinstance(name, str) or not name:
        raise ValidationError(f"sets[{idx}].name must be a non-empty string")
    if not isinstance(identifiers, (list, tuple)) or not all(isinstance(uid, str) for uid in identifiers):
        raise ValidationError(f"sets[{idx}].identifiers must be a list of strings")
    return ResultSet(
        name=name,
        identifiers=identifiers,
        kind=_parse_choice(NodeKind, item.get("kind"), f"sets[{idx}].kind"),
        metadata=item.get("metadata") or {},
    )
