"""Search, combination and extraction services for GraphSearch.

Factory functions build services from the application configuration.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from GraphSearch.hierarchy.builder import HierarchyOptions
from GraphSearch.hierarchy.render import BulletStyle, LinkFormat, RenderOptions
from GraphSearch.query.evaluator import AndStrategy, ConditionEvaluator, OrderBy, create_driving_strategy
from GraphSearch.services.combine import CombineOptions, CombineOrder, SetOperation, combine_result_sets
from GraphSearch.services.search import ExtractionSettings, GraphSearchService, SearchSettings, run_tool

if TYPE_CHECKING:
    from GraphSearch.config import AppConfig
    from GraphSearch.llm.service import ExpansionService
    from GraphSearch.storage.backend import GraphBackend
    from GraphSearch.storage.results import ResultStore


def create_search_service(
    config: AppConfig,
    backend: GraphBackend,
    *,
    result_store: ResultStore | None = None,
    expansion: ExpansionService | None = None,
) -> GraphSearchService:
    """Create a search service wired to a backend.

    Args:
        config: Application configuration.
        backend: Graph backend answering queries and lookups.
        result_store: Optional store for named results.
        expansion: Optional semantic expansion service.

    Returns:
        Configured GraphSearchService instance.
    """
    evaluator = ConditionEvaluator(
        backend,
        and_strategy=AndStrategy(config.search.and_strategy),
        driving=create_driving_strategy(config.search.driving_strategy),
    )
    return GraphSearchService(
        backend=backend,
        evaluator=evaluator,
        result_store=result_store,
        expansion=expansion,
        settings=SearchSettings(
            limit=config.search.limit,
            order_by=OrderBy(config.search.order_by),
            expand_all=config.search.expand_all,
        ),
        combine_options=create_combine_options(config),
        extraction=create_extraction_settings(config),
    )


def create_combine_options(config: AppConfig) -> CombineOptions:
    combine = config.combine
    return CombineOptions(
        deduplicate_within=combine.deduplicate_within,
        deduplicate_across=combine.deduplicate_across,
        preserve_order=combine.preserve_order,
        order_by=CombineOrder(combine.order_by),
        min_appearances=combine.min_appearances,
        max_appearances=combine.max_appearances,
        include_source_info=combine.include_source_info,
        limit=combine.limit,
    )


def create_extraction_settings(config: AppConfig) -> ExtractionSettings:
    hierarchy = config.hierarchy
    return ExtractionSettings(
        hierarchy=HierarchyOptions(
            max_depth=hierarchy.max_depth,
            include_parents=hierarchy.include_parents,
            include_children=hierarchy.include_children,
            parent_depth=hierarchy.parent_depth,
            truncate_length=hierarchy.truncate_length,
            max_blocks=hierarchy.max_blocks,
        ),
        render=RenderOptions(
            indent_size=hierarchy.indent_size,
            bullet_style=BulletStyle(hierarchy.bullet_style),
            link_format=LinkFormat(hierarchy.link_format),
            truncate_length=hierarchy.truncate_length,
            include_block_ids=hierarchy.include_block_ids,
            include_page_context=hierarchy.include_page_context,
        ),
        resolve_references=hierarchy.resolve_references,
        max_reference_depth=hierarchy.max_reference_depth,
        exclude_empty=config.search.exclude_empty,
        separate_pages=hierarchy.separate_pages,
    )


__all__ = [
    "CombineOptions",
    "CombineOrder",
    "ExtractionSettings",
    "GraphSearchService",
    "SearchSettings",
    "SetOperation",
    "combine_result_sets",
    "create_combine_options",
    "create_extraction_settings",
    "create_search_service",
    "run_tool",
]
