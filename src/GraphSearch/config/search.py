"""Search configuration: condition evaluation and ranking."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from GraphSearch.config.common import (
    check_positive,
    expect_bool,
    expect_choice,
    expect_int,
    get_optional_value,
    get_required_value,
    get_section,
)
from GraphSearch.query.evaluator import DRIVING_STRATEGIES, AndStrategy, OrderBy


@dataclass(frozen=True, slots=True)
class SearchConfig:
    """Store validated search behavior.

    Attributes:
        limit: Maximum records returned per search.
        and_strategy: ``hybrid`` (driving clause plus in-memory filter) or ``backend``.
        driving_strategy: Name of the driving-clause selection strategy.
        order_by: ``first_seen``, ``relevance`` or ``page``.
        expand_all: Apply semantic expansion to every text and page condition.
        exclude_empty: Skip blocks with blank content when extracting hierarchies.
    """

    limit: int
    and_strategy: str
    driving_strategy: str
    order_by: str
    expand_all: bool
    exclude_empty: bool


def load_search(raw: Mapping[str, Any]) -> SearchConfig:
    """Load the ``search`` section.

    Raises:
        TypeError: If config types are invalid.
        ValueError: If required keys are missing or a choice is unknown.
    """
    section = get_section(raw, "search", required=True)
    return SearchConfig(
        limit=expect_int(get_required_value(section, "limit", "search.limit"), "search.limit"),
        and_strategy=expect_choice(
            get_required_value(section, "and_strategy", "search.and_strategy"),
            [item.value for item in AndStrategy],
            "search.and_strategy",
        ),
        driving_strategy=expect_choice(
            get_required_value(section, "driving_strategy", "search.driving_strategy"),
            DRIVING_STRATEGIES,
            "search.driving_strategy",
        ),
        order_by=expect_choice(
            get_optional_value(section, "order_by", OrderBy.FIRST_SEEN.value),
            [item.value for item in OrderBy],
            "search.order_by",
        ),
        expand_all=expect_bool(get_optional_value(section, "expand_all", False), "search.expand_all"),
        exclude_empty=expect_bool(get_optional_value(section, "exclude_empty", True), "search.exclude_empty"),
    )


def check_search(config: SearchConfig) -> None:
    check_positive(config.limit, "search.limit")
