"""Combination configuration: defaults for result-set algebra."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from GraphSearch.config.common import (
    check_range,
    expect_bool,
    expect_choice,
    expect_int,
    expect_optional_int,
    get_optional_value,
    get_required_value,
    get_section,
)
from GraphSearch.services.combine import MAX_COMBINE_LIMIT, CombineOrder


@dataclass(frozen=True, slots=True)
class CombineConfig:
    deduplicate_within: bool
    deduplicate_across: bool
    preserve_order: bool
    order_by: str
    min_appearances: int
    max_appearances: int | None
    include_source_info: bool
    limit: int


def load_combine(raw: Mapping[str, Any]) -> CombineConfig:
    """Load the ``combine`` section.

    Raises:
        TypeError: If config types are invalid.
        ValueError: If required keys are missing or ``order_by`` is unknown.
    """
    section = get_section(raw, "combine", required=True)
    return CombineConfig(
        deduplicate_within=expect_bool(
            get_required_value(section, "deduplicate_within", "combine.deduplicate_within"),
            "combine.deduplicate_within",
        ),
        deduplicate_across=expect_bool(
            get_required_value(section, "deduplicate_across", "combine.deduplicate_across"),
            "combine.deduplicate_across",
        ),
        preserve_order=expect_bool(
            get_optional_value(section, "preserve_order", False),
            "combine.preserve_order",
        ),
        order_by=expect_choice(
            get_required_value(section, "order_by", "combine.order_by"),
            [item.value for item in CombineOrder],
            "combine.order_by",
        ),
        min_appearances=expect_int(
            get_optional_value(section, "min_appearances", 1),
            "combine.min_appearances",
        ),
        max_appearances=expect_optional_int(
            get_optional_value(section, "max_appearances", None),
            "combine.max_appearances",
        ),
        include_source_info=expect_bool(
            get_optional_value(section, "include_source_info", False),
            "combine.include_source_info",
        ),
        limit=expect_int(get_required_value(section, "limit", "combine.limit"), "combine.limit"),
    )


def check_combine(config: CombineConfig) -> None:
    """Validate combination constraints.

    Raises:
        ValueError: If limit or appearance bounds are out of range.
    """
    check_range(config.limit, 1, MAX_COMBINE_LIMIT, "combine.limit")
    if config.min_appearances < 1:
        raise ValueError("combine.min_appearances must be >= 1")
    if config.max_appearances is not None and config.max_appearances < config.min_appearances:
        raise ValueError("combine.max_appearances must be >= combine.min_appearances")
