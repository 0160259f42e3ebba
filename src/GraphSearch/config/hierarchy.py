"""Hierarchy configuration: tree extraction and rendering."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from GraphSearch.config.common import (
    check_positive,
    check_range,
    expect_bool,
    expect_choice,
    expect_int,
    get_optional_value,
    get_required_value,
    get_section,
)
from GraphSearch.hierarchy.render import BulletStyle, LinkFormat


@dataclass(frozen=True, slots=True)
class HierarchyConfig:
    """Store validated hierarchy extraction settings.

    Attributes:
        max_depth: Levels built below and including each root (1..10).
        max_blocks: Cap on real nodes per tree.
        truncate_length: Rendered content is shortened past this length.
        indent_size: Spaces per level (1..8).
        bullet_style: ``dash``, ``bullet``, ``number`` or ``none``.
        link_format: ``markdown``, ``plain`` or ``source``.
        include_parents: Inject ancestors above each root.
        include_children: Recurse into child blocks.
        parent_depth: Number of ancestors to inject.
        resolve_references: Append snippets of referenced blocks and pages.
        max_reference_depth: Tree levels that get reference snippets (0..3).
        include_block_ids: Append each block id to its rendered line.
        include_page_context: Start each rendering with a page header.
        separate_pages: Extract every root; when false only the first root per page.
    """

    max_depth: int
    max_blocks: int
    truncate_length: int
    indent_size: int
    bullet_style: str
    link_format: str
    include_parents: bool
    include_children: bool
    parent_depth: int
    resolve_references: bool
    max_reference_depth: int
    include_block_ids: bool
    include_page_context: bool
    separate_pages: bool


def load_hierarchy(raw: Mapping[str, Any]) -> HierarchyConfig:
    """Load the ``hierarchy`` section.

    Raises:
        TypeError: If config types are invalid.
        ValueError: If required keys are missing or a choice is unknown.
    """
    section = get_section(raw, "hierarchy", required=True)

    def _int(field: str, default: int | None = None) -> int:
        key = f"hierarchy.{field}"
        value = get_required_value(section, field, key) if default is None else get_optional_value(section, field, default)
        return expect_int(value, key)

    def _bool(field: str, default: bool) -> bool:
        return expect_bool(get_optional_value(section, field, default), f"hierarchy.{field}")

    return HierarchyConfig(
        max_depth=_int("max_depth"),
        max_blocks=_int("max_blocks", 100),
        truncate_length=_int("truncate_length"),
        indent_size=_int("indent_size", 2),
        bullet_style=expect_choice(
            get_optional_value(section, "bullet_style", BulletStyle.DASH.value),
            [item.value for item in BulletStyle],
            "hierarchy.bullet_style",
        ),
        link_format=expect_choice(
            get_optional_value(section, "link_format", LinkFormat.MARKDOWN.value),
            [item.value for item in LinkFormat],
            "hierarchy.link_format",
        ),
        include_parents=_bool("include_parents", False),
        include_children=_bool("include_children", True),
        parent_depth=_int("parent_depth", 1),
        resolve_references=_bool("resolve_references", True),
        max_reference_depth=_int("max_reference_depth", 1),
        include_block_ids=_bool("include_block_ids", False),
        include_page_context=_bool("include_page_context", True),
        separate_pages=_bool("separate_pages", True),
    )


def check_hierarchy(config: HierarchyConfig) -> None:
    check_range(config.max_depth, 1, 10, "hierarchy.max_depth")
    check_range(config.indent_size, 1, 8, "hierarchy.indent_size")
    check_range(config.max_reference_depth, 0, 3, "hierarchy.max_reference_depth")
    check_positive(config.max_blocks, "hierarchy.max_blocks")
    check_positive(config.truncate_length, "hierarchy.truncate_length")
    if config.parent_depth < 0:
        raise ValueError("hierarchy.parent_depth must be >= 0")
