"""Structured search conditions and condition groups.

A request carries either a flat list of conditions combined with one
combinator, or a list of condition groups, each with its own combinator, and
an outer combinator across groups. Never both.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Mapping, Sequence

from GraphSearch.core.errors import ValidationError


class TermKind(str, Enum):
    TEXT = "text"
    PAGE_REF = "page_ref"
    BLOCK_REF = "block_ref"
    REGEX = "regex"
    PAGE_REF_OR = "page_ref_or"


class MatchMode(str, Enum):
    EXACT = "exact"
    CONTAINS = "contains"
    REGEX = "regex"


class Combinator(str, Enum):
    AND = "AND"
    OR = "OR"


class ExpansionMode(str, Enum):
    """Semantic expansion strategies understood by the expansion service."""

    FUZZY = "fuzzy"
    SYNONYMS = "synonyms"
    RELATED_CONCEPTS = "related_concepts"
    BROADER_TERMS = "broader_terms"
    ALL = "all"


# Suffix markers a user can append to a term to request expansion.
EXPANSION_SUFFIXES: Mapping[str, ExpansionMode] = {
    "*": ExpansionMode.FUZZY,
    "~": ExpansionMode.SYNONYMS,
}

PAGE_REF_OR_SEPARATOR = "|"


@dataclass(frozen=True, slots=True)
class SearchCondition:
    """A single match condition.

    Attributes:
        text: Term text, page title, block identifier or regex pattern.
            For ``PAGE_REF_OR`` it holds titles separated by ``|``.
        type: What the text refers to.
        match_mode: How text conditions are compared to node content.
        negate: Flip this condition's result before combination.
        weight: Relevance weight used for ranking (>= 0).
        expansion: Requested semantic expansion, if any.
        regex_flags: JavaScript-style flag letters from ``regex:/p/flags``.
    """

    text: str
    type: TermKind = TermKind.TEXT
    match_mode: MatchMode = MatchMode.CONTAINS
    negate: bool = False
    weight: float = 1.0
    expansion: ExpansionMode | None = None
    regex_flags: str = ""

    def __post_init__(self) -> None:
        if not self.text or not self.text.strip():
            raise ValidationError("Search condition text must not be empty")
        if self.weight < 0:
            raise ValidationError(f"Search condition weight must be >= 0: {self.weight}")
        if self.type is TermKind.PAGE_REF_OR and not self.page_titles():
            raise ValidationError(f"page_ref_or condition has no page titles: {self.text!r}")

    @property
    def is_regex(self) -> bool:
        return self.type is TermKind.REGEX or (self.type is TermKind.TEXT and self.match_mode is MatchMode.REGEX)

    def page_titles(self) -> tuple[str, ...]:
        """Return referenced page titles for page reference conditions."""
        if self.type is TermKind.PAGE_REF:
            return (self.text,)
        if self.type is TermKind.PAGE_REF_OR:
            return tuple(t.strip() for t in self.text.split(PAGE_REF_OR_SEPARATOR) if t.strip())
        return ()

    def negated(self) -> SearchCondition:
        return replace(self, negate=not self.negate)


@dataclass(frozen=True, slots=True)
class ConditionGroup:
    """Non-empty list of conditions joined by one combinator."""

    conditions: tuple[SearchCondition, ...]
    combinator: Combinator = Combinator.AND

    def __post_init__(self) -> None:
        if not self.conditions:
            raise ValidationError("A condition group needs at least one condition")


@dataclass(frozen=True, slots=True)
class ConditionQuery:
    """Either a flat condition list or condition groups.

    Use ``as_groups()`` to get a uniform grouped view: a flat list becomes a
    single group carrying the flat combinator.
    """

    conditions: tuple[SearchCondition, ...] = ()
    combinator: Combinator = Combinator.AND
    groups: tuple[ConditionGroup, ...] = ()
    group_combinator: Combinator = Combinator.AND
    extra: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.conditions and self.groups:
            raise ValidationError(
                "Provide either 'conditions' or 'groups', not both: the combination would be ambiguous"
            )
        if not self.conditions and not self.groups:
            raise ValidationError("Must provide either 'conditions' (flat) or 'groups' (grouped) for search")

    def as_groups(self) -> tuple[tuple[ConditionGroup, ...], Combinator]:
        if self.groups:
            return self.groups, self.group_combinator
        return (ConditionGroup(conditions=self.conditions, combinator=self.combinator),), Combinator.AND

    def all_conditions(self) -> tuple[SearchCondition, ...]:
        groups, _ = self.as_groups()
        return tuple(cond for group in groups for cond in group.conditions)


def split_expansion_marker(text: str) -> tuple[str, ExpansionMode | None]:
    """Strip a trailing expansion marker (``*`` or ``~``) from a term.

    Args:
        text: Raw term text.

    Returns:
        Tuple of (clean text, requested expansion or None).
    """
    stripped = text.strip()
    if len(stripped) > 1 and stripped[-1] in EXPANSION_SUFFIXES:
        return stripped[:-1].rstrip(), EXPANSION_SUFFIXES[stripped[-1]]
    return stripped, None


def parse_condition(value: Any, key: str) -> SearchCondition:
    """Parse a condition mapping such as ``{"text": "AI", "type": "page_ref"}``.

    Raises:
        ValidationError: If the mapping shape or values are invalid.
    """
    if not isinstance(value, Mapping):
        raise ValidationError(f"{key} must be an object")
    text = value.get("text")
    if not isinstance(text, str):
        raise ValidationError(f"{key}.text must be a string")

    term_kind = _parse_enum(TermKind, value.get("type", TermKind.TEXT.value), f"{key}.type")
    default_mode = MatchMode.REGEX if term_kind is TermKind.REGEX else MatchMode.CONTAINS
    match_mode = _parse_enum(MatchMode, value.get("match_mode", default_mode.value), f"{key}.match_mode")

    negate = value.get("negate", False)
    if not isinstance(negate, bool):
        raise ValidationError(f"{key}.negate must be a boolean")
    weight = value.get("weight", 1.0)
    if isinstance(weight, bool) or not isinstance(weight, (int, float)):
        raise ValidationError(f"{key}.weight must be a number")

    expansion_raw = value.get("expansion")
    expansion = None if expansion_raw is None else _parse_enum(ExpansionMode, expansion_raw, f"{key}.expansion")

    flags = value.get("regex_flags", "")
    if not isinstance(flags, str):
        raise ValidationError(f"{key}.regex_flags must be a string")

    return SearchCondition(
        text=text.strip(),
        type=term_kind,
        match_mode=match_mode,
        negate=negate,
        weight=float(weight),
        expansion=expansion,
        regex_flags=flags,
    )


def parse_condition_query(value: Any) -> ConditionQuery:
    """Parse a request mapping into a ``ConditionQuery``.

    Accepted keys: ``conditions``, ``combinator``, ``groups`` (each with
    ``conditions`` and ``combinator``) and ``group_combinator``.

    Raises:
        ValidationError: If both or neither of ``conditions``/``groups`` are present,
            or any nested value is invalid.
    """
    if not isinstance(value, Mapping):
        raise ValidationError("Condition request must be an object")

    conditions = tuple(
        parse_condition(item, f"conditions[{idx}]") for idx, item in enumerate(_as_list(value.get("conditions"), "conditions"))
    )
    groups: list[ConditionGroup] = []
    for idx, raw_group in enumerate(_as_list(value.get("groups"), "groups")):
        if not isinstance(raw_group, Mapping):
            raise ValidationError(f"groups[{idx}] must be an object")
        group_conditions = tuple(
            parse_condition(item, f"groups[{idx}].conditions[{cidx}]")
            for cidx, item in enumerate(_as_list(raw_group.get("conditions"), f"groups[{idx}].conditions"))
        )
        groups.append(
            ConditionGroup(
                conditions=group_conditions,
                combinator=_parse_enum(Combinator, raw_group.get("combinator", "AND"), f"groups[{idx}].combinator"),
            )
        )

    return ConditionQuery(
        conditions=conditions,
        combinator=_parse_enum(Combinator, value.get("combinator", "AND"), "combinator"),
        groups=tuple(groups),
        group_combinator=_parse_enum(Combinator, value.get("group_combinator", "AND"), "group_combinator"),
    )


def _as_list(value: Any, key: str) -> Sequence[Any]:
    if value is None:
        return []
    if not isinstance(value, (list, tuple)):
        raise ValidationError(f"{key} must be a list")
    return value


def _parse_enum(enum_cls: type[Enum], value: Any, key: str) -> Any:
    if isinstance(value, enum_cls):
        return value
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be a string")
    normalized = value.strip()
    for member in enum_cls:
        if member.value.lower() == normalized.lower():
            return member
    allowed = sorted(member.value for member in enum_cls)
    raise ValidationError(f"{key} must be one of {allowed}, got: {value}")
