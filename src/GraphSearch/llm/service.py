"""Semantic expansion of search conditions."""

from __future__ import annotations

import re
from dataclasses import dataclass, replace

from GraphSearch.core.conditions import (
    PAGE_REF_OR_SEPARATOR,
    ConditionGroup,
    ConditionQuery,
    ExpansionMode,
    MatchMode,
    SearchCondition,
    TermKind,
)
from GraphSearch.llm.provider import TermExpansionProvider
from GraphSearch.utils.log import log

# ALL runs these strategies in order, each told what earlier ones found.
ALL_STRATEGY_CHAIN: tuple[ExpansionMode, ...] = (
    ExpansionMode.FUZZY,
    ExpansionMode.SYNONYMS,
    ExpansionMode.RELATED_CONCEPTS,
)

_EXPANDABLE = (TermKind.TEXT, TermKind.PAGE_REF)


@dataclass(slots=True)
class ExpansionService:
    """Fold provider variants back into conditions.

    Each expanded condition is replaced by exactly one condition, so the
    combinators of the query keep their meaning:

    - text ``foo`` with variants ``a, b`` becomes regex ``(?:foo|a|b)`` with
      flags ``i`` (literals escaped);
    - page reference ``P`` with variants ``Q`` becomes ``page_ref_or`` ``P|Q``.

    Negation and weight are preserved. A failed expansion keeps the original
    condition.
    """

    provider: TermExpansionProvider
    max_variants: int = 5
    default_mode: ExpansionMode = ExpansionMode.FUZZY

    def expand_query(self, query: ConditionQuery, *, expand_all: bool = False) -> ConditionQuery:
        """Return a query with every requested expansion folded in.

        Args:
            query: Flat or grouped condition query.
            expand_all: Expand every text and page reference condition with
                ``default_mode`` when it carries no explicit expansion.
        """
        if query.groups:
            groups = tuple(
                ConditionGroup(
                    conditions=tuple(self.expand_condition(cond, expand_all=expand_all) for cond in group.conditions),
                    combinator=group.combinator,
                )
                for group in query.groups
            )
            return replace(query, groups=groups)
        conditions = tuple(self.expand_condition(cond, expand_all=expand_all) for cond in query.conditions)
        return replace(query, conditions=conditions)

    def expand_condition(self, condition: SearchCondition, *, expand_all: bool = False) -> SearchCondition:
        mode = condition.expansion or (self.default_mode if expand_all else None)
        if mode is None or condition.type not in _EXPANDABLE or condition.is_regex:
            return condition

        try:
            variants = self.variants(condition.text, mode, kind=condition.type)
        except Exception as error:  # noqa: BLE001 - expansion failure must be isolated
            log.warning("Expansion failed for %r (mode=%s): %s", condition.text, mode.value, error)
            return condition

        if not variants:
            return condition
        log.info("Expanded %r with %d variants (mode=%s)", condition.text, len(variants), mode.value)
        if condition.type is TermKind.PAGE_REF:
            return fold_page_ref(condition, variants)
        return fold_text(condition, variants)

    def variants(self, term: str, mode: ExpansionMode, *, kind: TermKind) -> list[str]:
        """Ask the provider for variants, chaining strategies for ``ALL``."""
        if mode is not ExpansionMode.ALL:
            return self.provider.expand_term(term, mode, kind=kind, max_variants=self.max_variants)

        found: list[str] = []
        for step in ALL_STRATEGY_CHAIN:
            found.extend(
                self.provider.expand_term(term, step, kind=kind, max_variants=self.max_variants, exclude=tuple(found))
            )
        return found


def fold_text(condition: SearchCondition, variants: list[str]) -> SearchCondition:
    """Turn a text condition and its variants into one regex.

    Contains conditions fold case-insensitively. Exact-match conditions are
    anchored to the whole content and stay case-sensitive.
    """
    exact = condition.match_mode is MatchMode.EXACT
    key = (lambda text: text) if exact else str.casefold
    alternatives = [re.escape(condition.text)]
    seen = {key(condition.text)}
    for variant in variants:
        if key(variant) not in seen:
            seen.add(key(variant))
            alternatives.append(re.escape(variant))
    pattern = "(?:" + "|".join(alternatives) + ")"
    if exact:
        pattern = rf"\A{pattern}\Z"
    return SearchCondition(
        text=pattern,
        type=TermKind.REGEX,
        match_mode=MatchMode.REGEX,
        negate=condition.negate,
        weight=condition.weight,
        # "u" is accepted and ignored, so the match stays case-sensitive.
        regex_flags="u" if exact else "i",
    )


def fold_page_ref(condition: SearchCondition, variants: list[str]) -> SearchCondition:
    """Turn a page reference and its title variants into a ``page_ref_or`` condition."""
    if PAGE_REF_OR_SEPARATOR in condition.text:
        return condition
    titles = [condition.text]
    seen = {condition.text.casefold()}
    for variant in variants:
        if PAGE_REF_OR_SEPARATOR in variant or variant.casefold() in seen:
            continue
        seen.add(variant.casefold())
        titles.append(variant)
    if len(titles) == 1:
        return condition
    return SearchCondition(
        text=PAGE_REF_OR_SEPARATOR.join(titles),
        type=TermKind.PAGE_REF_OR,
        match_mode=MatchMode.EXACT,
        negate=condition.negate,
        weight=condition.weight,
    )
