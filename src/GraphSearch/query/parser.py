"""Parser for the compact query-string syntax.

Examples of accepted input::

    Machine Learning
    ref:AI + regex:/neural.*/i
    (x|y)+z
    "Project X" => (status | TODO)

``|`` binds looser than ``+`` and both are split only at the current nesting
level. Hierarchical operators are searched before boolean ones, longest token
first. Input the parser cannot make sense of becomes a literal text term.
"""

from __future__ import annotations

import re
from typing import Callable, Sequence

from GraphSearch.core.conditions import (
    Combinator,
    ConditionGroup,
    MatchMode,
    SearchCondition,
    TermKind,
    split_expansion_marker,
)
from GraphSearch.core.events import ProgressCallback, ProgressEvent, emit
from GraphSearch.core.expression import OPERATOR_PRIORITY, Compound, Expression, Hierarchical, Term
from GraphSearch.utils.log import log

_MAX_QUOTE_LAYERS = 10
_MAX_NESTING = 64
_REGEX_LITERAL_RE = re.compile(r"^/(.+)/([gimsuy]*)$", re.DOTALL)
_BLOCK_REF_RE = re.compile(r"^\(\(([A-Za-z0-9_-]+)\)\)$")
_PAGE_LINK_RE = re.compile(r"^\[\[([^\[\]]+)\]\]$")

_REGEX_PREFIX = "regex:"
_LITERAL_FLAGS = "gimsuy"
# A closing '/' must be followed (after its flags) by one of these or whitespace.
_LITERAL_TERMINATORS = "+|)<>="
_LITERAL_LEADERS = "+|(<>=-\""

_OPENERS = {"(": ")", "[": "]"}
_CLOSERS = {")": "(", "]": "["}


class _Degraded(Exception):
    """Internal signal: the current input is malformed."""


def parse_expression(text: str, *, on_progress: ProgressCallback | None = None) -> Expression:
    """Parse a query string into an expression tree.

    Never raises for malformed syntax: such input degrades to a ``Term`` holding
    the trimmed input as literal text, and a ``parse``/``degraded`` progress
    event is emitted.

    Args:
        text: Raw query string.
        on_progress: Optional callback receiving progress events.

    Returns:
        Parsed expression.
    """
    trimmed = text.strip()
    try:
        return _parse_node(trimmed, 0)
    except _Degraded as reason:
        log.debug("Query degraded to literal text: query=%r reason=%s", trimmed, reason)
        emit(
            on_progress,
            ProgressEvent(
                stage="parse",
                kind="degraded",
                message=f"Query treated as literal text: {reason}",
                data={"query": trimmed},
            ),
        )
        return Term(text=trimmed, search_type=TermKind.TEXT)


def parse_simple_compound(expression: str) -> ConditionGroup | None:
    """Fast path for flat parenthesized groups like ``(A + B + -C)`` or ``(A | B)``.

    A leading ``-`` on a term negates it. Mixing ``+`` and ``|`` in the same
    group is not simple: the caller should fall back to ``parse_expression``.

    Returns:
        A condition group, or None if the expression is not a simple compound.
    """
    trimmed = expression.strip()
    if not (trimmed.startswith("(") and trimmed.endswith(")")):
        return None
    inner = trimmed[1:-1].strip()
    and_parts = _split_top_level(inner, "+")
    or_parts = _split_top_level(inner, "|")
    if len(and_parts) > 1 and len(or_parts) > 1:
        return None

    if len(or_parts) > 1:
        combinator, parts = Combinator.OR, or_parts
    elif len(and_parts) > 1:
        combinator, parts = Combinator.AND, and_parts
    else:
        condition = parse_simple_condition(inner)
        return None if condition is None else ConditionGroup(conditions=(condition,))

    conditions: list[SearchCondition] = []
    for raw in parts:
        term = raw.strip()
        negate = term.startswith("-")
        if negate:
            term = term[1:].strip()
        condition = parse_simple_condition(term)
        if condition is None:
            return None
        conditions.append(condition.negated() if negate else condition)
    return ConditionGroup(conditions=tuple(conditions), combinator=combinator)


def parse_simple_condition(text: str) -> SearchCondition | None:
    """Parse one term such as ``Machine Learning``, ``ref:AI`` or ``regex:/x/i``.

    Returns None when the text is empty or still contains grouping syntax.
    """
    clean = strip_quotes(text.strip())
    if not clean:
        return None
    opaque = _opaque_term(clean)
    if opaque is not None:
        return term_to_condition(opaque)
    if any(ch in clean for ch in "()"):
        return None
    try:
        term = _parse_term(clean)
    except _Degraded:
        return None
    if not isinstance(term, Term):
        return None
    return term_to_condition(term)


def term_to_condition(term: Term) -> SearchCondition:
    """Convert a parsed term into a search condition.

    Text terms keep a trailing expansion marker (``*`` fuzzy, ``~`` synonyms)
    as the condition's requested expansion.
    """
    if term.search_type is TermKind.REGEX:
        return SearchCondition(
            text=term.text,
            type=TermKind.REGEX,
            match_mode=MatchMode.REGEX,
            negate=term.negate,
            regex_flags=term.regex_flags,
        )
    if term.search_type in (TermKind.TEXT, TermKind.PAGE_REF):
        text, expansion = split_expansion_marker(term.text)
        return SearchCondition(
            text=text,
            type=term.search_type,
            match_mode=MatchMode.CONTAINS if term.search_type is TermKind.TEXT else MatchMode.EXACT,
            negate=term.negate,
            expansion=expansion,
        )
    return SearchCondition(text=term.text, type=term.search_type, match_mode=MatchMode.EXACT, negate=term.negate)


def strip_quotes(text: str) -> str:
    """Remove wrapping quotes repeatedly (``""AI""`` -> ``AI``)."""
    clean = text
    for _ in range(_MAX_QUOTE_LAYERS):
        if len(clean) >= 2 and clean[0] == clean[-1] and clean[0] in "\"'":
            clean = clean[1:-1].strip()
            continue
        break
    return clean


def _parse_node(text: str, nesting: int) -> Expression:
    if nesting > _MAX_NESTING:
        raise _Degraded("nesting too deep")
    clean = strip_quotes(text.strip())
    if not clean:
        raise _Degraded("empty operand")

    opaque = _opaque_term(clean)
    if opaque is not None:
        return opaque
    if not _is_balanced(clean):
        raise _Degraded("unbalanced brackets or quotes")

    hierarchical = _split_hierarchical(clean, nesting)
    if hierarchical is not None:
        return hierarchical

    if _wraps_whole(clean):
        return _parse_node(clean[1:-1], nesting + 1)

    for separator, combinator in (("|", Combinator.OR), ("+", Combinator.AND)):
        parts = _split_top_level(clean, separator)
        if len(parts) > 1:
            if any(not part.strip() for part in parts):
                raise _Degraded(f"empty operand around '{separator}'")
            return Compound(
                operator=combinator,
                operands=tuple(_parse_node(part, nesting + 1) for part in parts),
            )

    negate = False
    if clean.startswith("-") and len(clean) > 1 and not clean[1].isspace():
        negate = True
        clean = strip_quotes(clean[1:])
    expr = _parse_term(clean)
    if negate and isinstance(expr, Term):
        return Term(text=expr.text, search_type=expr.search_type, regex_flags=expr.regex_flags, negate=True)
    return expr


def _opaque_term(text: str) -> Term | None:
    """Match terms whose body may contain operator characters.

    A whole-operand ``regex:/.../flags`` literal or ``((uid))`` block reference,
    optionally negated with a leading ``-``.
    """
    negate = text.startswith("-")
    body = text[1:].strip() if negate else text
    block_ref = _BLOCK_REF_RE.match(body)
    if block_ref:
        return Term(text=block_ref.group(1), search_type=TermKind.BLOCK_REF, negate=negate)
    if body.startswith(_REGEX_PREFIX) and _regex_literal_end(body, 0) == len(body):
        literal = _REGEX_LITERAL_RE.match(body[len(_REGEX_PREFIX):].strip())
        if literal:
            return Term(
                text=literal.group(1),
                search_type=TermKind.REGEX,
                regex_flags=literal.group(2),
                negate=negate,
            )
    return None


def _split_hierarchical(text: str, nesting: int) -> Hierarchical | None:
    for operator in OPERATOR_PRIORITY:
        start = 0
        while True:
            idx = _find_top_level(text, operator.value, start)
            if idx < 0:
                break
            left = text[:idx].strip()
            right = text[idx + len(operator.value):].strip()
            if left and right:
                return Hierarchical(
                    operator=operator,
                    left=_parse_node(left, nesting + 1),
                    right=_parse_node(right, nesting + 1),
                    max_depth=operator.default_depth,
                )
            start = idx + len(operator.value)
    return None


def _term_page_ref(rest: str) -> Expression:
    return Term(text=rest.strip(), search_type=TermKind.PAGE_REF)


def _term_regex(rest: str) -> Expression:
    pattern = rest.strip()
    literal = _REGEX_LITERAL_RE.match(pattern)
    if literal:
        return Term(text=literal.group(1), search_type=TermKind.REGEX, regex_flags=literal.group(2))
    return Term(text=pattern, search_type=TermKind.REGEX)


def _term_text(rest: str) -> Expression:
    content = rest.strip()
    if content.startswith("(") and content.endswith(")"):
        inner = content[1:-1].strip()
        for separator, combinator in (("|", Combinator.OR), ("+", Combinator.AND)):
            parts = [part.strip() for part in inner.split(separator) if part.strip()]
            if len(parts) > 1:
                return Compound(
                    operator=combinator,
                    operands=tuple(Term(text=part, search_type=TermKind.TEXT) for part in parts),
                )
    return Term(text=content, search_type=TermKind.TEXT)


# Tried in order; the first matching prefix wins. New prefixes go here.
PREFIX_MATCHERS: Sequence[tuple[str, Callable[[str], Expression]]] = (
    ("ref:", _term_page_ref),
    ("regex:", _term_regex),
    ("text:", _term_text),
)


def _parse_term(text: str) -> Expression:
    for prefix, handler in PREFIX_MATCHERS:
        if text.startswith(prefix):
            rest = text[len(prefix):]
            if not rest.strip():
                raise _Degraded(f"missing value after '{prefix}'")
            return handler(rest)
    link = _PAGE_LINK_RE.match(text)
    if link:
        return Term(text=link.group(1).strip(), search_type=TermKind.PAGE_REF)
    block_ref = _BLOCK_REF_RE.match(text)
    if block_ref:
        return Term(text=block_ref.group(1), search_type=TermKind.BLOCK_REF)
    return Term(text=text, search_type=TermKind.TEXT)


def _regex_literal_end(text: str, start: int) -> int:
    """Index just past the flags of a ``regex:/.../flags`` literal at ``start``, or -1.

    The literal closes at the first ``/`` whose flags are followed by the end
    of input, whitespace or an operator character.
    """
    if not text.startswith(_REGEX_PREFIX, start):
        return -1
    if start > 0 and not (text[start - 1].isspace() or text[start - 1] in _LITERAL_LEADERS):
        return -1
    slash = start + len(_REGEX_PREFIX)
    while slash < len(text) and text[slash].isspace():
        slash += 1
    if slash >= len(text) or text[slash] != "/":
        return -1
    idx = text.find("/", slash + 2)
    while idx >= 0:
        end = idx + 1
        while end < len(text) and text[end] in _LITERAL_FLAGS:
            end += 1
        if end == len(text) or text[end].isspace() or text[end] in _LITERAL_TERMINATORS:
            return end
        idx = text.find("/", idx + 1)
    return -1


def _scan(text: str) -> list[int]:
    """Return the nesting depth before each character.

    Characters inside double quotes or a regex literal get -1.
    """
    return _scan_full(text)[0]


def _scan_full(text: str) -> tuple[list[int], list[bool], bool]:
    """Depths, per-character opacity and whether a quote is left open."""
    depths: list[int] = []
    opaque: list[bool] = []
    depth = 0
    in_quote = False
    opaque_until = 0
    for idx, ch in enumerate(text):
        if idx >= opaque_until and not in_quote and ch == "r":
            end = _regex_literal_end(text, idx)
            if end > 0:
                opaque_until = end
        if idx < opaque_until or in_quote or ch == '"':
            if ch == '"' and idx >= opaque_until:
                in_quote = not in_quote
            depths.append(-1)
            opaque.append(True)
            continue
        opaque.append(False)
        if ch in _OPENERS:
            depths.append(depth)
            depth += 1
        elif ch in _CLOSERS:
            depth -= 1
            depths.append(depth)
        else:
            depths.append(depth)
    return depths, opaque, in_quote


def _find_top_level(text: str, token: str, start: int = 0) -> int:
    depths = _scan(text)
    idx = text.find(token, start)
    while idx >= 0:
        if depths[idx] == 0:
            return idx
        idx = text.find(token, idx + 1)
    return -1


def _split_top_level(text: str, separator: str) -> list[str]:
    depths = _scan(text)
    parts: list[str] = []
    last = 0
    for idx, ch in enumerate(text):
        if ch == separator and depths[idx] == 0:
            parts.append(text[last:idx])
            last = idx + 1
    parts.append(text[last:])
    return parts


def _is_balanced(text: str) -> bool:
    stack: list[str] = []
    _, opaque, in_quote = _scan_full(text)
    for ch, hidden in zip(text, opaque):
        if hidden:
            continue
        elif ch in _OPENERS:
            stack.append(ch)
        elif ch in _CLOSERS:
            if not stack or stack[-1] != _CLOSERS[ch]:
                return False
            stack.pop()
    return not stack and not in_quote


def _wraps_whole(text: str) -> bool:
    """True when the first '(' closes at the last character."""
    if not (text.startswith("(") and text.endswith(")")):
        return False
    for idx, (ch, depth) in enumerate(zip(text, _scan(text))):
        if idx > 0 and ch == ")" and depth == 0:
            return idx == len(text) - 1
    return False
