"""String matching primitives shared by in-memory filtering and the SQLite backend.

The SQLite backend registers these functions on its connection, so a clause
evaluated inside a query and the same clause evaluated in memory always agree.
"""

from __future__ import annotations

import re

from GraphSearch.core.errors import ValidationError
from GraphSearch.core.models import NodeKind, ReferenceInfo

_PAGE_LINK_RE = re.compile(r"\[\[([^\[\]]+)\]\]")
_TAG_RE = re.compile(r"(?<![\w#\[])#([\w][\w\-/.]*[\w]|[\w])")
_ATTRIBUTE_RE = re.compile(r"^\s*([^\s:\[\]#][^:\n\[\]]*?)::", re.MULTILINE)
_BLOCK_REF_RE = re.compile(r"\(\(([A-Za-z0-9_-]+)\)\)")

# JavaScript flag letters; g, u and y have no Python counterpart and are ignored.
_FLAG_MAP = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
}
_IGNORED_FLAGS = frozenset("guy")


def extract_references(content: str) -> list[ReferenceInfo]:
    """Extract page and block references from block text.

    Recognized forms: ``[[Title]]``, ``#[[Title]]``, ``#Tag``, ``Attribute::``
    at the start of a line, and ``((uid))``. Results keep first-seen order and
    are deduplicated.
    """
    found: list[tuple[int, ReferenceInfo]] = []
    for match in _PAGE_LINK_RE.finditer(content):
        found.append((match.start(), ReferenceInfo(NodeKind.PAGE, match.group(1).strip())))
    for match in _TAG_RE.finditer(content):
        found.append((match.start(), ReferenceInfo(NodeKind.PAGE, match.group(1))))
    for match in _ATTRIBUTE_RE.finditer(content):
        found.append((match.start(1), ReferenceInfo(NodeKind.PAGE, match.group(1).strip())))
    for match in _BLOCK_REF_RE.finditer(content):
        found.append((match.start(), ReferenceInfo(NodeKind.BLOCK, match.group(1))))

    seen: set[ReferenceInfo] = set()
    ordered: list[ReferenceInfo] = []
    for _, ref in sorted(found, key=lambda item: item[0]):
        if not ref.target or ref in seen:
            continue
        seen.add(ref)
        ordered.append(ref)
    return ordered


def fold(text: str | None) -> str:
    """Case-fold text for case-insensitive comparisons."""
    return (text or "").casefold()


def text_contains(haystack: str | None, needle: str) -> bool:
    return fold(needle) in fold(haystack)


def compile_regex(pattern: str, flags: str = "") -> re.Pattern[str]:
    """Compile a user pattern with JavaScript-style flag letters.

    Without flags the pattern is case-insensitive.

    Raises:
        ValidationError: If the pattern or a flag is invalid.
    """
    py_flags = 0
    if not flags:
        py_flags = re.IGNORECASE
    for letter in flags:
        if letter in _FLAG_MAP:
            py_flags |= _FLAG_MAP[letter]
        elif letter not in _IGNORED_FLAGS:
            raise ValidationError(f"Unsupported regex flag '{letter}' in /{pattern}/{flags}")
    try:
        return re.compile(pattern, py_flags)
    except re.error as error:
        raise ValidationError(f"Invalid regex pattern /{pattern}/: {error}") from error


def regex_search(pattern: str, flags: str, text: str | None) -> bool:
    return compile_regex(pattern, flags).search(text or "") is not None


def references_page(content: str | None, titles: tuple[str, ...]) -> bool:
    """True if the content links to any of the given page titles."""
    wanted = {fold(title) for title in titles}
    return any(
        ref.kind is NodeKind.PAGE and fold(ref.target) in wanted for ref in extract_references(content or "")
    )


def references_block(content: str | None, uid: str) -> bool:
    return any(ref.kind is NodeKind.BLOCK and ref.target == uid for ref in extract_references(content or ""))

