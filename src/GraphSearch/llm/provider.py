"""Term expansion provider protocol."""

from __future__ import annotations

from typing import Protocol, Sequence

from GraphSearch.core.conditions import ExpansionMode, TermKind


class TermExpansionProvider(Protocol):
    """Protocol for semantic term expansion backends.

    Implementations turn one search term into alternative terms that should
    match the same intent (inflections, typos, synonyms, related concepts).
    """

    name: str

    def expand_term(
        self,
        term: str,
        mode: ExpansionMode,
        *,
        kind: TermKind = TermKind.TEXT,
        max_variants: int = 5,
        exclude: Sequence[str] = (),
    ) -> list[str]:
        """Generate variants for a search term.

        Args:
            term: Term text or page title, without expansion marker.
            mode: Expansion strategy. ``ALL`` is resolved by the service into
                a chain of concrete strategies before reaching the provider.
            kind: ``TEXT`` for content terms, ``PAGE_REF`` for page titles.
            max_variants: Upper bound on returned variants.
            exclude: Variants already produced by earlier strategies.

        Returns:
            Variant strings, not including the original term.

        Raises:
            Exception: If generation fails (caller should handle gracefully).
        """
        raise NotImplementedError
