"""Error taxonomy shared by the search engine, combiner and hierarchy builder.

Malformed query strings are not errors: the parser degrades them to literal
text terms and reports a ``parse`` progress event instead.
"""

from __future__ import annotations

from typing import Sequence


class GraphSearchError(Exception):
    """Base class for every error raised by GraphSearch."""


class ValidationError(GraphSearchError, ValueError):
    """Caller contract violation, raised before any partial work is done."""


class TypeMismatchError(ValidationError):
    """Result sets passed to one combination call do not share a kind."""


class LookupMiss(GraphSearchError, LookupError):
    """A referenced node or stored result does not exist.

    Attributes:
        identifier: The identifier that could not be resolved.
        available: Alternative identifiers the caller may use instead.
    """

    def __init__(self, message: str, *, identifier: str, available: Sequence[str] = ()) -> None:
        super().__init__(message)
        self.identifier = identifier
        self.available = tuple(available)


class BackendFailure(GraphSearchError):
    """The graph backend raised while executing a query."""


class SearchCancelled(GraphSearchError):
    """A cooperative cancellation signal was observed during a search."""
