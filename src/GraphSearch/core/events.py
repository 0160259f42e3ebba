from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Protocol

from GraphSearch.core.errors import SearchCancelled


@dataclass(frozen=True, slots=True)
class ProgressEvent:
    """Structured progress notification emitted to a caller-supplied callback.

    Attributes:
        stage: Pipeline stage that produced the event (parse, search, combine, hierarchy).
        kind: Event kind inside the stage (e.g. ``degraded``, ``completed``).
        message: Human-readable summary.
        data: Optional structured payload.
    """

    stage: str
    kind: str
    message: str
    data: Mapping[str, Any] = field(default_factory=dict)


ProgressCallback = Callable[[ProgressEvent], None]


class CancellationSignal(Protocol):
    """Anything exposing ``is_set()``, e.g. ``threading.Event``."""

    def is_set(self) -> bool:
        raise NotImplementedError


def emit(callback: ProgressCallback | None, event: ProgressEvent) -> None:
    """Send an event to the callback when one is registered."""
    if callback is not None:
        callback(event)


def check_cancelled(signal: CancellationSignal | None, where: str) -> None:
    """Raise ``SearchCancelled`` if the caller asked to stop.

    Args:
        signal: Optional cancellation signal.
        where: Short description of the step being aborted, used in the message.

    Raises:
        SearchCancelled: If the signal is set.
    """
    if signal is not None and signal.is_set():
        raise SearchCancelled(f"Search cancelled during {where}")
