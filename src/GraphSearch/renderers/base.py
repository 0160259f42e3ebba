"""Base classes for output writers.

Commands hand every ``ToolResult`` to a writer, so the command logic never
decides how results are displayed or stored.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Sequence

from GraphSearch.core.models import ToolResult


class OutputWriter(ABC):
    """Abstract base class for command output writers."""

    @abstractmethod
    def write_result(self, result: ToolResult) -> None:
        """Write one tool result."""

    @abstractmethod
    def finalize(self, action: str) -> None:
        """Finalize output (e.g. write accumulated results to a file).

        Args:
            action: The CLI command name (e.g. 'search').
        """


@dataclass(slots=True)
class MultiOutputWriter(OutputWriter):
    """Delegate output to multiple writers."""

    writers: Sequence[OutputWriter]

    def write_result(self, result: ToolResult) -> None:
        for writer in self.writers:
            writer.write_result(result)

    def finalize(self, action: str) -> None:
        for writer in self.writers:
            writer.finalize(action)
