"""Output renderers for command results.

Exports the OutputWriter protocol and a factory building writers from the
configured output formats.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from GraphSearch.renderers.base import MultiOutputWriter, OutputWriter
from GraphSearch.renderers.console import ConsoleOutputWriter, render_text
from GraphSearch.renderers.json import JsonFileWriter, render_json

if TYPE_CHECKING:
    from GraphSearch.config import AppConfig


def create_output_writer(config: AppConfig) -> OutputWriter:
    """Create the output writer for the configured formats.

    Raises:
        ValueError: If no output format is configured.
    """
    writers: list[OutputWriter] = []
    if "console" in config.output.formats:
        writers.append(ConsoleOutputWriter())
    if "json" in config.output.formats:
        writers.append(JsonFileWriter(config.output.base_dir))

    if not writers:
        raise ValueError("No output writers configured")
    return MultiOutputWriter(writers)


__all__ = [
    "OutputWriter",
    "ConsoleOutputWriter",
    "JsonFileWriter",
    "MultiOutputWriter",
    "render_json",
    "render_text",
    "create_output_writer",
]
