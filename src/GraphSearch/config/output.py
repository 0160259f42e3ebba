"""Output configuration: where command results are written."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from GraphSearch.config.common import expect_str, get_optional_value, get_required_value, get_section

OUTPUT_FORMATS = frozenset({"console", "json"})


@dataclass(frozen=True, slots=True)
class OutputConfig:
    """Output formats and the base directory for file outputs."""

    base_dir: str
    formats: tuple[str, ...]


def load_output(raw: Mapping[str, Any]) -> OutputConfig:
    """Load the ``output`` section.

    Raises:
        TypeError: If ``output.formats`` is not a list of strings.
        ValueError: If required keys are missing.
    """
    section = get_section(raw, "output", required=True)
    formats_raw = get_required_value(section, "formats", "output.formats")
    if not isinstance(formats_raw, list):
        raise TypeError("output.formats must be a list")
    formats = tuple(
        expect_str(item, f"output.formats[{idx}]").strip().lower() for idx, item in enumerate(formats_raw)
    )
    return OutputConfig(
        base_dir=expect_str(get_optional_value(section, "base_dir", "output"), "output.base_dir"),
        formats=formats,
    )


def check_output(config: OutputConfig) -> None:
    if not config.formats:
        raise ValueError("output.formats must not be empty")
    unknown = sorted(set(config.formats) - OUTPUT_FORMATS)
    if unknown:
        raise ValueError(f"output.formats has unsupported values: {unknown} (allowed: {sorted(OUTPUT_FORMATS)})")
    if "json" in config.formats and not config.base_dir.strip():
        raise ValueError("output.base_dir must not be empty when json output is enabled")
