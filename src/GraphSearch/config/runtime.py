"""Runtime configuration: logging."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from GraphSearch.config.common import (
    expect_bool,
    expect_choice,
    expect_str,
    get_required_value,
    get_section,
)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True, slots=True)
class RuntimeConfig:
    level: str
    to_file: bool
    dir: str


def load_runtime(raw: Mapping[str, Any]) -> RuntimeConfig:
    """Load the ``log`` section.

    Raises:
        TypeError: If config types are invalid.
        ValueError: If required keys are missing or the level is unknown.
    """
    section = get_section(raw, "log", required=True)
    level = expect_choice(
        get_required_value(section, "level", "log.level"),
        [name.lower() for name in LOG_LEVELS],
        "log.level",
    )
    return RuntimeConfig(
        level=level.upper(),
        to_file=expect_bool(get_required_value(section, "to_file", "log.to_file"), "log.to_file"),
        dir=expect_str(get_required_value(section, "dir", "log.dir"), "log.dir"),
    )


def check_runtime(config: RuntimeConfig) -> None:
    if config.to_file and not config.dir.strip():
        raise ValueError("log.dir must not be empty when log.to_file is true")
