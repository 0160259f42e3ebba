"""Storage configuration: graph database and result store locations."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from GraphSearch.config.common import expect_str, get_required_value, get_section


@dataclass(frozen=True, slots=True)
class StorageConfig:
    """Where the SQLite graph lives and where named results are persisted."""

    db_path: str
    results_dir: str


def load_storage(raw: Mapping[str, Any]) -> StorageConfig:
    section = get_section(raw, "storage", required=True)
    return StorageConfig(
        db_path=expect_str(get_required_value(section, "db_path", "storage.db_path"), "storage.db_path"),
        results_dir=expect_str(
            get_required_value(section, "results_dir", "storage.results_dir"),
            "storage.results_dir",
        ),
    )


def check_storage(config: StorageConfig) -> None:
    """Validate storage constraints.

    Raises:
        ValueError: If a path is empty.
    """
    if not config.db_path.strip():
        raise ValueError("storage.db_path must not be empty")
    if not config.results_dir.strip():
        raise ValueError("storage.results_dir must not be empty")
