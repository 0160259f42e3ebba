"""Storage layer for GraphSearch.

Provides the SQLite graph database, the backend that queries it, graph
import, and the result store for named search results.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from GraphSearch.storage.backend import GraphBackend
from GraphSearch.storage.db import DatabaseManager
from GraphSearch.storage.graph import SqliteGraphBackend
from GraphSearch.storage.loader import ImportSummary, import_graph, read_graph_file
from GraphSearch.storage.results import JsonResultStore, MemoryResultStore, ResultStore
from GraphSearch.utils.log import log

if TYPE_CHECKING:
    from GraphSearch.config import AppConfig


def create_storage(config: AppConfig) -> tuple[DatabaseManager, SqliteGraphBackend, JsonResultStore]:
    """Create the database manager, graph backend and result store.

    Args:
        config: Application configuration containing storage settings.

    Returns:
        Tuple of (db_manager, backend, result_store).
    """
    db_path = Path(config.storage.db_path)
    db_manager = DatabaseManager(db_path)
    backend = SqliteGraphBackend(db_manager)
    result_store = JsonResultStore(config.storage.results_dir)
    log.info("Graph storage: db=%s results=%s", db_path, config.storage.results_dir)
    return db_manager, backend, result_store


__all__ = [
    "DatabaseManager",
    "GraphBackend",
    "ImportSummary",
    "JsonResultStore",
    "MemoryResultStore",
    "ResultStore",
    "SqliteGraphBackend",
    "create_storage",
    "import_graph",
    "read_graph_file",
]
