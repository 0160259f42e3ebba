"""SQLite database utilities."""

from __future__ import annotations

import sqlite3
from pathlib import Path

from GraphSearch.query import matching


class DatabaseManager:
    """Database connection manager for one graph database.

    Each instance owns its connection, so independent callers never share
    state through the manager. Supports the context manager protocol for
    automatic connection cleanup.
    """

    def __init__(self, db_path: Path):
        """Open (and create if needed) the graph database.

        Args:
            db_path: Absolute path or project-relative path to database file,
                or ``:memory:`` for a throwaway database.
        """
        self.db_path = db_path
        self.conn = ensure_db(db_path)
        register_functions(self.conn)
        init_schema(self.conn)

    def get_connection(self) -> sqlite3.Connection:
        return self.conn

    def close(self) -> None:
        """Close the database connection."""
        if getattr(self, "conn", None) is not None:
            self.conn.close()
            self.conn = None

    def __enter__(self) -> DatabaseManager:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


def ensure_db(db_path: Path) -> sqlite3.Connection:
    """Ensure database file exists and return connection.

    Args:
        db_path: Absolute path or project-relative path to database file.

    Returns:
        SQLite connection.

    Raises:
        OSError: If directory creation fails.
        sqlite3.Error: If database connection fails.
    """
    if str(db_path) != ":memory:":
        db_path.parent.mkdir(parents=True, exist_ok=True)
    return sqlite3.connect(str(db_path))


def register_functions(conn: sqlite3.Connection) -> None:
    """Expose the in-memory matching primitives as SQL functions.

    Queries built by the graph backend call these, so SQL filtering and
    in-memory filtering give identical answers.
    """
    conn.create_function("gs_fold", 1, matching.fold, deterministic=True)
    conn.create_function("gs_contains", 2, matching.text_contains, deterministic=True)
    conn.create_function("gs_regexp", 3, matching.regex_search, deterministic=True)


def init_schema(conn: sqlite3.Connection) -> None:
    """Initialize the graph schema.

    ``seq`` is the pre-order position assigned at load time and defines the
    natural result order of every query.

    Args:
        conn: SQLite connection.
    """
    conn.executescript("""
        CREATE TABLE IF NOT EXISTS pages (
          uid TEXT PRIMARY KEY,
          title TEXT NOT NULL UNIQUE,
          seq INTEGER NOT NULL
        );

        CREATE TABLE IF NOT EXISTS blocks (
          uid TEXT PRIMARY KEY,
          string TEXT NOT NULL DEFAULT '',
          page_uid TEXT NOT NULL,
          parent_uid TEXT,
          sort_order INTEGER NOT NULL,
          seq INTEGER NOT NULL,
          FOREIGN KEY (page_uid) REFERENCES pages(uid) ON DELETE CASCADE
        );

        CREATE TABLE IF NOT EXISTS refs (
          block_uid TEXT NOT NULL,
          kind TEXT NOT NULL CHECK (kind IN ('page', 'block')),
          target TEXT NOT NULL,
          position INTEGER NOT NULL,
          FOREIGN KEY (block_uid) REFERENCES blocks(uid) ON DELETE CASCADE,
          UNIQUE(block_uid, kind, target)
        );

        CREATE INDEX IF NOT EXISTS idx_blocks_page ON blocks(page_uid);
        CREATE INDEX IF NOT EXISTS idx_blocks_parent ON blocks(parent_uid, sort_order);
        CREATE INDEX IF NOT EXISTS idx_blocks_seq ON blocks(seq);
        CREATE INDEX IF NOT EXISTS idx_refs_target ON refs(kind, target);
    """)
    conn.commit()
