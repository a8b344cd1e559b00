"""SQLite database operations for the relay.

This module provides the RelayDB class for persistent storage of:
- Configuration entries
- Identity mappings (LINE group/user to Makkaizou talk_id)
- Activity logs
- Error logs
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Any

# SQL schema for relay tables
SCHEMA_SQL = """
-- Configuration table: key/value settings with a human description
CREATE TABLE IF NOT EXISTS configuration (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL DEFAULT '',
    description TEXT NOT NULL DEFAULT ''
);

-- Mappings table: one talk_id per (group_id, user_id) pair
CREATE TABLE IF NOT EXISTS mappings (
    group_id TEXT NOT NULL,
    user_id TEXT NOT NULL,
    talk_id TEXT NOT NULL,
    created_at TEXT NOT NULL,
    last_used TEXT NOT NULL,
    PRIMARY KEY (group_id, user_id)
);

-- Index for per-user lookups across groups
CREATE INDEX IF NOT EXISTS idx_mappings_user ON mappings(user_id);

-- Logs table: append-only record of relayed messages
CREATE TABLE IF NOT EXISTS logs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    timestamp TEXT NOT NULL,
    group_id TEXT NOT NULL DEFAULT '',
    user_id TEXT NOT NULL DEFAULT '',
    message TEXT NOT NULL DEFAULT '',
    response TEXT NOT NULL DEFAULT '',
    status TEXT NOT NULL,
    processing_time INTEGER
);

-- Error logs table: append-only record of failures
CREATE TABLE IF NOT EXISTS error_logs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    timestamp TEXT NOT NULL,
    error_type TEXT NOT NULL,
    error_message TEXT NOT NULL,
    context_json TEXT NOT NULL DEFAULT '{}',
    stack_trace TEXT NOT NULL DEFAULT ''
);
"""


class RelayDB:
    """SQLite database wrapper for relay persistence.

    Provides:
    - WAL mode for crash recovery
    - Parameterized queries for SQL injection prevention
    - Schema initialization on first use
    - Context manager support for connection lifecycle
    """

    def __init__(self, db_path: str) -> None:
        """Initialize the relay database.

        Args:
            db_path: Path to the SQLite database file, or ":memory:".
        """
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None
        self._initialize()

    @property
    def path(self) -> str:
        return self._db_path

    def _initialize(self) -> None:
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)

        self._conn = sqlite3.connect(self._db_path)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(SCHEMA_SQL)
        self._conn.commit()

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise sqlite3.ProgrammingError("Database connection is closed")
        return self._conn

    def execute(self, sql: str, params: tuple[Any, ...] = ()) -> sqlite3.Cursor:
        """Execute a SQL statement with parameters and commit.

        Args:
            sql: SQL statement with ? placeholders.
            params: Tuple of parameter values.

        Returns:
            The cursor after execution.
        """
        conn = self._connection()
        cursor = conn.execute(sql, params)
        conn.commit()
        return cursor

    def fetch_one(self, sql: str, params: tuple[Any, ...] = ()) -> dict[str, Any] | None:
        """Fetch a single row as a dictionary, or None if no row matched."""
        row = self._connection().execute(sql, params).fetchone()
        if row is None:
            return None
        return dict(row)

    def fetch_all(self, sql: str, params: tuple[Any, ...] = ()) -> list[dict[str, Any]]:
        """Fetch all rows as a list of dictionaries."""
        cursor = self._connection().execute(sql, params)
        return [dict(row) for row in cursor.fetchall()]

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> RelayDB:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        self.close()
