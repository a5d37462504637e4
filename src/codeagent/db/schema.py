"""Database initialization and per-project chunk table DDL."""

from __future__ import annotations

import sqlite3

# rowid is the join key with the project's vec table.
CHUNK_TABLE_DDL = """
CREATE TABLE IF NOT EXISTS "{table}" (
    id      TEXT NOT NULL,
    file    TEXT NOT NULL,
    mtime   INTEGER NOT NULL,
    text    TEXT NOT NULL
)
"""

CHUNK_FILE_INDEX_DDL = 'CREATE INDEX IF NOT EXISTS "{table}_file" ON "{table}"(file, mtime)'


def initialize(conn: sqlite3.Connection) -> None:
    """Initialize the shared schema via the migration runner (idempotent)."""
    from codeagent.db.migrations import run_migrations

    run_migrations(conn)
