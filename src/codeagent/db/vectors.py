"""Per-project chunk + sqlite-vec table management."""

from __future__ import annotations

import re
import sqlite3
from pathlib import Path

from codeagent.db.schema import CHUNK_FILE_INDEX_DDL, CHUNK_TABLE_DDL

_SLUG_RE = re.compile(r"[A-Za-z0-9_-]+")


def project_slug(root: Path | str) -> str:
    """Derive the project identifier from a workspace root path.

    The basename of the root with every character outside ``[A-Za-z0-9_-]``
    replaced by ``_``. Pure: the same root always yields the same slug.

    Examples:
        "/home/me/my app"     -> "my_app"
        "/work/api.v2"        -> "api_v2"
        "/work/front-end"     -> "front-end"
    """
    name = Path(root).name or "_"
    return re.sub(r"[^a-zA-Z0-9_-]", "_", name)


def chunk_table_name(slug: str) -> str:
    """Return the chunk table name for a project slug."""
    return f"chunks_{slug}"


def vec_table_name(slug: str) -> str:
    """Return the vec table name for a project slug."""
    return f"vec_chunks_{slug}"


def _check_slug(slug: str) -> None:
    if not _SLUG_RE.fullmatch(slug):
        raise ValueError(f"Invalid project slug '{slug}' — use project_slug() to sanitize.")


def get_dimensions(conn: sqlite3.Connection, slug: str) -> int | None:
    """Return the stored vector dimension for *slug*, or None if the project has no tables."""
    row = conn.execute("SELECT dimensions FROM projects WHERE slug = ?", (slug,)).fetchone()
    return row[0] if row else None


def tables_exist(conn: sqlite3.Connection, slug: str) -> bool:
    """Return True if both tables of *slug* exist."""
    names = {chunk_table_name(slug), vec_table_name(slug)}
    rows = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name IN (?, ?)", tuple(names)
    ).fetchall()
    return len(rows) == 2


def ensure_project_tables(
    conn: sqlite3.Connection, slug: str, root: str, dimensions: int
) -> tuple[str, str]:
    """Create the chunk and vec tables for *slug* if they don't already exist.

    The dimension is recorded in ``projects`` the first time; later calls keep
    the stored value.

    Args:
        conn: Active database connection (sqlite-vec must be loaded, schema
            initialised).
        slug: Sanitized project identifier (use project_slug() to generate).
        root: Absolute workspace root, stored for status reporting.
        dimensions: Embedding vector dimensions (e.g. 768 for nomic-embed-text).

    Returns:
        ``(chunk_table, vec_table)``.
    """
    _check_slug(slug)
    if dimensions < 1:
        raise ValueError(f"dimensions must be >= 1, got {dimensions}")

    chunk_table = chunk_table_name(slug)
    vec_table = vec_table_name(slug)

    conn.execute(CHUNK_TABLE_DDL.format(table=chunk_table))
    conn.execute(CHUNK_FILE_INDEX_DDL.format(table=chunk_table))
    conn.execute(
        f'CREATE VIRTUAL TABLE IF NOT EXISTS "{vec_table}" USING vec0(embedding float[{dimensions}])'
    )
    conn.execute(
        "INSERT OR IGNORE INTO projects (slug, root, dimensions) VALUES (?, ?, ?)",
        (slug, root, dimensions),
    )
    conn.commit()
    return chunk_table, vec_table
