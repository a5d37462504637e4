"""Per-project vector index over a chunk table + sqlite-vec table pair.

Single interface for: table open/create, row insert, filtered delete/query,
and nearest-neighbour search. Rows live in ``chunks_{slug}``; their vectors
live in ``vec_chunks_{slug}`` under the same rowid.

Every ``sqlite3.Error`` is re-raised as ``IndexStoreError``.
"""

from __future__ import annotations

import json
import sqlite3
from collections.abc import Callable, Iterator
from contextlib import contextmanager

from codeagent.db.models import IndexedChunk, Project
from codeagent.db.schema import initialize
from codeagent.db.vectors import (
    chunk_table_name,
    ensure_project_tables,
    get_dimensions,
    tables_exist,
    vec_table_name,
)
from codeagent.errors import IndexStoreError

# Text embedded once to discover the model's vector dimension.
PROBE_TEXT = "dummy text"

# Stay well below SQLite's bound-parameter limit.
_DELETE_BATCH = 500


@contextmanager
def _store_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except sqlite3.Error as exc:
        raise IndexStoreError(f"Vector store {operation} failed: {exc}") from exc


def _where(file: str | None, mtime: int | None, id: str | None) -> tuple[str, list]:
    clauses: list[str] = []
    params: list = []
    for column, value in (("file", file), ("mtime", mtime), ("id", id)):
        if value is not None:
            clauses.append(f"{column} = ?")
            params.append(value)
    return " AND ".join(clauses), params


class VectorIndex:
    """Data access layer for one project's indexed chunks.

    Wraps an open sqlite3.Connection owned by the caller. Use
    :meth:`open_or_create` on the write path and :meth:`open` on read paths
    that must never create tables.
    """

    def __init__(self, conn: sqlite3.Connection, project: Project, dimensions: int) -> None:
        self._conn = conn
        self.project = project
        self.dimensions = dimensions
        self.chunk_table = chunk_table_name(project.slug)
        self.vec_table = vec_table_name(project.slug)

    # ------------------------------------------------------------------
    # Open / create
    # ------------------------------------------------------------------

    @classmethod
    def open(cls, conn: sqlite3.Connection, project: Project) -> VectorIndex:
        """Open the existing table pair of *project*.

        Raises:
            IndexStoreError: If the project has never been indexed.
        """
        with _store_errors("open"):
            initialize(conn)
            dims = get_dimensions(conn, project.slug)
            if dims is None or not tables_exist(conn, project.slug):
                raise IndexStoreError(f"No index table for project '{project.slug}'.")
        return cls(conn, project, dims)

    @classmethod
    def open_or_create(
        cls,
        conn: sqlite3.Connection,
        project: Project,
        embed: Callable[[str], list[float]],
    ) -> VectorIndex:
        """Open the table pair of *project*, creating it on first use.

        On creation, *embed* is called once with :data:`PROBE_TEXT` and the
        length of the returned vector becomes the table's fixed dimension.
        Repeated calls on an existing table make no embedding call.

        Raises:
            EmbeddingServiceError: If the dimension probe fails.
            IndexStoreError: On any store failure.
        """
        with _store_errors("open"):
            initialize(conn)
            dims = get_dimensions(conn, project.slug)
            if dims is not None and tables_exist(conn, project.slug):
                return cls(conn, project, dims)

        if dims is None:
            dims = len(embed(PROBE_TEXT))
        with _store_errors("create"):
            ensure_project_tables(conn, project.slug, str(project.root), dims)
        return cls(conn, project, dims)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def upsert(self, rows: list[IndexedChunk]) -> int:
        """Append *rows* (with embeddings) in one transaction. Returns the row count.

        No uniqueness is enforced: callers delete stale rows first.
        """
        if not rows:
            return 0
        with _store_errors("insert"):
            try:
                self._insert(rows)
                self._conn.commit()
            except Exception:
                self._conn.rollback()
                raise
        return len(rows)

    def delete_where(
        self, *, file: str | None = None, mtime: int | None = None, id: str | None = None
    ) -> int:
        """Delete every row matching all given fields. Returns the number deleted."""
        with _store_errors("delete"):
            try:
                deleted = self._delete(file=file, mtime=mtime, id=id)
                self._conn.commit()
            except Exception:
                self._conn.rollback()
                raise
        return deleted

    def replace_file(self, file: str, rows: list[IndexedChunk]) -> tuple[int, int]:
        """Delete all rows of *file* and insert *rows* in a single transaction.

        Returns ``(deleted, inserted)``.
        """
        with _store_errors("replace"):
            try:
                deleted = self._delete(file=file)
                self._insert(rows)
                self._conn.commit()
            except Exception:
                self._conn.rollback()
                raise
        return deleted, len(rows)

    def _insert(self, rows: list[IndexedChunk]) -> None:
        # Validate everything first so a bad row never leaves a partial batch.
        for row in rows:
            if row.embedding is None or len(row.embedding) != self.dimensions:
                got = None if row.embedding is None else len(row.embedding)
                raise IndexStoreError(
                    f"Row '{row.id}' has embedding length {got}, "
                    f"table '{self.vec_table}' expects {self.dimensions}."
                )
        for row in rows:
            cur = self._conn.execute(
                f'INSERT INTO "{self.chunk_table}" (id, file, mtime, text) VALUES (?, ?, ?, ?)',
                (row.id, row.file, row.mtime, row.text),
            )
            row.rowid = cur.lastrowid
            self._conn.execute(
                f'INSERT INTO "{self.vec_table}"(rowid, embedding) VALUES (?, ?)',
                (row.rowid, _serialize(row.embedding)),
            )

    def _delete(self, *, file: str | None = None, mtime: int | None = None, id: str | None = None) -> int:
        clause, params = _where(file, mtime, id)
        if not clause:
            raise ValueError("delete_where requires at least one of file, mtime, id")
        rowids = [
            r[0]
            for r in self._conn.execute(
                f'SELECT rowid FROM "{self.chunk_table}" WHERE {clause}', params
            ).fetchall()
        ]
        for start in range(0, len(rowids), _DELETE_BATCH):
            batch = rowids[start : start + _DELETE_BATCH]
            placeholders = ",".join("?" * len(batch))
            self._conn.execute(
                f'DELETE FROM "{self.vec_table}" WHERE rowid IN ({placeholders})', batch
            )
            self._conn.execute(
                f'DELETE FROM "{self.chunk_table}" WHERE rowid IN ({placeholders})', batch
            )
        return len(rowids)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def query_where(
        self, *, file: str | None = None, mtime: int | None = None, id: str | None = None
    ) -> list[IndexedChunk]:
        """Exact-match lookup over file/mtime/id. No filter returns every row."""
        clause, params = _where(file, mtime, id)
        sql = f'SELECT rowid, id, file, mtime, text FROM "{self.chunk_table}"'
        if clause:
            sql += f" WHERE {clause}"
        sql += " ORDER BY rowid"
        with _store_errors("query"):
            rows = self._conn.execute(sql, params).fetchall()
        return [_row_to_chunk(r) for r in rows]

    def vector_search(self, embedding: list[float], k: int = 3) -> list[tuple[IndexedChunk, float]]:
        """Nearest-neighbour search. Returns ``(chunk, distance)`` by ascending distance.

        Fewer than *k* stored rows returns all of them.
        """
        if k < 1:
            raise ValueError(f"k must be >= 1, got {k}")
        sql = f"""
            WITH knn AS (
                SELECT rowid, distance FROM "{self.vec_table}"
                WHERE embedding MATCH ? AND k = ?
            )
            SELECT c.rowid, c.id, c.file, c.mtime, c.text, knn.distance
            FROM knn JOIN "{self.chunk_table}" c ON c.rowid = knn.rowid
            ORDER BY knn.distance
        """
        with _store_errors("search"):
            rows = self._conn.execute(sql, (_serialize(embedding), k)).fetchall()
        return [(_row_to_chunk(r), r["distance"]) for r in rows]

    def count(self, file: str | None = None) -> int:
        """Return the number of stored rows, optionally for one file."""
        clause, params = _where(file, None, None)
        sql = f'SELECT COUNT(*) FROM "{self.chunk_table}"'
        if clause:
            sql += f" WHERE {clause}"
        with _store_errors("query"):
            return self._conn.execute(sql, params).fetchone()[0]

    def list_files(self) -> list[tuple[str, int, int]]:
        """Return ``[(file, mtime, chunk_count), ...]`` sorted by file."""
        with _store_errors("query"):
            rows = self._conn.execute(
                f'SELECT file, MAX(mtime) AS mtime, COUNT(*) AS n FROM "{self.chunk_table}" '
                "GROUP BY file ORDER BY file"
            ).fetchall()
        return [(r["file"], r["mtime"], r["n"]) for r in rows]


def list_projects(conn: sqlite3.Connection) -> list[tuple[str, str, int]]:
    """Return ``[(slug, root, dimensions), ...]`` for every indexed project."""
    with _store_errors("query"):
        initialize(conn)
        rows = conn.execute("SELECT slug, root, dimensions FROM projects ORDER BY slug").fetchall()
    return [(r["slug"], r["root"], r["dimensions"]) for r in rows]


def _serialize(vector: list[float]) -> str:
    return json.dumps([float(v) for v in vector])


def _row_to_chunk(row: sqlite3.Row) -> IndexedChunk:
    return IndexedChunk(
        rowid=row["rowid"],
        id=row["id"],
        file=row["file"],
        mtime=row["mtime"],
        text=row["text"],
    )
