"""codeagent database layer."""

from codeagent.db.connection import Database
from codeagent.db.index import VectorIndex, list_projects
from codeagent.db.migrations import MIGRATIONS, run_migrations
from codeagent.db.models import IndexedChunk, Project
from codeagent.db.schema import initialize
from codeagent.db.vectors import chunk_table_name, project_slug, vec_table_name

__all__ = [
    "Database",
    "VectorIndex",
    "list_projects",
    "initialize",
    "run_migrations",
    "MIGRATIONS",
    "IndexedChunk",
    "Project",
    "chunk_table_name",
    "project_slug",
    "vec_table_name",
]
