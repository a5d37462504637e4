"""Domain models for the codeagent database layer."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from codeagent.db.vectors import project_slug


@dataclass(frozen=True)
class Project:
    """One workspace root and its sanitized table identifier."""

    root: Path
    slug: str

    @classmethod
    def from_root(cls, root: Path | str) -> Project:
        resolved = Path(root).expanduser().resolve()
        return cls(root=resolved, slug=project_slug(resolved))


@dataclass
class IndexedChunk:
    id: str
    file: str
    mtime: int
    text: str
    embedding: list[float] | None = field(default=None, repr=False)  # None on rows read back
    rowid: int | None = None  # set after insert


def chunk_id(file: str, ordinal: int) -> str:
    """Stable row id: file path + chunk ordinal."""
    return f"{file}-{ordinal}"


def owning_project(projects: list[Project], path: Path | str) -> Project | None:
    """Return the project whose root is the longest prefix of *path*."""
    target = Path(os.path.abspath(path))
    owners = [p for p in projects if target.is_relative_to(p.root)]
    if not owners:
        return None
    return max(owners, key=lambda p: len(p.root.parts))
