"""Indexer — bulk and incremental indexing of workspace source files.

Bulk build (``Indexer.build``):
  for each project root: open/create the table, enumerate eligible files, and
  for each file compare the stored mtime with the current one; unchanged files
  are skipped, changed/new files are chunked, embedded and stored with a
  shared mtime. Only one bulk run may be active per process.

Incremental update (``Indexer.update_file``):
  resolve the owning project by longest root prefix, delete every row of the
  file, re-read, chunk, embed and insert with the new mtime. Delete-then-insert
  is two store operations unless ``atomic_replace`` is set; a concurrent search
  may see the file with zero or partial rows in between.

Per-file failures never stop a run: they are returned as ``FileResult`` with
``status=ERROR`` and aggregated into the run's ``RunReport``.
"""

from __future__ import annotations

import os
import threading
import warnings
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from codeagent.config import CodeAgentConfig
from codeagent.db.connection import Database
from codeagent.db.index import VectorIndex
from codeagent.db.models import Project, owning_project
from codeagent.errors import CodeAgentError, FileAccessError, IndexStoreError
from codeagent.ingest.chunker import TextChunker
from codeagent.ingest.embedder import EmbeddingConfig, Embedder
from codeagent.languages import is_excluded, is_supported, iter_source_files

# Process-wide: a second bulk run is rejected, never queued.
_BULK_LOCK = threading.Lock()


class FileStatus(str, Enum):
    INDEXED = "indexed"
    SKIPPED = "skipped"
    REMOVED = "removed"
    ERROR = "error"


@dataclass
class FileResult:
    path: str
    status: FileStatus
    reason: str = ""
    chunks: int = 0
    deleted: int = 0
    mtime: int | None = None


@dataclass
class ProjectReport:
    project: Project
    files: list[FileResult] = field(default_factory=list)

    def count(self, status: FileStatus) -> int:
        return sum(1 for f in self.files if f.status is status)

    @property
    def errors(self) -> list[FileResult]:
        return [f for f in self.files if f.status is FileStatus.ERROR]

    @property
    def chunks(self) -> int:
        return sum(f.chunks for f in self.files)


@dataclass
class RunReport:
    projects: list[ProjectReport] = field(default_factory=list)
    rejected: bool = False
    error: str | None = None  # fatal failure; per-file errors live in the project reports

    @property
    def ok(self) -> bool:
        return not self.rejected and self.error is None

    @property
    def files(self) -> list[FileResult]:
        return [f for p in self.projects for f in p.files]


ProgressCallback = Callable[[int, int, FileResult], None]


def file_mtime(path: Path) -> int:
    """Modification time in integer milliseconds."""
    try:
        return path.stat().st_mtime_ns // 1_000_000
    except OSError as exc:
        raise FileAccessError(f"Cannot stat '{path}': {exc}") from exc


def read_source(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        raise FileAccessError(f"Cannot read '{path}': {exc}") from exc


class Indexer:
    """Keep each project's vector table in sync with its source files.

    Args:
        db: Database handle; connections are opened per unit of work so the
            watcher thread and a bulk run never share one.
        roots: Workspace roots, one project each.
        embedder: Embedder used for chunks and the dimension probe.
        chunker: Chunker used for file text.
        exclude: Extra exclusion patterns on top of the language defaults.
        atomic_replace: Replace a file's rows in one transaction.
    """

    def __init__(
        self,
        db: Database,
        roots: list[Path],
        embedder: Embedder | None = None,
        chunker: TextChunker | None = None,
        exclude: tuple[str, ...] = (),
        atomic_replace: bool = False,
    ) -> None:
        self._db = db
        self.projects = [Project.from_root(r) for r in roots]
        self._embedder = embedder or Embedder()
        self._chunker = chunker or TextChunker()
        self._exclude = tuple(exclude)
        self._atomic_replace = atomic_replace

    @classmethod
    def from_config(cls, cfg: CodeAgentConfig, roots: list[Path]) -> Indexer:
        return cls(
            Database(cfg.index.db_path),
            roots,
            embedder=Embedder(EmbeddingConfig(model=cfg.embedding.model)),
            chunker=TextChunker(cfg.index.chunk_size, cfg.index.overlap),
            exclude=tuple(cfg.index.exclude),
            atomic_replace=cfg.index.atomic_replace,
        )

    # ------------------------------------------------------------------
    # Bulk build
    # ------------------------------------------------------------------

    def build(
        self,
        on_progress: ProgressCallback | None = None,
        on_project: Callable[[ProjectReport], None] | None = None,
    ) -> RunReport:
        """Index every eligible file of every project.

        *on_progress* receives ``(processed, total, result)`` after each file;
        *on_project* receives each finished ``ProjectReport``.

        Returns a ``RunReport``; ``rejected`` is set (and a UserWarning issued)
        if another bulk run is already active in this process.
        """
        if not _BULK_LOCK.acquire(blocking=False):
            warnings.warn(
                "Indexing already in progress. Please wait until it finishes.",
                UserWarning,
                stacklevel=2,
            )
            return RunReport(rejected=True)
        try:
            return self._build(on_progress, on_project)
        finally:
            _BULK_LOCK.release()

    def _build(
        self,
        on_progress: ProgressCallback | None,
        on_project: Callable[[ProjectReport], None] | None,
    ) -> RunReport:
        report = RunReport()
        plans = [(p, iter_source_files(p.root, self._exclude)) for p in self.projects]
        total = sum(len(files) for _, files in plans)
        processed = 0

        try:
            conn = self._db.connect()
        except IndexStoreError as exc:
            report.error = str(exc)
            return report

        try:
            for project, files in plans:
                try:
                    index = VectorIndex.open_or_create(conn, project, self._embedder.embed)
                except CodeAgentError as exc:
                    report.error = f"Cannot open index for '{project.slug}': {exc}"
                    break

                project_report = ProjectReport(project)
                for path in files:
                    result = self._index_file(index, path, incremental=False)
                    project_report.files.append(result)
                    processed += 1
                    if on_progress is not None:
                        on_progress(processed, total, result)

                report.projects.append(project_report)
                if on_project is not None:
                    on_project(project_report)
        finally:
            conn.close()
        return report

    # ------------------------------------------------------------------
    # Incremental update
    # ------------------------------------------------------------------

    def project_for(self, path: Path | str) -> Project | None:
        """Return the project whose root is the longest prefix of *path*."""
        return owning_project(self.projects, path)

    def update_file(self, path: Path | str) -> FileResult:
        """Re-embed one changed file and replace all of its rows."""
        target = Path(os.path.abspath(path))
        project, skip = self._resolve(target)
        if project is None:
            return skip

        try:
            conn = self._db.connect()
        except IndexStoreError as exc:
            return FileResult(str(target), FileStatus.ERROR, reason=str(exc))
        try:
            index = VectorIndex.open_or_create(conn, project, self._embedder.embed)
            return self._index_file(index, target, incremental=True)
        except CodeAgentError as exc:
            return FileResult(str(target), FileStatus.ERROR, reason=str(exc))
        finally:
            conn.close()

    def remove_file(self, path: Path | str) -> FileResult:
        """Delete every row of a file that no longer exists."""
        target = Path(os.path.abspath(path))
        project, skip = self._resolve(target)
        if project is None:
            return skip

        try:
            conn = self._db.connect()
        except IndexStoreError as exc:
            return FileResult(str(target), FileStatus.ERROR, reason=str(exc))
        try:
            try:
                index = VectorIndex.open(conn, project)
            except IndexStoreError:
                return FileResult(str(target), FileStatus.SKIPPED, reason="project not indexed")
            deleted = index.delete_where(file=str(target))
            return FileResult(str(target), FileStatus.REMOVED, deleted=deleted)
        except CodeAgentError as exc:
            return FileResult(str(target), FileStatus.ERROR, reason=str(exc))
        finally:
            conn.close()

    def _resolve(self, target: Path) -> tuple[Project | None, FileResult]:
        if not is_supported(target):
            return None, FileResult(str(target), FileStatus.SKIPPED, reason="unsupported file type")
        project = self.project_for(target)
        if project is None:
            return None, FileResult(str(target), FileStatus.SKIPPED, reason="outside workspace")
        if is_excluded(target, project.root, self._exclude):
            return None, FileResult(str(target), FileStatus.SKIPPED, reason="excluded")
        return project, FileResult(str(target), FileStatus.SKIPPED)

    # ------------------------------------------------------------------
    # Per-file pipeline
    # ------------------------------------------------------------------

    def _index_file(self, index: VectorIndex, path: Path, *, incremental: bool) -> FileResult:
        """Chunk, embed and store one file; never raises for per-file failures."""
        file = str(path)
        try:
            mtime = file_mtime(path)
            if not incremental and index.query_where(file=file, mtime=mtime):
                return FileResult(file, FileStatus.SKIPPED, reason="unchanged", mtime=mtime)

            # Incremental updates evict first; the bulk path keeps old rows
            # searchable until the new embeddings are ready.
            deleted = 0
            evict_first = incremental and not self._atomic_replace
            if evict_first:
                deleted = index.delete_where(file=file)

            text = read_source(path).strip()
            if not text:
                if not evict_first:
                    deleted += index.delete_where(file=file)
                return FileResult(file, FileStatus.SKIPPED, reason="empty", deleted=deleted, mtime=mtime)

            segments = self._chunker.split(text)
            embeddings = self._embedder.embed_batch(segments)
            rows = TextChunker.make_rows(file, mtime, segments, embeddings)

            if self._atomic_replace:
                removed, _ = index.replace_file(file, rows)
                deleted += removed
            else:
                if not evict_first:
                    deleted += index.delete_where(file=file)
                index.upsert(rows)
        except CodeAgentError as exc:
            return FileResult(file, FileStatus.ERROR, reason=str(exc))

        return FileResult(file, FileStatus.INDEXED, chunks=len(rows), deleted=deleted, mtime=mtime)
