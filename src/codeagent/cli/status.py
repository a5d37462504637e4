"""codeagent status — show indexed projects and, per root, their files."""

from __future__ import annotations

import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from codeagent.cli.errors import err_no_index, err_store
from codeagent.cli.index import load_cli_config
from codeagent.db.connection import Database
from codeagent.db.index import VectorIndex, list_projects
from codeagent.db.models import Project
from codeagent.errors import IndexStoreError

console = Console()


def status_cmd(
    root: Annotated[
        Path | None,
        typer.Option("--root", "-r", help="Also list the indexed files of this workspace root."),
    ] = None,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the index database (overrides index.db_path)."),
    ] = None,
) -> None:
    """Show indexed projects, chunk counts and per-file freshness."""
    cfg = load_cli_config(Path.cwd(), db)
    db_path = cfg.index.db_path

    if not db_path.exists():
        console.print(err_no_index(str(db_path)))
        return

    try:
        with Database(db_path) as conn:
            projects = list_projects(conn)
            _show_projects_table(conn, db_path, projects)
            if root is not None:
                _show_files_table(conn, Project.from_root(root))
    except IndexStoreError as exc:
        console.print(err_store(str(exc), str(db_path)))
        raise typer.Exit(1)


# ---------------------------------------------------------------------------
# Renderers
# ---------------------------------------------------------------------------


def _show_projects_table(conn: sqlite3.Connection, db_path: Path, projects: list[tuple[str, str, int]]) -> None:
    size_mb = db_path.stat().st_size / (1024 * 1024)
    console.print(Panel(f"Database:  {db_path} ({size_mb:.1f} MB)", title="[bold]Index[/]", expand=False))

    if not projects:
        console.print("[dim]No projects indexed yet.[/]  Run:  codeagent index")
        return

    table = Table(title="Projects")
    table.add_column("Project", style="bold")
    table.add_column("Root")
    table.add_column("Dims", justify="right")
    table.add_column("Files", justify="right")
    table.add_column("Chunks", justify="right")

    for slug, root, dims in projects:
        try:
            index = VectorIndex.open(conn, Project(root=Path(root), slug=slug))
            files = str(len(index.list_files()))
            chunks = f"{index.count():,}"
        except IndexStoreError:
            files, chunks = "[yellow]?[/]", "[yellow]missing table[/]"
        table.add_row(slug, root, str(dims), files, chunks)

    console.print(table)


def _show_files_table(conn: sqlite3.Connection, project: Project) -> None:
    try:
        index = VectorIndex.open(conn, project)
    except IndexStoreError:
        console.print(f"[yellow]'{project.root}' has not been indexed.[/]  Run:  codeagent index --root {project.root}")
        return

    table = Table(title=f"Files — {project.slug}")
    table.add_column("File")
    table.add_column("Indexed mtime")
    table.add_column("Chunks", justify="right")
    table.add_column("State")

    for file, mtime, n in index.list_files():
        path = Path(file)
        label = str(path.relative_to(project.root)) if path.is_relative_to(project.root) else file
        table.add_row(label, _fmt_mtime(mtime), str(n), _freshness(path, mtime))

    console.print(table)


def _fmt_mtime(mtime_ms: int) -> str:
    return datetime.fromtimestamp(mtime_ms / 1000).strftime("%Y-%m-%d %H:%M:%S")


def _freshness(path: Path, mtime_ms: int) -> str:
    if not path.exists():
        return "[red]deleted[/]"
    if path.stat().st_mtime_ns // 1_000_000 != mtime_ms:
        return "[yellow]stale[/]"
    return "[green]current[/]"
