"""codeagent watch — bulk index, then keep the index current on file changes."""

from __future__ import annotations

import time
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from codeagent.cli.errors import err_store, warn_file_error
from codeagent.cli.index import check_backends, load_cli_config, resolve_roots, run_bulk_index
from codeagent.ingest.indexer import FileResult, FileStatus, Indexer
from codeagent.ingest.watcher import ProjectWatcher

console = Console()

_POLL_SECONDS = 0.5


def watch_cmd(
    root: Annotated[
        list[Path] | None,
        typer.Option("--root", "-r", help="Workspace root (repeatable). Defaults to the current directory."),
    ] = None,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the index database (overrides index.db_path)."),
    ] = None,
    no_initial_index: Annotated[
        bool,
        typer.Option("--no-initial-index", help="Skip the bulk run before watching."),
    ] = False,
    skip_health_check: Annotated[
        bool,
        typer.Option("--skip-health-check", help="Do not probe the embedding backend first."),
    ] = False,
) -> None:
    """Watch workspace roots and re-embed files as they change."""
    roots = resolve_roots(root)
    cfg = load_cli_config(roots[0], db)
    if not skip_health_check:
        check_backends([cfg.embedding.model])

    indexer = Indexer.from_config(cfg, roots)
    if not no_initial_index:
        report = run_bulk_index(indexer)
        if report.error is not None:
            console.print(err_store(report.error, str(cfg.index.db_path)))
            raise typer.Exit(1)

    watcher = ProjectWatcher(indexer, on_result=print_result)
    watcher.start()
    console.print(
        f"[bold]Watching[/] {', '.join(str(r) for r in roots)}  [dim](Ctrl+C to stop)[/]"
    )
    try:
        while watcher.running:
            time.sleep(_POLL_SECONDS)
    except KeyboardInterrupt:
        pass
    finally:
        watcher.stop()
        console.print("[dim]Stopped.[/]")


def print_result(result: FileResult) -> None:
    name = Path(result.path).name
    if result.status is FileStatus.INDEXED:
        console.print(f"  [green]↻[/] {name} — {result.chunks} chunks")
    elif result.status is FileStatus.REMOVED:
        console.print(f"  [dim]✗ {name} removed ({result.deleted} chunks)[/]")
    elif result.status is FileStatus.ERROR:
        console.print(warn_file_error(result.path, result.reason))
