"""codeagent index — bulk-index workspace roots into the local vector store.

Per root: open/create the project table, walk supported files, skip files
whose mtime is already stored, chunk + embed + store the rest. Per-file
failures are printed as warnings; only a store failure at the start of a run
exits non-zero.
"""

from __future__ import annotations

import warnings
from pathlib import Path
from typing import Annotated

import typer
import yaml
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn

from codeagent.cli.errors import (
    err_config,
    err_no_api_key,
    err_root_not_found,
    err_service_unreachable,
    err_store,
    warn_already_running,
    warn_file_error,
)
from codeagent.config import CodeAgentConfig, ConfigError, load_config
from codeagent.ingest.indexer import FileResult, FileStatus, Indexer, ProjectReport, RunReport
from codeagent.rag import llm_client

console = Console()


def index_cmd(
    root: Annotated[
        list[Path] | None,
        typer.Option("--root", "-r", help="Workspace root (repeatable). Defaults to the current directory."),
    ] = None,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the index database (overrides index.db_path)."),
    ] = None,
    skip_health_check: Annotated[
        bool,
        typer.Option("--skip-health-check", help="Do not probe the embedding backend before indexing."),
    ] = False,
) -> None:
    """Index every supported source file under the workspace roots."""
    roots = resolve_roots(root)
    cfg = load_cli_config(roots[0], db)
    if not skip_health_check:
        check_backends([cfg.embedding.model])

    indexer = Indexer.from_config(cfg, roots)
    report = run_bulk_index(indexer)
    if report.error is not None:
        console.print(err_store(report.error, str(cfg.index.db_path)))
        raise typer.Exit(1)


# ------------------------------------------------------------------
# Shared with codeagent watch / complete
# ------------------------------------------------------------------


def resolve_roots(roots: list[Path] | None) -> list[Path]:
    """Return absolute workspace roots, exiting if one does not exist."""
    resolved = [r.expanduser().resolve() for r in roots or [Path.cwd()]]
    for r in resolved:
        if not r.is_dir():
            console.print(err_root_not_found(str(r)))
            raise typer.Exit(1)
    return resolved


def load_cli_config(project_dir: Path, db: Path | None = None) -> CodeAgentConfig:
    """Load config for *project_dir* and apply CLI overrides."""
    try:
        cfg = load_config(project_dir=project_dir)
    except (ConfigError, ValueError, yaml.YAMLError) as exc:
        console.print(err_config(exc))
        raise typer.Exit(1)
    if db is not None:
        cfg.index.db_path = db.expanduser()
    return cfg


def check_backends(models: list[str]) -> None:
    """Exit unless every model's backend is usable (Ollama up, or API key set)."""
    for model in models:
        if llm_client.is_local(model):
            if not llm_client.check_service():
                console.print(err_service_unreachable(llm_client.ollama_base_url(), model))
                raise typer.Exit(1)
        else:
            try:
                llm_client.validate_api_key(model)
            except EnvironmentError as exc:
                console.print(err_no_api_key(str(exc)))
                raise typer.Exit(1)


def run_bulk_index(indexer: Indexer) -> RunReport:
    """Run ``indexer.build`` behind a rich progress bar and print per-project summaries."""
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        console=console,
        transient=True,
    ) as prog:
        task = prog.add_task("Indexing…", total=None)

        def on_progress(processed: int, total: int, result: FileResult) -> None:
            prog.update(task, completed=processed, total=total, description=f"Indexing {Path(result.path).name}")
            if result.status is FileStatus.ERROR:
                prog.console.print(warn_file_error(result.path, result.reason))

        def on_project(project_report: ProjectReport) -> None:
            prog.console.print(_project_summary(project_report))

        with warnings.catch_warnings():
            warnings.filterwarnings("ignore", message="Indexing already in progress")
            report = indexer.build(on_progress=on_progress, on_project=on_project)

    if report.rejected:
        console.print(warn_already_running())
    return report


def _project_summary(report: ProjectReport) -> str:
    indexed = report.count(FileStatus.INDEXED)
    unchanged = sum(1 for f in report.files if f.reason == "unchanged")
    errors = len(report.errors)
    line = (
        f"[green]✓[/] [bold]{report.project.slug}[/]: "
        f"{indexed} indexed ({report.chunks} chunks), {unchanged} unchanged"
    )
    if errors:
        line += f", [yellow]{errors} failed[/]"
    return line
