"""codeagent complete — one inline completion for a cursor position in a file.

The suggestion is written to stdout (nothing when there is none); messages go
to stderr so editors can pipe the output straight into the buffer.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from codeagent.cli.errors import (
    err_file_not_found,
    err_invalid_mode,
    err_unsupported_file,
    info_completion_disabled,
)
from codeagent.cli.index import load_cli_config, resolve_roots
from codeagent.completion.context import Document
from codeagent.completion.pipeline import CompletionPipeline
from codeagent.config import COMPLETION_MODES
from codeagent.errors import FileAccessError
from codeagent.ingest.indexer import read_source
from codeagent.languages import SUPPORTED_EXTENSIONS, is_supported

err_console = Console(stderr=True)


def complete_cmd(
    file: Annotated[Path, typer.Argument(help="Source file being edited.")],
    line: Annotated[
        int | None,
        typer.Option("--line", "-l", min=1, help="Cursor line (1-based). Defaults to the last line."),
    ] = None,
    column: Annotated[
        int | None,
        typer.Option("--column", "-c", min=1, help="Cursor column (1-based). Defaults to end of line."),
    ] = None,
    mode: Annotated[
        str | None,
        typer.Option("--mode", "-m", help="retrieval or local (overrides completion.mode)."),
    ] = None,
    no_retrieval: Annotated[
        bool,
        typer.Option("--no-retrieval", help="Same as --mode local."),
    ] = False,
    root: Annotated[
        Path | None,
        typer.Option("--root", "-r", help="Workspace root used for retrieval. Defaults to the current directory."),
    ] = None,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the index database (overrides index.db_path)."),
    ] = None,
) -> None:
    """Print an inline completion for FILE at --line/--column."""
    if not file.is_file():
        err_console.print(err_file_not_found(str(file)))
        raise typer.Exit(1)
    if not is_supported(file):
        err_console.print(err_unsupported_file(str(file), SUPPORTED_EXTENSIONS))
        raise typer.Exit(1)

    mode = "local" if no_retrieval else mode
    if mode is not None and mode not in COMPLETION_MODES:
        err_console.print(err_invalid_mode(mode, sorted(COMPLETION_MODES)))
        raise typer.Exit(1)

    roots = resolve_roots([root] if root else None)
    cfg = load_cli_config(roots[0], db)
    if not cfg.completion.enabled:
        err_console.print(info_completion_disabled())
        return

    try:
        text = read_source(file)
    except FileAccessError as exc:
        err_console.print(f"[red]Error:[/] {exc}")
        raise typer.Exit(1)

    document = _document_at(file.resolve(), text, line, column)
    pipeline = CompletionPipeline(cfg, roots)
    suggestion = asyncio.run(pipeline.request(document, mode=mode))

    if suggestion:
        typer.echo(suggestion)
    else:
        err_console.print("[dim]No suggestion.[/]")


def _document_at(path: Path, text: str, line: int | None, column: int | None) -> Document:
    """Build a Document with a zero-based cursor from 1-based CLI positions."""
    lines = text.split("\n")
    row = len(lines) - 1 if line is None else min(line - 1, len(lines) - 1)
    col = len(lines[row]) if column is None else column - 1
    return Document(path=path, text=text, line=row, column=col)
