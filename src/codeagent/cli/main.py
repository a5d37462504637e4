"""codeagent CLI entry point."""

from __future__ import annotations

import importlib.metadata
from typing import Annotated

import typer

from codeagent.cli.complete import complete_cmd
from codeagent.cli.index import index_cmd
from codeagent.cli.status import status_cmd
from codeagent.cli.watch import watch_cmd


def _installed_version() -> str:
    try:
        return importlib.metadata.version("codeagent")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"codeagent {_installed_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="codeagent",
    help=(
        "codeagent — local retrieval-augmented code completion.\n\n"
        "  codeagent index     Embed workspace source files into the local vector store.\n"
        "  codeagent watch     Index, then keep the index current as files change.\n"
        "  codeagent complete  Suggest code for a cursor position."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
) -> None:
    """codeagent — local retrieval-augmented code completion."""


app.command("index")(index_cmd)
app.command("watch")(watch_cmd)
app.command("complete")(complete_cmd)
app.command("status")(status_cmd)


@app.command("version")
def version_cmd() -> None:
    """Show the installed codeagent version."""
    typer.echo(f"codeagent {_installed_version()}")


if __name__ == "__main__":
    app()
