"""codeagent rich error messages — actionable feedback.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from codeagent.cli.errors import err_service_unreachable
    console.print(err_service_unreachable("http://localhost:11434", "ollama/nomic-embed-text"))
    raise typer.Exit(1)
"""

from __future__ import annotations


def err_service_unreachable(base_url: str, model: str) -> str:
    """Local model server does not answer.

    Example:
        Ollama is not reachable at http://localhost:11434 (needed for 'ollama/nomic-embed-text').
    """
    name = model.split("/", 1)[-1]
    return (
        f"[red]Error:[/] Ollama is not reachable at {base_url} (needed for '{model}').\n"
        "  Start it:  ollama serve\n"
        f"  Pull the model:  ollama pull {name}\n"
        "  Or point OLLAMA_API_BASE at a running server."
    )


def err_no_api_key(message: str) -> str:
    """Remote model configured without its API key in the environment."""
    return f"[red]Error:[/] {message}"


def err_config(exc: Exception) -> str:
    """Config file rejected by the loader."""
    return (
        f"[red]Error:[/] Invalid configuration.\n"
        f"  {exc}\n"
        "  Fix codeagent.yaml (project) or ~/.codeagent/config.yaml (global)."
    )


def err_store(detail: str, db_path: str) -> str:
    """Vector store could not be opened or written."""
    return (
        f"[red]Error:[/] Index store failed: {detail}\n"
        f"  Database: {db_path}\n"
        "  Check the file is writable, or pass --db to use another location."
    )


def err_root_not_found(root: str) -> str:
    return (
        f"[red]Error:[/] Workspace root not found: '{root}'\n"
        "  Pass an existing directory with --root."
    )


def err_file_not_found(path: str) -> str:
    return f"[red]Error:[/] File not found: '{path}'"


def err_unsupported_file(path: str, extensions: tuple[str, ...]) -> str:
    """File extension outside the supported language set."""
    return (
        f"[red]Error:[/] Unsupported file type: '{path}'\n"
        f"  Supported extensions: {', '.join(extensions)}"
    )


def err_invalid_mode(mode: str, modes: list[str]) -> str:
    return (
        f"[red]Error:[/] Unknown completion mode '{mode}'.\n"
        f"  Use one of: {', '.join(modes)}"
    )


def err_no_index(db_path: str) -> str:
    return (
        f"[yellow]No index found at '{db_path}'.[/]\n"
        "  Run:  codeagent index --root <workspace>"
    )


def warn_already_running() -> str:
    """Second bulk run requested while one is active."""
    return (
        "[yellow]Warning:[/] Indexing already in progress.\n"
        "  Wait for the current run to finish, then run codeagent index again."
    )


def warn_file_error(path: str, reason: str) -> str:
    return f"[yellow]Warning:[/] {path}: {reason}"


def info_completion_disabled() -> str:
    return (
        "[dim]Completion is disabled.[/]\n"
        "  Set completion.enabled: true in codeagent.yaml or CODEAGENT_COMPLETION_ENABLED=1."
    )
