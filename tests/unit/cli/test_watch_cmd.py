"""Tests for codeagent watch."""

from __future__ import annotations

from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from codeagent.cli import watch as watch_module
from codeagent.cli.main import app
from codeagent.ingest.indexer import FileResult, FileStatus

runner = CliRunner()


@pytest.fixture
def watcher_cls():
    """ProjectWatcher stand-in that reports itself stopped straight away."""
    with patch("codeagent.cli.watch.ProjectWatcher") as cls:
        cls.return_value.running = False
        yield cls


def _watch(workspace, db_path, *extra):
    return runner.invoke(
        app, ["watch", "--root", str(workspace), "--db", str(db_path), "--skip-health-check", *extra]
    )


def test_watch_starts_and_stops_watcher(workspace, db_path, watcher_cls):
    with patch("codeagent.rag.llm_client.litellm.embedding") as embed:
        result = _watch(workspace, db_path, "--no-initial-index")

    assert result.exit_code == 0, result.output
    watcher = watcher_cls.return_value
    watcher.start.assert_called_once()
    watcher.stop.assert_called_once()
    embed.assert_not_called()
    assert "Watching" in result.output
    assert "Stopped." in result.output


def test_watch_runs_initial_index(workspace, db_path, watcher_cls, fake_embedding):
    (workspace / "a.py").write_text("a = 1\n", encoding="utf-8")

    with patch("codeagent.rag.llm_client.litellm.embedding", side_effect=fake_embedding):
        result = _watch(workspace, db_path)

    assert result.exit_code == 0, result.output
    assert "1 indexed" in result.output
    watcher_cls.return_value.start.assert_called_once()


def test_watch_store_failure_exits_before_watching(workspace, tmp_path, watcher_cls, fake_embedding):
    blocker = tmp_path / "blocker"
    blocker.write_text("file", encoding="utf-8")
    (workspace / "a.py").write_text("a = 1\n", encoding="utf-8")

    with patch("codeagent.rag.llm_client.litellm.embedding", side_effect=fake_embedding):
        result = _watch(workspace, blocker / "index.db")

    assert result.exit_code == 1
    watcher_cls.assert_not_called()


def test_watch_missing_root(tmp_path, db_path, watcher_cls):
    result = _watch(tmp_path / "missing", db_path)
    assert result.exit_code == 1
    watcher_cls.assert_not_called()


# ------------------------------------------------------------------
# Live event output
# ------------------------------------------------------------------


def test_print_result_formats(capsys):
    watch_module.print_result(FileResult("/w/a.py", FileStatus.INDEXED, chunks=3))
    watch_module.print_result(FileResult("/w/b.py", FileStatus.REMOVED, deleted=2))
    watch_module.print_result(FileResult("/w/c.py", FileStatus.ERROR, reason="Cannot read"))
    watch_module.print_result(FileResult("/w/d.md", FileStatus.SKIPPED, reason="unsupported file type"))

    out = capsys.readouterr().out
    assert "a.py" in out and "3 chunks" in out
    assert "b.py removed" in out
    assert "Cannot read" in out
    assert "d.md" not in out
