"""Tests for CompletionPipeline — modes, retrieval, cancellation and failure handling."""

from __future__ import annotations

import asyncio
from unittest.mock import MagicMock, patch

import pytest

from codeagent.completion.context import Document
from codeagent.completion.debounce import CancellationToken
from codeagent.completion.pipeline import CompletionPipeline
from codeagent.config import CodeAgentConfig, CompletionCfg, GenerationCfg
from codeagent.ingest.indexer import Indexer

_BEFORE = "def add(a, b):\n    "


def _response(content: str) -> MagicMock:
    resp = MagicMock()
    resp.choices = [MagicMock(message=MagicMock(content=content))]
    return resp


def _config(**completion) -> CodeAgentConfig:
    completion.setdefault("debounce_ms", 0)
    return CodeAgentConfig(
        generation=GenerationCfg(model="openai/gpt-4o-mini"),
        completion=CompletionCfg(**completion),
    )


def _pipeline(db, workspace, embedder, **completion) -> CompletionPipeline:
    return CompletionPipeline(_config(**completion), roots=[workspace], db=db, embedder=embedder)


def _document(workspace, text: str = _BEFORE, name: str = "main.py") -> Document:
    lines = text.split("\n")
    return Document(path=workspace / name, text=text, line=len(lines) - 1, column=len(lines[-1]))


def _prompt_of(mock_completion: MagicMock) -> str:
    return mock_completion.call_args.kwargs["messages"][0]["content"]


# ------------------------------------------------------------------
# Modes
# ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_disabled_returns_empty_without_calls(db, workspace, fake_embedder):
    pipeline = _pipeline(db, workspace, fake_embedder, enabled=False)

    with patch("codeagent.rag.llm_client.litellm.completion") as mock_completion:
        result = await pipeline.request(_document(workspace))

    assert result == ""
    mock_completion.assert_not_called()
    assert fake_embedder.calls == []


@pytest.mark.asyncio
async def test_local_mode_skips_embedding(db, workspace, fake_embedder):
    pipeline = _pipeline(db, workspace, fake_embedder, mode="local")

    with patch(
        "codeagent.rag.llm_client.litellm.completion", return_value=_response("return a + b")
    ) as mock_completion:
        result = await pipeline.request(_document(workspace))

    assert result == "return a + b"
    assert fake_embedder.calls == []
    mock_completion.assert_called_once()
    assert "<context>" not in _prompt_of(mock_completion)


@pytest.mark.asyncio
async def test_mode_override_per_request(db, workspace, fake_embedder):
    pipeline = _pipeline(db, workspace, fake_embedder, mode="retrieval")

    with patch("codeagent.rag.llm_client.litellm.completion", return_value=_response("x")):
        await pipeline.request(_document(workspace), mode="local")

    assert fake_embedder.calls == []


# ------------------------------------------------------------------
# Retrieval
# ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_retrieval_puts_indexed_chunks_in_prompt(db, workspace, fake_embedder):
    (workspace / "util.py").write_text("def helper():\n    return 42\n", encoding="utf-8")
    Indexer(db, [workspace], embedder=fake_embedder).build()
    pipeline = _pipeline(db, workspace, fake_embedder, top_k=3)

    with patch(
        "codeagent.rag.llm_client.litellm.completion", return_value=_response("return helper()")
    ) as mock_completion:
        result = await pipeline.request(_document(workspace))

    assert result == "return helper()"
    assert fake_embedder.calls[-1] == _BEFORE
    prompt = _prompt_of(mock_completion)
    assert "// From file: util.py\ndef helper():" in prompt
    assert "untrusted source data" in prompt


@pytest.mark.asyncio
async def test_missing_table_still_generates(db, workspace, fake_embedder):
    pipeline = _pipeline(db, workspace, fake_embedder)

    with patch(
        "codeagent.rag.llm_client.litellm.completion", return_value=_response("return a + b")
    ) as mock_completion:
        result = await pipeline.request(_document(workspace))

    assert result == "return a + b"
    assert fake_embedder.calls == [_BEFORE]
    assert "<context>" not in _prompt_of(mock_completion)


@pytest.mark.asyncio
async def test_document_outside_roots_skips_retrieval(db, tmp_path, workspace, fake_embedder):
    pipeline = _pipeline(db, workspace, fake_embedder)

    with patch("codeagent.rag.llm_client.litellm.completion", return_value=_response("pass")):
        result = await pipeline.request(_document(tmp_path / "elsewhere"))

    assert result == "pass"
    assert fake_embedder.calls == []


def test_project_for_picks_longest_root(db, tmp_path, fake_embedder):
    outer, inner = tmp_path / "mono", tmp_path / "mono" / "web"
    pipeline = CompletionPipeline(_config(), roots=[outer, inner], db=db, embedder=fake_embedder)

    assert pipeline.project_for(inner / "src" / "a.ts").root == inner.resolve()
    assert pipeline.project_for(outer / "b.py").root == outer.resolve()
    assert pipeline.project_for(tmp_path / "c.py") is None


# ------------------------------------------------------------------
# Cursor mode and cleaning
# ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_after_context_uses_cursor_prompt(db, workspace, fake_embedder):
    pipeline = _pipeline(db, workspace, fake_embedder, mode="local")
    doc = Document(path=workspace / "a.py", text="total = \nprint(total)\n", line=0, column=8)

    with patch(
        "codeagent.rag.llm_client.litellm.completion", return_value=_response("```python\nsum(xs)\n```")
    ) as mock_completion:
        result = await pipeline.request(doc)

    assert result == "sum(xs)"
    assert "total = <CURSOR>\nprint(total)" in _prompt_of(mock_completion)


@pytest.mark.asyncio
async def test_sentinel_response_is_empty(db, workspace, fake_embedder):
    pipeline = _pipeline(db, workspace, fake_embedder, mode="local")

    with patch("codeagent.rag.llm_client.litellm.completion", return_value=_response("[NO_COMPLETION]")):
        assert await pipeline.request(_document(workspace)) == ""


# ------------------------------------------------------------------
# Debounce through the pipeline
# ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_rapid_requests_generate_once(db, workspace, fake_embedder):
    pipeline = _pipeline(db, workspace, fake_embedder, mode="local", debounce_ms=20)
    doc = _document(workspace)

    with patch(
        "codeagent.rag.llm_client.litellm.completion", return_value=_response("return a + b")
    ) as mock_completion:
        results = await asyncio.gather(*(pipeline.request(doc) for _ in range(3)))

    assert results == ["", "", "return a + b"]
    assert mock_completion.call_count == 1


# ------------------------------------------------------------------
# Cancellation and failures
# ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_cancel_after_embedding_skips_generation(db, workspace, fake_embedder):
    pipeline = _pipeline(db, workspace, fake_embedder)
    token = CancellationToken()
    embed = fake_embedder.embed

    def embed_then_cancel(text):
        token.cancel()
        return embed(text)

    fake_embedder.embed = embed_then_cancel

    with patch("codeagent.rag.llm_client.litellm.completion") as mock_completion:
        result = await pipeline.evaluate(_document(workspace), token)

    assert result == ""
    mock_completion.assert_not_called()


@pytest.mark.asyncio
async def test_cancelled_token_discards_generated_text(db, workspace, fake_embedder):
    pipeline = _pipeline(db, workspace, fake_embedder, mode="local")
    token = CancellationToken()

    def complete_then_cancel(**kwargs):
        token.cancel()
        return _response("too late")

    with patch("codeagent.rag.llm_client.litellm.completion", side_effect=complete_then_cancel):
        assert await pipeline.evaluate(_document(workspace), token) == ""


@pytest.mark.asyncio
async def test_generation_failure_is_empty(db, workspace, fake_embedder):
    pipeline = _pipeline(db, workspace, fake_embedder, mode="local")

    with patch("codeagent.rag.llm_client.litellm.completion", side_effect=RuntimeError("503")):
        assert await pipeline.request(_document(workspace)) == ""


@pytest.mark.asyncio
async def test_embedding_failure_is_empty(db, workspace, fake_embedder):
    fake_embedder.fail_on = ""
    pipeline = _pipeline(db, workspace, fake_embedder)

    with patch("codeagent.rag.llm_client.litellm.completion") as mock_completion:
        assert await pipeline.request(_document(workspace)) == ""

    mock_completion.assert_not_called()


# ------------------------------------------------------------------
# Session lifecycle
# ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_close_document_drops_its_session(db, workspace, fake_embedder):
    pipeline = _pipeline(db, workspace, fake_embedder, mode="local")
    doc = _document(workspace)

    with patch("codeagent.rag.llm_client.litellm.completion", return_value=_response("return a + b")):
        await pipeline.request(doc)

    assert str(doc.path) in pipeline.sessions
    pipeline.close_document(doc.path)
    assert str(doc.path) not in pipeline.sessions
    assert len(pipeline.sessions) == 0


@pytest.mark.asyncio
async def test_close_document_invalidates_pending_request(db, workspace, fake_embedder):
    pipeline = _pipeline(db, workspace, fake_embedder, mode="local", debounce_ms=200)
    doc = _document(workspace)

    with patch("codeagent.rag.llm_client.litellm.completion") as mock_completion:
        task = asyncio.create_task(pipeline.request(doc))
        await asyncio.sleep(0)
        pipeline.close_document(doc.path)
        result = await task

    assert result == ""
    mock_completion.assert_not_called()
