"""Tests for Embedder."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from codeagent.errors import EmbeddingServiceError
from codeagent.ingest.embedder import EmbeddingConfig, Embedder


def _mock_embedding(vector):
    response = MagicMock()
    response.data = [{"embedding": vector}]
    return response


def test_embedding_config_defaults():
    cfg = EmbeddingConfig()
    assert cfg.model == "ollama/nomic-embed-text"
    assert cfg.num_retries == 2


def test_embed_returns_vector_and_passes_model():
    with patch(
        "codeagent.rag.llm_client.litellm.embedding", return_value=_mock_embedding([0.1, 0.2, 0.3])
    ) as mock:
        vec = Embedder(EmbeddingConfig(model="ollama/all-minilm")).embed("def f(): pass")

    assert vec == [0.1, 0.2, 0.3]
    assert mock.call_args.kwargs["model"] == "ollama/all-minilm"
    assert mock.call_args.kwargs["input"] == ["def f(): pass"]


def test_embed_dimension_mismatch_raises():
    with patch("codeagent.rag.llm_client.litellm.embedding", return_value=_mock_embedding([0.1, 0.2])):
        with pytest.raises(EmbeddingServiceError, match="expected 3"):
            Embedder(dimensions=3).embed("x")


def test_embed_service_failure_raises():
    with patch("codeagent.rag.llm_client.litellm.embedding", side_effect=ConnectionError("refused")):
        with pytest.raises(EmbeddingServiceError, match="refused"):
            Embedder().embed("x")


def test_embed_batch_preserves_order_one_call_per_text():
    vectors = [_mock_embedding([float(i)]) for i in range(3)]
    progress: list[int] = []

    with patch("codeagent.rag.llm_client.litellm.embedding", side_effect=vectors) as mock:
        out = Embedder().embed_batch(["a", "b", "c"], on_progress=progress.append)

    assert out == [[0.0], [1.0], [2.0]]
    assert mock.call_count == 3
    assert [c.kwargs["input"] for c in mock.call_args_list] == [["a"], ["b"], ["c"]]
    assert progress == [0, 1, 2]


def test_embed_batch_empty():
    with patch("codeagent.rag.llm_client.litellm.embedding") as mock:
        assert Embedder().embed_batch([]) == []
    mock.assert_not_called()
