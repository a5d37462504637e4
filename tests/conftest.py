"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from codeagent.db.connection import Database
from codeagent.db.schema import initialize
from codeagent.errors import EmbeddingServiceError

DIMS = 4


class FakeEmbedder:
    """Deterministic stand-in for Embedder: records every text it embeds.

    Set ``fail_on`` to a substring to make matching texts fail like a down
    service (``""`` fails every call).
    """

    def __init__(self, dims: int = DIMS) -> None:
        self.dims = dims
        self.calls: list[str] = []
        self.model = "fake/embedder"
        self.fail_on: str | None = None

    def embed(self, text: str) -> list[float]:
        if self.fail_on is not None and self.fail_on in text:
            raise EmbeddingServiceError(f"service returned 500 for {text[:20]!r}")
        self.calls.append(text)
        seed = float(len(text) % 97)
        return [seed + i for i in range(self.dims)]

    def embed_batch(self, texts, on_progress=None):
        vectors = []
        for i, text in enumerate(texts):
            vectors.append(self.embed(text))
            if on_progress is not None:
                on_progress(i)
        return vectors


@pytest.fixture
def db(tmp_path):
    """Database handle pointing at a fresh file in tmp_path."""
    return Database(tmp_path / "index.db")


@pytest.fixture
def tmp_db(db):
    """Open connection with schema initialized, closed after test."""
    conn = db.connect()
    initialize(conn)
    yield conn
    conn.close()


@pytest.fixture
def fake_embedder():
    return FakeEmbedder()


@pytest.fixture
def workspace(tmp_path):
    """Empty workspace root named 'proj' (outside any excluded directory)."""
    root = tmp_path / "proj"
    root.mkdir()
    return root
