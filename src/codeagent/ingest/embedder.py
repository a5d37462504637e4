"""Embedder — text to fixed-dimension vectors through LiteLLM.

Used on both paths: chunk embedding while indexing (plus the one-off
dimension probe when a project table is created) and query embedding
during completion.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from codeagent.errors import EmbeddingServiceError
from codeagent.rag import llm_client


@dataclass
class EmbeddingConfig:
    """Configuration for embedding generation."""

    model: str = "ollama/nomic-embed-text"
    num_retries: int = 2


class Embedder:
    """Embed text with the configured model, one service call per text.

    Args:
        config: Embedding configuration (model, retries).
        dimensions: Expected vector length. Vectors of any other length are
            rejected once this is known (set it from the project table).
    """

    def __init__(self, config: EmbeddingConfig | None = None, dimensions: int | None = None) -> None:
        self._config = config or EmbeddingConfig()
        self.dimensions = dimensions

    @property
    def model(self) -> str:
        return self._config.model

    def embed(self, text: str) -> list[float]:
        """Return the embedding of *text*.

        Raises:
            EmbeddingServiceError: On service failure or a malformed vector.
        """
        vector = llm_client.embed(self._config.model, text, num_retries=self._config.num_retries)
        if self.dimensions is not None and len(vector) != self.dimensions:
            raise EmbeddingServiceError(
                f"Embedding has {len(vector)} dimensions, expected {self.dimensions} "
                f"(model '{self._config.model}')."
            )
        return vector

    def embed_batch(
        self,
        texts: list[str],
        on_progress: Callable[[int], None] | None = None,
    ) -> list[list[float]]:
        """Embed *texts* sequentially, preserving order (one vector per input).

        *on_progress* is called with the zero-based index after each text.
        """
        vectors: list[list[float]] = []
        for i, text in enumerate(texts):
            vectors.append(self.embed(text))
            if on_progress is not None:
                on_progress(i)
        return vectors
