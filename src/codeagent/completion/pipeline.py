"""CompletionPipeline — debounced, retrieval-augmented inline completion.

Flow per request:
  1. Disabled → "" immediately.
  2. Debounce in the document's session (last trigger wins).
  3. Guard: a trigger firing while the session is running returns at once.
  4. Context: before/after windows around the cursor.
  5. Retrieval mode: embed the before window, vector search the project table
     (missing project or table → no chunks). Local mode skips this step.
  6. Prompt → one generation call → cleaned suggestion.

The cancellation token is checked before and after every service call
(embedding, vector search, generation). Blocking calls run in worker threads;
each vector search opens its own connection. Any error collapses to "".
"""

from __future__ import annotations

import asyncio
from pathlib import Path

from codeagent.completion.cleaning import clean_completion
from codeagent.completion.context import CompletionContext, Document, build_context
from codeagent.completion.debounce import CancellationToken, RequestCancelled, SessionRegistry
from codeagent.completion.prompt import build_prompt
from codeagent.config import CodeAgentConfig
from codeagent.db.connection import Database
from codeagent.db.index import VectorIndex
from codeagent.db.models import IndexedChunk, Project, owning_project
from codeagent.errors import IndexStoreError
from codeagent.ingest.embedder import EmbeddingConfig, Embedder
from codeagent.languages import language_for
from codeagent.rag import llm_client


class CompletionPipeline:
    """Serve inline completions for documents under the given project roots.

    Args:
        config: Loaded configuration (generation, completion and index sections).
        roots: Workspace roots; a document's project is the longest matching root.
        db: Database handle. Defaults to ``config.index.db_path``.
        embedder: Query embedder. Defaults to ``config.embedding.model``.
    """

    def __init__(
        self,
        config: CodeAgentConfig,
        roots: list[Path] | None = None,
        db: Database | None = None,
        embedder: Embedder | None = None,
    ) -> None:
        self.config = config
        self.projects = [Project.from_root(r) for r in roots or []]
        self._db = db or Database(config.index.db_path)
        self._embedder = embedder or Embedder(EmbeddingConfig(model=config.embedding.model))
        self.sessions = SessionRegistry(
            debounce_ms=config.completion.debounce_ms,
            reuse_last_result=config.completion.reuse_last_result,
        )

    def project_for(self, path: Path | str) -> Project | None:
        return owning_project(self.projects, path)

    def close_document(self, path: Path | str) -> None:
        """Drop the session of a closed document, invalidating its pending trigger.

        Hosts call this when an editor buffer closes; otherwise sessions are
        kept for every document ever requested.
        """
        self.sessions.close(str(path))

    async def request(
        self,
        document: Document,
        token: CancellationToken | None = None,
        *,
        mode: str | None = None,
    ) -> str:
        """Debounced completion for *document*. Returns the suggestion or ""."""
        if not self.config.completion.enabled:
            return ""
        token = token or CancellationToken()
        session = self.sessions.get(str(document.path))
        return await session.trigger(lambda t: self.evaluate(document, t, mode=mode), token)

    async def evaluate(
        self,
        document: Document,
        token: CancellationToken | None = None,
        *,
        mode: str | None = None,
    ) -> str:
        """Run one completion without debounce or guard. Returns the suggestion or ""."""
        token = token or CancellationToken()
        comp = self.config.completion
        gen = self.config.generation
        mode = mode or comp.mode

        try:
            ctx = build_context(document, comp.before_lines, comp.after_lines)
            if mode == "retrieval":
                ctx.chunks = await self._retrieve(document.path, ctx, token)

            prompt, cursor_mode = build_prompt(ctx, language_for(document.path))

            token.raise_if_cancelled()
            raw = await asyncio.to_thread(
                llm_client.complete,
                gen.model,
                prompt,
                max_tokens=gen.max_tokens,
                temperature=gen.temperature,
                context_length=gen.context_length,
            )
            token.raise_if_cancelled()
        except RequestCancelled:
            return ""
        except Exception:  # the editor sees "no suggestion", never an exception
            return ""

        return clean_completion(raw, ctx, cursor_mode=cursor_mode)

    async def _retrieve(
        self, path: Path, ctx: CompletionContext, token: CancellationToken
    ) -> list[IndexedChunk]:
        project = self.project_for(path)
        if project is None or not ctx.before_text.strip():
            return []

        token.raise_if_cancelled()
        vector = await asyncio.to_thread(self._embedder.embed, ctx.before_text)
        token.raise_if_cancelled()
        hits = await asyncio.to_thread(self._search, project, vector)
        token.raise_if_cancelled()
        return hits

    def _search(self, project: Project, vector: list[float]) -> list[IndexedChunk]:
        conn = self._db.connect()
        try:
            try:
                index = VectorIndex.open(conn, project)
            except IndexStoreError:
                return []  # project never indexed
            return [chunk for chunk, _ in index.vector_search(vector, k=self.config.completion.top_k)]
        finally:
            conn.close()
