"""codeagent ingest pipeline — chunker, embedder, indexer."""

from codeagent.ingest.chunker import TextChunker
from codeagent.ingest.embedder import EmbeddingConfig, Embedder
from codeagent.ingest.indexer import FileResult, FileStatus, Indexer, ProjectReport, RunReport

__all__ = [
    "TextChunker",
    "EmbeddingConfig",
    "Embedder",
    "FileResult",
    "FileStatus",
    "Indexer",
    "ProjectReport",
    "RunReport",
]
