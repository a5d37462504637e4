"""Exception taxonomy for the indexing and completion pipelines.

Indexing callers catch these per file and record them in a ``FileResult``;
the completion pipeline collapses all of them into an empty suggestion.
User-facing wording lives in ``codeagent.cli.errors``.
"""

from __future__ import annotations


class CodeAgentError(Exception):
    """Base class for all codeagent runtime errors."""


class EmbeddingServiceError(CodeAgentError):
    """Embedding service unreachable or returned a malformed vector."""


class GenerationServiceError(CodeAgentError):
    """Generation service unreachable or returned an unusable response."""


class IndexStoreError(CodeAgentError):
    """Vector store connect/open/insert/delete/query failure."""


class FileAccessError(CodeAgentError):
    """A source file could not be stat'ed or read."""
