"""codeagent inline completion — debounce, context, prompt, cleaning."""

from codeagent.completion.cleaning import clean_completion
from codeagent.completion.context import CompletionContext, Document, build_context
from codeagent.completion.debounce import (
    CancellationToken,
    CompletionSession,
    SessionRegistry,
    SessionState,
)
from codeagent.completion.pipeline import CompletionPipeline
from codeagent.completion.prompt import CURSOR_MARKER, NO_COMPLETION

__all__ = [
    "clean_completion",
    "CompletionContext",
    "Document",
    "build_context",
    "CancellationToken",
    "CompletionSession",
    "SessionRegistry",
    "SessionState",
    "CompletionPipeline",
    "CURSOR_MARKER",
    "NO_COMPLETION",
]
