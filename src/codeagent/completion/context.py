"""Cursor context for one completion request."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from codeagent.db.models import IndexedChunk


@dataclass
class Document:
    """Snapshot of an editor buffer at the moment completion was requested.

    ``line`` and ``column`` are zero-based; out-of-range values are clamped.
    """

    path: Path
    text: str
    line: int
    column: int


@dataclass
class CompletionContext:
    before_text: str
    after_text: str
    line_prefix: str  # current line up to the cursor
    chunks: list[IndexedChunk] = field(default_factory=list)

    @property
    def has_after(self) -> bool:
        return bool(self.after_text.strip())


def build_context(document: Document, before_lines: int = 30, after_lines: int = 5) -> CompletionContext:
    """Cut the before/after windows around the cursor of *document*.

    The before window holds up to *before_lines* lines ending at the cursor
    (the cursor line counts as one); the after window holds the rest of the
    cursor line plus the next *after_lines* lines.
    """
    lines = document.text.split("\n")
    line = min(max(document.line, 0), len(lines) - 1)
    current = lines[line]
    column = min(max(document.column, 0), len(current))

    line_prefix = current[:column]
    start = max(0, line - before_lines + 1)
    before = lines[start:line] + [line_prefix]
    after = [current[column:]] + lines[line + 1 : line + 1 + after_lines]

    return CompletionContext(
        before_text="\n".join(before),
        after_text="\n".join(after),
        line_prefix=line_prefix,
    )
