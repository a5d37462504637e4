"""Tests for completion prompt templates."""

from __future__ import annotations

from codeagent.completion.context import CompletionContext
from codeagent.completion.prompt import (
    CURSOR_MARKER,
    NO_COMPLETION,
    build_prompt,
    format_chunks,
)
from codeagent.db.models import IndexedChunk


def _chunk(file: str, text: str) -> IndexedChunk:
    return IndexedChunk(id=f"{file}-0", file=file, mtime=1, text=text)


def test_format_chunks_uses_basename():
    out = format_chunks([_chunk("/w/proj/src/util.py", "def helper(): ...")])
    assert out == "// From file: util.py\ndef helper(): ..."


def test_prefix_prompt_without_after_context():
    ctx = CompletionContext(before_text="def add(a, b):\n    ", after_text="", line_prefix="    ")
    prompt, cursor_mode = build_prompt(ctx, "python")

    assert not cursor_mode
    assert "<file_content>\ndef add(a, b):\n    \n</file_content>" in prompt
    assert CURSOR_MARKER not in prompt
    assert "<context>" not in prompt


def test_cursor_prompt_with_after_context():
    ctx = CompletionContext(before_text="x = ", after_text="\nprint(x)", line_prefix="x = ")
    prompt, cursor_mode = build_prompt(ctx, "python")

    assert cursor_mode
    assert f"x = {CURSOR_MARKER}\nprint(x)" in prompt
    assert NO_COMPLETION in prompt
    assert "python" in prompt


def test_retrieved_chunks_inside_context_tags():
    ctx = CompletionContext(
        before_text="total(",
        after_text="",
        line_prefix="total(",
        chunks=[_chunk("/w/a.js", "function total(xs) {}"), _chunk("/w/b.js", "const y = 2;")],
    )
    prompt, _ = build_prompt(ctx)

    start, end = prompt.index("<context>"), prompt.index("</context>")
    block = prompt[start:end]
    assert "untrusted source data" in block
    assert "// From file: a.js\nfunction total(xs) {}" in block
    assert "// From file: b.js\nconst y = 2;" in block
