"""Post-processing of raw model output into an insertable suggestion.

Order:
  1. trim
  2. sentinel → ""
  3. prefix mode: strip an echoed before-window (wins over fence stripping),
     otherwise strip a leading ```lang line and a trailing ``` fence.
     cursor mode: strip fences, drop lines repeating the before/after
     windows verbatim, remove the cursor marker, strip a repeated
     current-line prefix.
  4. nothing left → ""
"""

from __future__ import annotations

import re

from codeagent.completion.context import CompletionContext
from codeagent.completion.prompt import CURSOR_MARKER, NO_COMPLETION

_LEADING_FENCE = re.compile(r"^```[A-Za-z0-9_+\-]*\n")
_TRAILING_FENCE = re.compile(r"\n?```$")


def strip_fences(text: str) -> str:
    return _TRAILING_FENCE.sub("", _LEADING_FENCE.sub("", text, count=1), count=1)


def clean_completion(raw: str, ctx: CompletionContext, *, cursor_mode: bool = False) -> str:
    """Turn *raw* model output into the suggestion text ("" for none)."""
    text = raw.strip()
    if text == NO_COMPLETION:
        return ""

    if cursor_mode:
        text = _clean_cursor(text, ctx)
    elif ctx.before_text and text.startswith(ctx.before_text):
        text = text[len(ctx.before_text) :].strip()
    else:
        text = strip_fences(text).strip()

    if not text.strip() or text.strip() == NO_COMPLETION:
        return ""
    return text


def _clean_cursor(text: str, ctx: CompletionContext) -> str:
    text = strip_fences(text)

    window = (ctx.before_text + "\n" + ctx.after_text).split("\n")
    # verbatim match: indentation counts, trailing whitespace does not
    seen = {line.rstrip() for line in window if line.strip()}
    kept = [line for line in text.split("\n") if line.rstrip() not in seen]
    text = "\n".join(kept).replace(CURSOR_MARKER, "")

    prefix = ctx.line_prefix.lstrip()
    if prefix.strip() and text.lstrip().startswith(prefix):
        text = text.lstrip()[len(prefix) :]

    return text.lstrip("\n").rstrip()
