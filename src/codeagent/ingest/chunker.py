"""Fixed-window character chunker with overlap."""

from __future__ import annotations

from codeagent.db.models import IndexedChunk, chunk_id


class TextChunker:
    """Split source text into fixed-size, overlapping character windows.

    Window *i* starts at ``i * (chunk_size - overlap)``; consecutive windows
    share ``overlap`` characters and the last one may be shorter. Segments
    are not stripped, so dropping the leading ``overlap`` characters of every
    segment after the first and concatenating gives back the input exactly.

    Default: 1000 characters / 200 overlap.
    """

    def __init__(self, chunk_size: int = 1_000, overlap: int = 200) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        if not 0 <= overlap < chunk_size:
            raise ValueError("overlap must be in [0, chunk_size)")
        self.chunk_size = chunk_size
        self.overlap = overlap

    @property
    def step(self) -> int:
        return self.chunk_size - self.overlap

    def split(self, text: str) -> list[str]:
        """Return the ordered windows of *text* (empty text → empty list)."""
        segments: list[str] = []
        pos = 0
        length = len(text)

        while pos < length:
            end = min(pos + self.chunk_size, length)
            segments.append(text[pos:end])
            if end >= length:
                break
            pos += self.step

        return segments

    @staticmethod
    def make_rows(
        file: str,
        mtime: int,
        segments: list[str],
        embeddings: list[list[float]],
    ) -> list[IndexedChunk]:
        """Pair segments with their embeddings as rows sharing one *mtime*."""
        if len(segments) != len(embeddings):
            raise ValueError(
                f"{len(segments)} segments but {len(embeddings)} embeddings for '{file}'"
            )
        return [
            IndexedChunk(id=chunk_id(file, i), file=file, mtime=mtime, text=text, embedding=vec)
            for i, (text, vec) in enumerate(zip(segments, embeddings))
        ]
