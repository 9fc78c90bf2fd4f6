"""Text chunking strategies used during document ingestion."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterator, List

from ragchat.models import ChunkingMode

# A sentence is a run of text closed by terminal punctuation, or the trailing
# remainder of the text.
_SENTENCE_RE = re.compile(r"[^.!?]*(?:[.!?]+|$)")


@dataclass(frozen=True)
class TextSpan:
    """Chunk text together with its offset in the source document."""

    text: str
    start: int

    @property
    def end(self) -> int:
        return self.start + len(self.text)


def _sentence_bounds(text: str) -> Iterator[tuple[int, int]]:
    for match in _SENTENCE_RE.finditer(text):
        raw = match.group()
        stripped = raw.strip()
        if not stripped:
            continue
        start = match.start() + (len(raw) - len(raw.lstrip()))
        yield start, start + len(stripped)


def sentence_spans(text: str, max_chunk_chars: int) -> List[TextSpan]:
    """Greedily pack sentences into spans of at most ``max_chunk_chars``.

    The limit is a soft target: a single sentence longer than the limit is
    emitted whole rather than truncated.
    """

    if max_chunk_chars <= 0:
        raise ValueError("max_chunk_chars must be positive")
    spans: List[TextSpan] = []
    buffer_start: int | None = None
    buffer_end = 0
    for start, end in _sentence_bounds(text):
        if buffer_start is None:
            buffer_start, buffer_end = start, end
        elif end - buffer_start > max_chunk_chars:
            spans.append(TextSpan(text[buffer_start:buffer_end], buffer_start))
            buffer_start, buffer_end = start, end
        else:
            buffer_end = end
    if buffer_start is not None:
        spans.append(TextSpan(text[buffer_start:buffer_end], buffer_start))
    return spans


def fixed_spans(text: str, chunk_size: int) -> List[TextSpan]:
    """Split ``text`` into consecutive windows of exactly ``chunk_size`` characters."""

    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    return [TextSpan(text[index : index + chunk_size], index) for index in range(0, len(text), chunk_size)]


def chunk_sentences(text: str, max_chunk_chars: int) -> List[str]:
    return [span.text for span in sentence_spans(text, max_chunk_chars)]


def chunk_fixed(text: str, chunk_size: int) -> List[str]:
    return [span.text for span in fixed_spans(text, chunk_size)]


def split_text(text: str, mode: ChunkingMode | str, size: int) -> List[TextSpan]:
    """Dispatch to the chunking strategy named by ``mode``."""

    mode = ChunkingMode(mode)
    if mode is ChunkingMode.FIXED:
        return fixed_spans(text, size)
    return sentence_spans(text, size)


__all__ = [
    "TextSpan",
    "chunk_fixed",
    "chunk_sentences",
    "fixed_spans",
    "sentence_spans",
    "split_text",
]
