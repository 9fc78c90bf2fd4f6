"""In-memory cosine-similarity index over vectorized chunks."""

from __future__ import annotations

from dataclasses import dataclass
from itertools import count
from typing import Dict, Iterable, List, Sequence

import numpy as np

from ragchat.embeddings.service import EmbeddingBackend
from ragchat.errors import DimensionMismatchError
from ragchat.metrics.observability import PipelineMetrics
from ragchat.models import Chunk, Document, Embedding, RetrievalResult


def cosine_similarity(vec_a: Sequence[float], vec_b: Sequence[float]) -> float:
    """Return ``dot(a, b) / (|a| * |b|)``, or 0.0 when either vector is zero."""

    if len(vec_a) != len(vec_b):
        raise DimensionMismatchError(len(vec_a), len(vec_b))
    a = np.asarray(vec_a, dtype=float)
    b = np.asarray(vec_b, dtype=float)
    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return float(np.dot(a, b) / (norm_a * norm_b))


@dataclass(frozen=True)
class _Entry:
    sequence: int
    document_id: str
    chunk: Chunk


class VectorIndex:
    """Stores vectorized chunks per document and ranks them by cosine similarity.

    Not persisted; call :meth:`rebuild` with the stored documents after a
    restart. Assumes a single writer.
    """

    def __init__(self, embedding_backend: EmbeddingBackend | None = None) -> None:
        self._backend = embedding_backend
        self._entries: Dict[str, List[_Entry]] = {}
        self._sequence = count()
        self._dim: int | None = None

    def __len__(self) -> int:
        return sum(len(entries) for entries in self._entries.values())

    @property
    def dimension(self) -> int | None:
        return self._dim

    def document_ids(self) -> List[str]:
        return [document_id for document_id, entries in self._entries.items() if entries]

    def add(self, document_id: str, chunks: Iterable[Chunk]) -> int:
        """Append the vectorized ``chunks`` of a document; return how many were stored."""

        vectorized = [chunk for chunk in chunks if chunk.is_vectorized]
        if not vectorized:
            return 0
        expected = self._dim if self._dim is not None else len(vectorized[0].embedding)
        for chunk in vectorized:
            if len(chunk.embedding) != expected:
                raise DimensionMismatchError(expected, len(chunk.embedding))
        self._dim = expected
        bucket = self._entries.setdefault(document_id, [])
        bucket.extend(_Entry(next(self._sequence), document_id, chunk) for chunk in vectorized)
        PipelineMetrics.indexed_chunks.set(len(self))
        return len(vectorized)

    def remove(self, document_id: str) -> int:
        removed = len(self._entries.pop(document_id, []))
        if not len(self):
            self._dim = None
        PipelineMetrics.indexed_chunks.set(len(self))
        return removed

    def clear(self) -> None:
        self._entries.clear()
        self._dim = None
        PipelineMetrics.indexed_chunks.set(0)

    def rebuild(self, documents: Iterable[Document]) -> int:
        self.clear()
        return sum(self.add(document.document_id, document.chunks) for document in documents)

    def query(self, query_embedding: Sequence[float], top_k: int) -> List[RetrievalResult]:
        """Return the ``top_k`` most similar chunks, best first.

        Ties keep insertion order.
        """

        entries = sorted(
            (entry for bucket in self._entries.values() for entry in bucket),
            key=lambda entry: entry.sequence,
        )
        if top_k <= 0 or not entries:
            return []
        self._check_dimension(len(query_embedding))
        matrix = np.asarray([entry.chunk.embedding for entry in entries], dtype=float)
        query = np.asarray(query_embedding, dtype=float)
        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
        dots = matrix @ query
        safe_norms = np.where(norms == 0, 1.0, norms)
        scores = np.where(norms == 0, 0.0, dots / safe_norms)
        ranked = sorted(range(len(entries)), key=lambda index: -scores[index])
        return [
            RetrievalResult(chunk=entries[index].chunk, score=float(scores[index]), document_id=entries[index].document_id)
            for index in ranked[:top_k]
        ]

    async def search(self, text: str, top_k: int) -> List[RetrievalResult]:
        """Embed ``text`` and query the index; skips the embedding call when empty."""

        if top_k <= 0 or not len(self):
            return []
        if self._backend is None:
            raise RuntimeError("VectorIndex.search requires an embedding backend")
        query_embedding: Embedding = await self._backend.embed(text)
        return self.query(query_embedding, top_k)

    def _check_dimension(self, size: int) -> None:
        if self._dim is not None and size != self._dim:
            raise DimensionMismatchError(self._dim, size)


__all__ = ["VectorIndex", "cosine_similarity"]
