"""Lexical retrieval used when no embeddings are available."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Sequence

from ragchat.models import Chunk, Document, RetrievalResult


@dataclass(frozen=True)
class RetrievalConfig:
    """Configuration for keyword retrieval."""

    top_k: int = 5
    sort_by_score: bool = False


class KeywordRetriever:
    """Scores chunks by how many query terms appear in them.

    By default matches are returned in document/chunk order, not by score;
    set ``sort_by_score`` to rank the best matches first.
    """

    def __init__(self, config: RetrievalConfig | None = None) -> None:
        self._config = config or RetrievalConfig()

    def search_chunks(
        self,
        query: str,
        documents: Iterable[Document],
        top_k: int | None = None,
        *,
        sort_by_score: bool | None = None,
    ) -> List[RetrievalResult]:
        limit = self._config.top_k if top_k is None else top_k
        if limit <= 0:
            return []
        terms = query.lower().split()
        if not terms:
            return []
        matches: List[RetrievalResult] = []
        for document in documents:
            for chunk in document.chunks:
                score = _term_overlap_score(terms, chunk)
                if score > 0:
                    matches.append(RetrievalResult(chunk=chunk, score=float(score), document_id=document.document_id))
        should_sort = self._config.sort_by_score if sort_by_score is None else sort_by_score
        if should_sort:
            matches.sort(key=lambda result: result.score, reverse=True)
        return matches[:limit]

    def search(self, query: str, documents: Sequence[Document], top_k: int | None = None) -> List[str]:
        return [result.chunk.content for result in self.search_chunks(query, documents, top_k)]


def _term_overlap_score(terms: Sequence[str], chunk: Chunk) -> int:
    content = chunk.content.lower()
    return sum(1 for term in terms if term in content)


__all__ = ["KeywordRetriever", "RetrievalConfig"]
