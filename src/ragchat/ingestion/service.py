"""Document ingestion service for ragchat."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, replace
from typing import Dict, List, Sequence

from ragchat.config import Settings
from ragchat.documents.store import DocumentStore
from ragchat.embeddings.index import VectorIndex
from ragchat.embeddings.service import EmbeddingBackend
from ragchat.errors import ConfigurationError, ProviderError
from ragchat.ingestion.chunker import TextSpan, split_text
from ragchat.metrics.observability import PipelineMetrics, get_logger
from ragchat.models import (
    Chunk,
    ChunkingMode,
    ChunkMetadata,
    Document,
    IngestionProgress,
    IngestionStatus,
    new_id,
)

PLACEHOLDER_TEMPLATE = "[Content of {name} ({media_type}) could not be extracted]"


class IngestionError(RuntimeError):
    """Raised when ingestion fails for a particular document."""


class EmptyDocumentError(IngestionError):
    """Raised when an upload carries no usable text."""


class DuplicateDocumentError(IngestionError):
    """Raised when a caller-supplied document id is already stored."""


@dataclass(frozen=True)
class IngestionConfig:
    """Configuration for document ingestion."""

    mode: ChunkingMode = ChunkingMode.SENTENCE
    max_chunk_chars: int = 1000
    fixed_chunk_size: int = 1000
    max_chunks_per_document: int | None = None
    embedding_concurrency: int = 4
    encoding: str = "utf-8"

    @classmethod
    def from_settings(cls, settings: Settings) -> "IngestionConfig":
        return cls(
            mode=ChunkingMode(settings.chunking_mode),
            max_chunk_chars=settings.max_chunk_chars,
            fixed_chunk_size=settings.fixed_chunk_size,
            max_chunks_per_document=settings.max_chunks_per_document,
            embedding_concurrency=settings.embedding_concurrency,
        )


def decode_content(data: bytes, name: str, media_type: str, encoding: str = "utf-8") -> str:
    """Decode uploaded bytes, degrading to a placeholder for unreadable content."""

    try:
        return data.decode(encoding)
    except UnicodeDecodeError:
        return PLACEHOLDER_TEMPLATE.format(name=name, media_type=media_type)


class DocumentIngestor:
    """Chunks, embeds and registers uploaded documents.

    Embedding calls for one document run concurrently; the document reaches
    the index and then the store only after every call has settled. A chunk
    whose embedding fails, or whose vector does not match the index
    dimensionality, stays lexical-only. Callers that want to poll
    :meth:`progress` pass their own ``document_id``. Only one upload may be
    in flight at a time; the caller enforces this.
    """

    _logger = get_logger("ingestion")

    def __init__(
        self,
        store: DocumentStore,
        index: VectorIndex,
        embedding_backend: EmbeddingBackend,
        config: IngestionConfig | None = None,
    ) -> None:
        self._store = store
        self._index = index
        self._backend = embedding_backend
        self._config = config or IngestionConfig()
        self._progress: Dict[str, IngestionProgress] = {}

    def progress(self, document_id: str) -> IngestionProgress | None:
        return self._progress.get(document_id)

    async def ingest_bytes(
        self,
        data: bytes,
        name: str,
        media_type: str = "application/octet-stream",
        *,
        mode: ChunkingMode | str | None = None,
        document_id: str | None = None,
    ) -> Document:
        text = decode_content(data, name, media_type, self._config.encoding)
        return await self.ingest_text(
            text,
            name,
            media_type,
            mode=mode,
            size_bytes=len(data),
            document_id=document_id,
        )

    async def ingest_text(
        self,
        text: str,
        name: str,
        media_type: str = "text/plain",
        *,
        mode: ChunkingMode | str | None = None,
        size_bytes: int | None = None,
        document_id: str | None = None,
    ) -> Document:
        if not text or not text.strip():
            raise EmptyDocumentError(f"Document {name!r} has no text content")
        caller_supplied_id = document_id is not None
        if document_id is None:
            document_id = new_id()
        elif self._store.get(document_id) is not None or self._in_flight(document_id):
            raise DuplicateDocumentError(f"Document {document_id!r} already exists")
        chunking_mode = ChunkingMode(mode) if mode is not None else self._config.mode
        self._set_progress(document_id, IngestionStatus.PENDING)
        start = time.perf_counter()
        try:
            spans = self._split(text, chunking_mode)
            chunks = self._build_chunks(document_id, name, spans)
            self._set_progress(document_id, IngestionStatus.EMBEDDING, total=len(chunks))
            chunks = await self._embed_all(document_id, chunks)
            document = Document(
                document_id=document_id,
                name=name,
                content=text,
                chunks=tuple(chunks),
                size_bytes=size_bytes if size_bytes is not None else len(text.encode(self._config.encoding)),
                media_type=media_type,
            )
            self._register(document)
        except Exception:
            # Only a caller holding the id can read a failed entry.
            if caller_supplied_id:
                self._set_progress(document_id, IngestionStatus.FAILED)
            else:
                self._progress.pop(document_id, None)
            self._logger.error("ingestion.failed", document_id=document_id, name=name)
            raise
        duration = time.perf_counter() - start
        embedded = document.searchable_chunk_count
        failed = len(chunks) - embedded
        self._set_progress(document_id, IngestionStatus.READY, total=len(chunks), embedded=embedded, failed=failed)
        PipelineMetrics.observe_ingestion(duration, len(chunks), failed)
        self._logger.info(
            "ingestion.complete",
            document_id=document_id,
            name=name,
            mode=chunking_mode.value,
            chunk_count=len(chunks),
            embedded_count=embedded,
            duration_seconds=duration,
        )
        return document

    def remove(self, document_id: str) -> bool:
        self._index.remove(document_id)
        self._progress.pop(document_id, None)
        removed = self._store.remove(document_id)
        if removed:
            self._logger.info("ingestion.removed", document_id=document_id)
        return removed

    def _in_flight(self, document_id: str) -> bool:
        progress = self._progress.get(document_id)
        return progress is not None and not progress.is_done

    def _register(self, document: Document) -> None:
        self._index.add(document.document_id, document.chunks)
        try:
            self._store.add(document)
        except Exception:
            self._index.remove(document.document_id)
            raise

    def _split(self, text: str, mode: ChunkingMode) -> List[TextSpan]:
        size = self._config.fixed_chunk_size if mode is ChunkingMode.FIXED else self._config.max_chunk_chars
        spans = split_text(text, mode, size)
        cap = self._config.max_chunks_per_document
        if cap is not None and len(spans) > cap:
            self._logger.warning("ingestion.chunks_capped", produced=len(spans), cap=cap)
            spans = spans[:cap]
        return spans

    @staticmethod
    def _build_chunks(document_id: str, name: str, spans: Sequence[TextSpan]) -> List[Chunk]:
        return [
            Chunk(
                chunk_id=f"{document_id}-{order}",
                content=span.text,
                order=order,
                metadata=ChunkMetadata(source=name, section=f"Part {order + 1}", start_offset=span.start),
            )
            for order, span in enumerate(spans)
        ]

    async def _embed_all(self, document_id: str, chunks: Sequence[Chunk]) -> List[Chunk]:
        semaphore = asyncio.Semaphore(self._config.embedding_concurrency)
        missing_credential: List[str] = []

        async def embed_one(chunk: Chunk) -> Chunk:
            async with semaphore:
                try:
                    vector = await self._backend.embed(chunk.content)
                except ConfigurationError as exc:
                    missing_credential.append(str(exc))
                    return chunk
                except ProviderError as exc:
                    self._logger.warning(
                        "ingestion.embedding_failed",
                        document_id=document_id,
                        chunk_id=chunk.chunk_id,
                        status_code=exc.status_code,
                        detail=str(exc),
                    )
                    return chunk
            return chunk.with_embedding(vector)

        # gather keeps results aligned with ``chunks``
        embedded = list(await asyncio.gather(*(embed_one(chunk) for chunk in chunks)))
        if missing_credential:
            self._logger.warning("ingestion.embedding_skipped", document_id=document_id, detail=missing_credential[0])
        return self._match_dimension(document_id, embedded)

    def _match_dimension(self, document_id: str, chunks: Sequence[Chunk]) -> List[Chunk]:
        """Demote vectors whose size differs from the index (or the first vector) to lexical-only."""

        expected = self._index.dimension
        matched: List[Chunk] = []
        for chunk in chunks:
            if chunk.is_vectorized:
                size = len(chunk.embedding)
                if expected is None:
                    expected = size
                elif size != expected:
                    self._logger.warning(
                        "ingestion.dimension_mismatch",
                        document_id=document_id,
                        chunk_id=chunk.chunk_id,
                        expected=expected,
                        actual=size,
                    )
                    chunk = replace(chunk, embedding=None)
            matched.append(chunk)
        return matched

    def _set_progress(
        self,
        document_id: str,
        status: IngestionStatus,
        *,
        total: int = 0,
        embedded: int = 0,
        failed: int = 0,
    ) -> None:
        self._progress[document_id] = IngestionProgress(
            document_id=document_id,
            status=status,
            total_chunks=total,
            embedded_chunks=embedded,
            failed_chunks=failed,
        )
