"""Shared domain models used across the ragchat pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Sequence, Tuple
from uuid import uuid4

Embedding = Tuple[float, ...]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid4().hex


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class ChunkingMode(str, Enum):
    SENTENCE = "sentence"
    FIXED = "fixed"


class IngestionStatus(str, Enum):
    PENDING = "pending"
    EMBEDDING = "embedding"
    READY = "ready"
    FAILED = "failed"


@dataclass(frozen=True)
class ChunkMetadata:
    """Provenance captured for a chunk."""

    source: str
    page: int | None = None
    section: str | None = None
    start_offset: int | None = None


@dataclass(frozen=True)
class Chunk:
    """Contiguous fragment of a document, optionally carrying its embedding."""

    chunk_id: str
    content: str
    order: int
    metadata: ChunkMetadata
    embedding: Embedding | None = None

    def __post_init__(self) -> None:
        # An empty vector means "not vectorized".
        if self.embedding is not None:
            vector = tuple(float(value) for value in self.embedding)
            object.__setattr__(self, "embedding", vector or None)

    @property
    def is_vectorized(self) -> bool:
        return self.embedding is not None

    def with_embedding(self, embedding: Sequence[float] | None) -> "Chunk":
        return replace(self, embedding=tuple(embedding) if embedding is not None else None)


@dataclass(frozen=True)
class Document:
    """Uploaded document together with its chunk sequence."""

    document_id: str
    name: str
    content: str
    chunks: Tuple[Chunk, ...] = ()
    uploaded_at: datetime = field(default_factory=_utcnow)
    size_bytes: int = 0
    media_type: str = "text/plain"

    @property
    def vectorized_chunks(self) -> Tuple[Chunk, ...]:
        return tuple(chunk for chunk in self.chunks if chunk.is_vectorized)

    @property
    def searchable_chunk_count(self) -> int:
        return len(self.vectorized_chunks)


@dataclass(frozen=True)
class RetrievalResult:
    """Chunk scored against a single query."""

    chunk: Chunk
    score: float
    document_id: str

    @property
    def label(self) -> str:
        section = self.chunk.metadata.section
        if section:
            return f"{self.chunk.metadata.source} ({section})"
        return self.chunk.metadata.source


@dataclass(frozen=True)
class Message:
    """Single turn in the conversation log."""

    text: str
    role: Role
    message_id: str = field(default_factory=new_id)
    timestamp: datetime = field(default_factory=_utcnow)
    sources: Tuple[str, ...] = ()
    is_error: bool = False
    error_detail: str | None = None
    request_id: int | None = None


@dataclass(frozen=True)
class IngestionProgress:
    """Polling snapshot of a document's ingestion."""

    document_id: str
    status: IngestionStatus
    total_chunks: int = 0
    embedded_chunks: int = 0
    failed_chunks: int = 0

    @property
    def is_done(self) -> bool:
        return self.status in (IngestionStatus.READY, IngestionStatus.FAILED)
