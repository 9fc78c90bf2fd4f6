"""Pydantic models for the ragchat API."""

from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from ragchat.models import Chunk, Document, IngestionProgress, Message

DOCUMENT_ID_PATTERN = r"^[A-Za-z0-9_-]{1,64}$"


class ChunkModel(BaseModel):
    chunk_id: str
    order: int
    content: str
    section: Optional[str] = None
    vectorized: bool = Field(..., description="Whether the chunk carries an embedding")

    @classmethod
    def from_chunk(cls, chunk: Chunk) -> "ChunkModel":
        return cls(
            chunk_id=chunk.chunk_id,
            order=chunk.order,
            content=chunk.content,
            section=chunk.metadata.section,
            vectorized=chunk.is_vectorized,
        )


class DocumentSummary(BaseModel):
    document_id: str = Field(..., description="Stable identifier for the uploaded document")
    name: str = Field(..., description="Display name of the document")
    media_type: str
    size_bytes: int = Field(..., ge=0)
    uploaded_at: datetime
    chunk_count: int = Field(..., ge=0, description="Number of chunks created for the document")
    searchable_chunk_count: int = Field(..., ge=0, description="Chunks available to vector search")

    @classmethod
    def from_document(cls, document: Document) -> "DocumentSummary":
        return cls(
            document_id=document.document_id,
            name=document.name,
            media_type=document.media_type,
            size_bytes=document.size_bytes,
            uploaded_at=document.uploaded_at,
            chunk_count=len(document.chunks),
            searchable_chunk_count=document.searchable_chunk_count,
        )


class DocumentDetail(DocumentSummary):
    chunks: List[ChunkModel]

    @classmethod
    def from_document(cls, document: Document) -> "DocumentDetail":
        summary = DocumentSummary.from_document(document)
        return cls(**summary.model_dump(), chunks=[ChunkModel.from_chunk(chunk) for chunk in document.chunks])


class DocumentListResponse(BaseModel):
    documents: List[DocumentSummary]


class TextDocumentRequest(BaseModel):
    """Payload for uploading already extracted text."""

    name: str = Field(..., min_length=1, description="Display name, usually the original file name")
    text: str = Field(..., min_length=1, description="Extracted plain text")
    media_type: str = Field(default="text/plain")
    mode: Optional[Literal["sentence", "fixed"]] = Field(default=None, description="Chunking strategy override")
    document_id: Optional[str] = Field(
        default=None,
        pattern=DOCUMENT_ID_PATTERN,
        description="Caller-chosen id, so progress can be polled while the upload is processed",
    )


class IngestionProgressModel(BaseModel):
    document_id: str
    status: Literal["pending", "embedding", "ready", "failed"]
    total_chunks: int
    embedded_chunks: int
    failed_chunks: int
    done: bool

    @classmethod
    def from_progress(cls, progress: IngestionProgress) -> "IngestionProgressModel":
        return cls(
            document_id=progress.document_id,
            status=progress.status.value,
            total_chunks=progress.total_chunks,
            embedded_chunks=progress.embedded_chunks,
            failed_chunks=progress.failed_chunks,
            done=progress.is_done,
        )


class ChatRequest(BaseModel):
    question: str = Field(..., min_length=1, description="End-user question to answer")


class MessageModel(BaseModel):
    message_id: str
    text: str
    role: Literal["user", "assistant"]
    timestamp: datetime
    sources: List[str] = Field(default_factory=list)
    is_error: bool = False
    request_id: Optional[int] = None

    @classmethod
    def from_message(cls, message: Message) -> "MessageModel":
        return cls(
            message_id=message.message_id,
            text=message.text,
            role=message.role.value,
            timestamp=message.timestamp,
            sources=list(message.sources),
            is_error=message.is_error,
            request_id=message.request_id,
        )


class MessagesResponse(BaseModel):
    messages: List[MessageModel]
