"""Document ingestion pipeline."""

from .chunker import TextSpan, chunk_fixed, chunk_sentences, split_text
from .service import (
    DocumentIngestor,
    DuplicateDocumentError,
    EmptyDocumentError,
    IngestionConfig,
    IngestionError,
    decode_content,
)

__all__ = [
    "DocumentIngestor",
    "DuplicateDocumentError",
    "EmptyDocumentError",
    "IngestionConfig",
    "IngestionError",
    "TextSpan",
    "chunk_fixed",
    "chunk_sentences",
    "decode_content",
    "split_text",
]
