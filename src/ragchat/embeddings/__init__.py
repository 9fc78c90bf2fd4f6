"""Embedding services."""

from .index import VectorIndex, cosine_similarity
from .service import EmbeddingBackend, EmbeddingClient, EmbeddingConfig, HashEmbeddingBackend

__all__ = [
    "EmbeddingBackend",
    "EmbeddingClient",
    "EmbeddingConfig",
    "HashEmbeddingBackend",
    "VectorIndex",
    "cosine_similarity",
]
