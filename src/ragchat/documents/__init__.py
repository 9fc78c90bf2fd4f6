"""Document storage."""

from .store import DocumentStore, InMemoryDocumentStore, JsonDocumentStore

__all__ = ["DocumentStore", "InMemoryDocumentStore", "JsonDocumentStore"]
