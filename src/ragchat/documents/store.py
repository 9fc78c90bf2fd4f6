"""Document store implementations."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Protocol

from pydantic import TypeAdapter

from ragchat.metrics.observability import get_logger
from ragchat.models import Document

_DOCUMENTS_ADAPTER = TypeAdapter(List[Document])


class DocumentStore(Protocol):
    """Capability injected into the ingestion and chat services."""

    def add(self, document: Document) -> None:
        """Store a fully processed document."""

    def list(self) -> List[Document]:
        """Return documents in upload order."""

    def get(self, document_id: str) -> Document | None:
        """Return the document with ``document_id`` if present."""

    def remove(self, document_id: str) -> bool:
        """Delete a document; return whether it existed."""


class InMemoryDocumentStore:
    """Process-local store; contents are lost on restart."""

    def __init__(self) -> None:
        self._documents: Dict[str, Document] = {}

    def __len__(self) -> int:
        return len(self._documents)

    def add(self, document: Document) -> None:
        self._documents[document.document_id] = document

    def list(self) -> List[Document]:
        return list(self._documents.values())

    def get(self, document_id: str) -> Document | None:
        return self._documents.get(document_id)

    def remove(self, document_id: str) -> bool:
        return self._documents.pop(document_id, None) is not None


class JsonDocumentStore(InMemoryDocumentStore):
    """Store that mirrors its contents, embeddings included, to a JSON file."""

    _logger = get_logger("documents")

    def __init__(self, path: str | Path) -> None:
        super().__init__()
        self._path = Path(path)
        if self._path.exists():
            for document in _DOCUMENTS_ADAPTER.validate_json(self._path.read_bytes()):
                self._documents[document.document_id] = document
            self._logger.info("documents.loaded", path=str(self._path), count=len(self._documents))

    @property
    def path(self) -> Path:
        return self._path

    def add(self, document: Document) -> None:
        super().add(document)
        try:
            self._flush()
        except OSError:
            super().remove(document.document_id)
            raise

    def remove(self, document_id: str) -> bool:
        removed = super().remove(document_id)
        if removed:
            self._flush()
        return removed

    def _flush(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp_path.write_bytes(_DOCUMENTS_ADAPTER.dump_json(self.list()))
        tmp_path.replace(self._path)


__all__ = ["DocumentStore", "InMemoryDocumentStore", "JsonDocumentStore"]
