"""Exception hierarchy shared by the ragchat pipeline."""

from __future__ import annotations


class RagError(RuntimeError):
    """Base class for failures the chat orchestrator knows how to degrade."""


class ConfigurationError(RagError):
    """Raised when the provider credential is missing or invalid."""


class ProviderError(RagError):
    """Raised when an embedding or completion provider call fails."""

    def __init__(self, message: str, *, status_code: int | None = None, detail: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail


class MalformedResponse(ProviderError):
    """Raised when a provider response body does not have the expected shape."""


class DimensionMismatchError(RagError, ValueError):
    """Raised when embeddings of different dimensionality are compared."""

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(f"Embedding dimension mismatch: expected {expected}, got {actual}")
        self.expected = expected
        self.actual = actual


__all__ = [
    "ConfigurationError",
    "DimensionMismatchError",
    "MalformedResponse",
    "ProviderError",
    "RagError",
]
