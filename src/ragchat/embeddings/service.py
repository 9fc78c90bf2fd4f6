"""Embedding backends for ragchat."""

from __future__ import annotations

import hashlib
import math
from dataclasses import dataclass
from numbers import Real
from typing import Any, Mapping, Protocol

import httpx

from ragchat.config import Settings
from ragchat.errors import MalformedResponse
from ragchat.models import Embedding
from ragchat.providers import ProviderClient


@dataclass(frozen=True)
class EmbeddingConfig:
    """Configuration for embedding backends."""

    model: str = "text-embedding-3-small"
    api_base_url: str = "https://api.openai.com/v1"
    api_key: str | None = None
    timeout: float = 30.0
    dim: int = 1536

    @classmethod
    def from_settings(cls, settings: Settings) -> "EmbeddingConfig":
        return cls(
            model=settings.embedding_model,
            api_base_url=settings.api_base_url,
            api_key=settings.api_key,
            timeout=settings.request_timeout_seconds,
        )


class EmbeddingBackend(Protocol):
    """Protocol describing embedding behaviour."""

    async def embed(self, text: str) -> Embedding:
        """Return the embedding vector for ``text``."""


class EmbeddingClient(ProviderClient):
    """Client for an OpenAI-compatible ``/embeddings`` endpoint.

    Each call is independent and carries no retry; callers fanning out per
    chunk must pair results with their inputs themselves.
    """

    provider_name = "embeddings"

    def __init__(self, config: EmbeddingConfig | None = None, *, client: httpx.AsyncClient | None = None) -> None:
        self._config = config or EmbeddingConfig()
        super().__init__(
            api_key=self._config.api_key,
            base_url=self._config.api_base_url,
            timeout=self._config.timeout,
            client=client,
        )

    async def embed(self, text: str) -> Embedding:
        payload = await self.post_json("embeddings", {"input": text, "model": self._config.model})
        return _parse_embedding(payload)


def _parse_embedding(payload: Mapping[str, Any]) -> Embedding:
    try:
        raw = payload["data"][0]["embedding"]
    except (KeyError, IndexError, TypeError) as exc:
        raise MalformedResponse(f"Embedding response missing data[0].embedding: {exc!r}") from exc
    if not isinstance(raw, list) or not raw:
        raise MalformedResponse("Embedding response contained an empty or non-list vector")
    if not all(isinstance(value, Real) and not isinstance(value, bool) for value in raw):
        raise MalformedResponse("Embedding response contained non-numeric values")
    return tuple(float(value) for value in raw)


class HashEmbeddingBackend:
    """Deterministic lightweight embedding fallback used for testing."""

    def __init__(self, config: EmbeddingConfig | None = None, *, normalize: bool = True) -> None:
        self._config = config or EmbeddingConfig(dim=64)
        self._normalize = normalize
        self.calls = 0

    def _hash_to_vector(self, text: str) -> Embedding:
        digest = hashlib.sha256(text.encode("utf-8")).digest()
        repeat = (self._config.dim + len(digest) - 1) // len(digest)
        raw = (digest * repeat)[: self._config.dim]
        vector = [byte / 255.0 for byte in raw]
        if self._normalize:
            norm = math.sqrt(sum(value * value for value in vector)) or 1.0
            vector = [value / norm for value in vector]
        return tuple(vector)

    async def embed(self, text: str) -> Embedding:
        self.calls += 1
        return self._hash_to_vector(text)
