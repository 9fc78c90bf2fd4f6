"""Runtime configuration for the ragchat services."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_MAX_TOKENS = 1000
DEFAULT_TEMPERATURE = 0.7


class Settings(BaseSettings):
    """Environment-backed configuration model.

    The core only reads these values; persisting them is the caller's job.
    """

    model_config = SettingsConfigDict(env_prefix="ragchat_", env_file=".env", case_sensitive=False)

    environment: Literal["dev", "test", "prod"] = "dev"
    data_dir: Path = Path("./data")
    persist_documents: bool = False

    # Provider
    api_key: str | None = None
    api_base_url: str = "https://api.openai.com/v1"
    embedding_model: str = "text-embedding-3-small"
    completion_model: str = "gpt-3.5-turbo"
    embedding_backend: Literal["provider", "hash"] = "provider"
    request_timeout_seconds: float = 30.0

    # Generation
    max_tokens: int = Field(default=DEFAULT_MAX_TOKENS, gt=0)
    temperature: float = Field(default=DEFAULT_TEMPERATURE, ge=0.0, le=2.0)
    advanced_mode: bool = False

    # Chunking / ingestion
    chunking_mode: Literal["sentence", "fixed"] = "sentence"
    max_chunk_chars: int = Field(default=1000, gt=0)
    fixed_chunk_size: int = Field(default=1000, gt=0)
    max_chunks_per_document: int | None = Field(default=None, gt=0)
    embedding_concurrency: int = Field(default=4, gt=0)
    max_upload_size_mb: int = Field(default=25, gt=0)

    # Retrieval
    top_k: int = Field(default=5, gt=0)
    keyword_sort_by_score: bool = False

    @property
    def has_credential(self) -> bool:
        return bool(self.api_key and self.api_key.strip())

    @property
    def documents_path(self) -> Path:
        return self.data_dir / "documents.json"

    def generation_params(self) -> tuple[int, float]:
        """Return ``(max_tokens, temperature)`` honouring the advanced-mode switch."""

        if not self.advanced_mode:
            return DEFAULT_MAX_TOKENS, DEFAULT_TEMPERATURE
        return self.max_tokens, self.temperature


@lru_cache(maxsize=1)
def _cached_settings() -> Settings:
    return Settings()


def get_settings(override: Optional[dict[str, object]] = None) -> Settings:
    """Return settings, optionally overriding values without mutating cache."""

    if override:
        return Settings(**override)
    return _cached_settings()
