"""Retrieval components."""

from .service import KeywordRetriever, RetrievalConfig

__all__ = ["KeywordRetriever", "RetrievalConfig"]
