"""Observability helpers for ragchat."""

from __future__ import annotations

import logging
from contextvars import ContextVar
from typing import Iterable

import structlog
from prometheus_client import Counter, Gauge, Histogram

_logger_configured = False
_correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="-")


def configure_logging(level: int = logging.INFO) -> None:
    global _logger_configured  # noqa: PLW0603 - module-level guard
    if _logger_configured:
        return
    logging.basicConfig(level=level, format="%(message)s")
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _logger_configured = True


def bind_correlation_id(correlation_id: str) -> None:
    structlog.contextvars.bind_contextvars(correlation_id=correlation_id)
    _correlation_id_var.set(correlation_id)


def clear_correlation_id() -> None:
    structlog.contextvars.clear_contextvars()
    _correlation_id_var.set("-")


def get_correlation_id() -> str:
    return _correlation_id_var.get()


def get_logger(name: str = "ragchat") -> structlog.BoundLogger:
    configure_logging()
    return structlog.get_logger(name)


def _clamp_score(score: float) -> float:
    if score < 0.0:
        return 0.0
    if score > 1.0:
        return 1.0
    return score


class PipelineMetrics:
    """Prometheus metrics for pipeline stages."""

    ingestion_latency = Histogram(
        "ragchat_ingestion_duration_seconds",
        "Time spent chunking and embedding a document.",
        buckets=(0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0),
    )
    ingestion_chunks = Histogram(
        "ragchat_ingestion_chunk_count",
        "Chunks produced per uploaded document.",
        buckets=(0, 1, 5, 10, 20, 40, 80),
    )
    embedding_failures = Counter(
        "ragchat_embedding_failures_total",
        "Chunks left lexical-only because their embedding call failed.",
    )
    provider_errors = Counter(
        "ragchat_provider_errors_total",
        "Failed provider calls.",
        ["provider"],
    )
    retrieval_latency = Histogram(
        "ragchat_retrieval_duration_seconds",
        "Time spent retrieving context chunks.",
        buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 2.0, 5.0),
    )
    retrieval_requests = Counter(
        "ragchat_retrieval_requests_total",
        "Retrieval requests by strategy.",
        ["strategy"],
    )
    retrieved_chunk_count = Histogram(
        "ragchat_retrieved_chunk_count",
        "Number of chunks returned by retrieval.",
        buckets=(0, 1, 2, 3, 5, 8, 13),
    )
    grounding_score = Histogram(
        "ragchat_grounding_score",
        "Similarity score of retrieved chunks.",
        buckets=(0.0, 0.25, 0.5, 0.75, 1.0),
    )
    generation_latency = Histogram(
        "ragchat_generation_duration_seconds",
        "Time spent waiting for completions.",
        buckets=(0.05, 0.1, 0.5, 1.0, 2.0, 5.0, 10.0),
    )
    degraded_answers = Counter(
        "ragchat_degraded_answers_total",
        "Answers replaced by an error message.",
        ["reason"],
    )
    indexed_chunks = Gauge(
        "ragchat_indexed_chunk_count",
        "Vectorized chunks currently held by the index.",
    )

    @classmethod
    def observe_ingestion(cls, duration_seconds: float, chunk_count: int, failed_count: int = 0) -> None:
        cls.ingestion_latency.observe(duration_seconds)
        cls.ingestion_chunks.observe(chunk_count)
        if failed_count:
            cls.embedding_failures.inc(failed_count)

    @classmethod
    def observe_retrieval(
        cls,
        strategy: str,
        duration_seconds: float,
        chunk_count: int,
        scores: Iterable[float],
    ) -> None:
        cls.retrieval_requests.labels(strategy=strategy).inc()
        cls.retrieval_latency.observe(duration_seconds)
        cls.retrieved_chunk_count.observe(chunk_count)
        if strategy != "vector":
            return
        for score in scores:
            cls.grounding_score.observe(_clamp_score(score))

    @classmethod
    def observe_generation(cls, duration_seconds: float) -> None:
        cls.generation_latency.observe(duration_seconds)


__all__ = [
    "PipelineMetrics",
    "bind_correlation_id",
    "clear_correlation_id",
    "configure_logging",
    "get_correlation_id",
    "get_logger",
]
