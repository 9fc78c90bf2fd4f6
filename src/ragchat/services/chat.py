"""Question answering that combines retrieval, prompting and generation."""

from __future__ import annotations

import time
from dataclasses import dataclass
from itertools import count
from typing import Sequence, Tuple

from ragchat.config import Settings
from ragchat.documents.store import DocumentStore
from ragchat.embeddings.index import VectorIndex
from ragchat.errors import ConfigurationError, RagError
from ragchat.metrics.observability import PipelineMetrics, get_logger
from ragchat.models import Message, RetrievalResult, Role
from ragchat.retrieval.service import KeywordRetriever, RetrievalConfig
from ragchat.services.conversation import ConversationLog
from ragchat.services.generation import GenerationBackend

APOLOGY_TEXT = "Sorry, I encountered an error. Please try again."
CONFIGURE_KEY_TEXT = "Please configure your API key in Settings first."

CONTEXT_SYSTEM_PROMPT = (
    "You are a helpful assistant that answers questions using the provided document context. "
    "If the context does not contain enough information to answer, say so explicitly before "
    "offering any general guidance."
)
GENERAL_SYSTEM_PROMPT = (
    "You are a helpful assistant. No document context is available for this question, "
    "so answer from your general knowledge."
)


@dataclass(frozen=True)
class PromptBuilderConfig:
    """Configuration for prompt construction."""

    context_system_prompt: str = CONTEXT_SYSTEM_PROMPT
    general_system_prompt: str = GENERAL_SYSTEM_PROMPT
    separator: str = "\n\n"


class PromptBuilder:
    """Builds the system/user prompt pair for the completion backend."""

    def __init__(self, config: PromptBuilderConfig | None = None) -> None:
        self._config = config or PromptBuilderConfig()

    def build_context(self, results: Sequence[RetrievalResult]) -> str:
        return self._config.separator.join(result.chunk.content for result in results)

    def build(self, question: str, results: Sequence[RetrievalResult]) -> Tuple[str, str]:
        if not results:
            return self._config.general_system_prompt, question
        user_prompt = f"{self.build_context(results)}{self._config.separator}{question}"
        return self._config.context_system_prompt, user_prompt


class ChatService:
    """Answers questions over the uploaded documents.

    Provider and configuration failures never escape :meth:`answer`; they
    become an error-flagged assistant message whose ``error_detail`` keeps
    the original cause for diagnostics.
    """

    def __init__(
        self,
        settings: Settings,
        store: DocumentStore,
        index: VectorIndex,
        generator: GenerationBackend,
        *,
        keyword_retriever: KeywordRetriever | None = None,
        prompt_builder: PromptBuilder | None = None,
        conversation: ConversationLog | None = None,
    ) -> None:
        self._settings = settings
        self._store = store
        self._index = index
        self._generator = generator
        self._keyword_retriever = keyword_retriever or KeywordRetriever(
            RetrievalConfig(top_k=settings.top_k, sort_by_score=settings.keyword_sort_by_score),
        )
        self._prompt_builder = prompt_builder or PromptBuilder()
        self._conversation = conversation if conversation is not None else ConversationLog()
        self._requests = count(1)
        self._latest_request = 0
        self.last_error: Exception | None = None
        self._logger = get_logger("chat")

    @property
    def conversation(self) -> ConversationLog:
        return self._conversation

    def is_latest(self, request_id: int | None) -> bool:
        """Return whether ``request_id`` belongs to the most recent question."""

        return request_id == self._latest_request

    async def ask(self, question: str) -> Message:
        return await self.answer(question, self._conversation)

    async def answer(self, question: str, conversation: ConversationLog | None = None) -> Message:
        if not question or not question.strip():
            raise ValueError("question must not be empty")
        request_id = next(self._requests)
        self._latest_request = request_id
        if conversation is not None:
            conversation.append(Message(text=question, role=Role.USER, request_id=request_id))
        try:
            reply = await self._generate_reply(question, request_id)
        except ConfigurationError as exc:
            reply = self._degraded(CONFIGURE_KEY_TEXT, exc, request_id, reason="configuration")
        except RagError as exc:
            reply = self._degraded(APOLOGY_TEXT, exc, request_id, reason="provider")
        if conversation is not None:
            conversation.append(reply)
        return reply

    async def retrieve(self, question: str) -> Tuple[str, list[RetrievalResult]]:
        """Return the retrieval strategy used and its results for ``question``."""

        top_k = self._settings.top_k
        start = time.perf_counter()
        if len(self._index):
            strategy = "vector"
            results = await self._index.search(question, top_k)
        else:
            strategy = "keyword"
            results = self._keyword_retriever.search_chunks(question, self._store.list(), top_k)
        duration = time.perf_counter() - start
        PipelineMetrics.observe_retrieval(strategy, duration, len(results), (result.score for result in results))
        self._logger.info(
            "retrieval.complete",
            strategy=strategy,
            chunk_count=len(results),
            duration_seconds=duration,
            top_k=top_k,
        )
        return strategy, results

    async def _generate_reply(self, question: str, request_id: int) -> Message:
        if not self._settings.has_credential:
            raise ConfigurationError("Provider API key is not configured")
        _strategy, results = await self.retrieve(question)
        system_prompt, user_prompt = self._prompt_builder.build(question, results)
        max_tokens, temperature = self._settings.generation_params()
        generation_start = time.perf_counter()
        text = await self._generator.complete(system_prompt, user_prompt, max_tokens, temperature)
        generation_duration = time.perf_counter() - generation_start
        PipelineMetrics.observe_generation(generation_duration)
        self._logger.info(
            "generation.complete",
            request_id=request_id,
            duration_seconds=generation_duration,
            source_count=len(results),
        )
        return Message(
            text=text,
            role=Role.ASSISTANT,
            sources=tuple(result.label for result in results),
            request_id=request_id,
        )

    def _degraded(self, text: str, exc: Exception, request_id: int, *, reason: str) -> Message:
        self.last_error = exc
        PipelineMetrics.degraded_answers.labels(reason=reason).inc()
        self._logger.error("answer.degraded", request_id=request_id, reason=reason, detail=str(exc))
        return Message(
            text=text,
            role=Role.ASSISTANT,
            is_error=True,
            error_detail=f"{type(exc).__name__}: {exc}",
            request_id=request_id,
        )
