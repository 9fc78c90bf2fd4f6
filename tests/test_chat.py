"""End-to-end tests for the chat orchestrator."""

from __future__ import annotations

from dataclasses import dataclass

import pytest

from ragchat.config import Settings
from ragchat.documents.store import InMemoryDocumentStore
from ragchat.embeddings.index import VectorIndex
from ragchat.embeddings.service import EmbeddingClient, EmbeddingConfig
from ragchat.errors import ProviderError
from ragchat.ingestion.service import DocumentIngestor, IngestionConfig
from ragchat.models import Chunk, ChunkMetadata, RetrievalResult, Role
from ragchat.services.chat import (
    APOLOGY_TEXT,
    CONFIGURE_KEY_TEXT,
    CONTEXT_SYSTEM_PROMPT,
    GENERAL_SYSTEM_PROMPT,
    ChatService,
    PromptBuilder,
)
from ragchat.services.conversation import ConversationLog
from ragchat.services.generation import CompletionClient, GenerationConfig


@dataclass
class Pipeline:
    ingestor: DocumentIngestor
    chat: ChatService
    index: VectorIndex


def _pipeline(settings: Settings, fake_provider) -> Pipeline:
    http = fake_provider.client()
    embedder = EmbeddingClient(EmbeddingConfig.from_settings(settings), client=http)
    generator = CompletionClient(GenerationConfig.from_settings(settings), client=http)
    store = InMemoryDocumentStore()
    index = VectorIndex(embedder)
    ingestor = DocumentIngestor(store, index, embedder, IngestionConfig.from_settings(settings))
    return Pipeline(ingestor=ingestor, chat=ChatService(settings, store, index, generator), index=index)


@pytest.mark.asyncio
async def test_grounded_answer_with_one_source(settings, fake_provider):
    pipeline = _pipeline(settings, fake_provider)
    document = await pipeline.ingestor.ingest_text("The sky is blue. Grass is green.", "colors.txt")
    assert len(document.chunks) == 1

    reply = await pipeline.chat.answer("What color is the sky?")

    assert reply.role is Role.ASSISTANT
    assert not reply.is_error
    assert reply.text == "The sky is blue."
    assert reply.sources == ("colors.txt (Part 1)",)
    assert fake_provider.embedding_requests[-1]["input"] == "What color is the sky?"
    (request,) = fake_provider.completion_requests
    system, user = request["messages"]
    assert system == {"role": "system", "content": CONTEXT_SYSTEM_PROMPT}
    assert user["content"] == "The sky is blue. Grass is green.\n\nWhat color is the sky?"
    assert request["max_tokens"] == 1000
    assert request["temperature"] == pytest.approx(0.7)


@pytest.mark.asyncio
async def test_no_documents_uses_general_knowledge(settings, fake_provider):
    fake_provider.reply = "Paris."
    pipeline = _pipeline(settings, fake_provider)

    reply = await pipeline.chat.answer("What is the capital of France?")

    assert reply.text == "Paris."
    assert reply.sources == ()
    assert fake_provider.embedding_requests == []
    (request,) = fake_provider.completion_requests
    assert request["messages"][0]["content"] == GENERAL_SYSTEM_PROMPT
    assert request["messages"][1]["content"] == "What is the capital of France?"


@pytest.mark.asyncio
async def test_missing_credential_degrades_without_network(fake_provider):
    settings = Settings(environment="test", api_key=None, _env_file=None)
    pipeline = _pipeline(settings, fake_provider)
    await pipeline.ingestor.ingest_text("The sky is blue.", "colors.txt")

    reply = await pipeline.chat.answer("What color is the sky?")

    assert reply.is_error
    assert reply.text == CONFIGURE_KEY_TEXT
    assert "ConfigurationError" in reply.error_detail
    assert fake_provider.call_count == 0


@pytest.mark.asyncio
async def test_lexical_only_documents_fall_back_to_keyword_search(settings, fake_provider):
    fake_provider.embedding_status = 401
    pipeline = _pipeline(settings, fake_provider)
    await pipeline.ingestor.ingest_text("The sky is blue. Grass is green.", "colors.txt")
    fake_provider.embedding_status = 200
    embedding_calls = len(fake_provider.embedding_requests)

    reply = await pipeline.chat.answer("sky color")

    assert not reply.is_error
    assert reply.sources == ("colors.txt (Part 1)",)
    assert len(fake_provider.embedding_requests) == embedding_calls
    user_prompt = fake_provider.completion_requests[0]["messages"][1]["content"]
    assert user_prompt.endswith("\n\nsky color")


@pytest.mark.asyncio
async def test_completion_failure_returns_apology_and_keeps_diagnostics(settings, fake_provider):
    fake_provider.completion_status = 429
    pipeline = _pipeline(settings, fake_provider)

    reply = await pipeline.chat.answer("Anything?")

    assert reply.is_error
    assert reply.text == APOLOGY_TEXT
    assert "Rate limit reached" not in reply.text
    assert "Rate limit reached" in reply.error_detail
    assert isinstance(pipeline.chat.last_error, ProviderError)


@pytest.mark.asyncio
async def test_query_embedding_failure_is_degraded(settings, fake_provider):
    pipeline = _pipeline(settings, fake_provider)
    await pipeline.ingestor.ingest_text("The sky is blue.", "colors.txt")
    fake_provider.embedding_status = 500

    reply = await pipeline.chat.answer("What color is the sky?")

    assert reply.is_error
    assert fake_provider.completion_requests == []


@pytest.mark.asyncio
async def test_conversation_log_and_request_sequence(settings, fake_provider):
    pipeline = _pipeline(settings, fake_provider)
    conversation = ConversationLog()

    first = await pipeline.chat.answer("First question?", conversation)
    second = await pipeline.chat.answer("Second question?", conversation)

    assert [message.role for message in conversation] == [Role.USER, Role.ASSISTANT, Role.USER, Role.ASSISTANT]
    assert conversation.messages()[0].text == "First question?"
    assert second.request_id > first.request_id
    assert pipeline.chat.is_latest(second.request_id)
    assert not pipeline.chat.is_latest(first.request_id)
    conversation.clear()
    assert len(conversation) == 0


@pytest.mark.asyncio
async def test_ask_uses_the_service_conversation(settings, fake_provider):
    pipeline = _pipeline(settings, fake_provider)
    await pipeline.chat.ask("Hello?")
    assert len(pipeline.chat.conversation) == 2


@pytest.mark.asyncio
async def test_advanced_mode_applies_configured_generation_params(fake_provider):
    settings = Settings(
        environment="test",
        api_key="sk-test",
        advanced_mode=True,
        max_tokens=300,
        temperature=0.2,
        _env_file=None,
    )
    pipeline = _pipeline(settings, fake_provider)
    await pipeline.chat.answer("Hi?")
    request = fake_provider.completion_requests[0]
    assert (request["max_tokens"], request["temperature"]) == (300, 0.2)


@pytest.mark.asyncio
async def test_empty_question_is_rejected(settings, fake_provider):
    with pytest.raises(ValueError):
        await _pipeline(settings, fake_provider).chat.answer("   ")


def test_prompt_builder_joins_chunks_with_blank_lines():
    results = [
        RetrievalResult(
            chunk=Chunk(chunk_id=f"d-{i}", content=text, order=i, metadata=ChunkMetadata(source="d.txt")),
            score=1.0,
            document_id="d",
        )
        for i, text in enumerate(["First chunk.", "Second chunk."])
    ]
    system, user = PromptBuilder().build("Question?", results)
    assert system == CONTEXT_SYSTEM_PROMPT
    assert user == "First chunk.\n\nSecond chunk.\n\nQuestion?"
    assert results[0].label == "d.txt"
