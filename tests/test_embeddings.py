from __future__ import annotations

import httpx
import pytest

from ragchat.embeddings.service import EmbeddingClient, EmbeddingConfig, HashEmbeddingBackend
from ragchat.errors import ConfigurationError, MalformedResponse, ProviderError

from conftest import letter_vector


def _client(handler, api_key: str | None = "sk-test") -> EmbeddingClient:
    config = EmbeddingConfig(api_key=api_key, api_base_url="https://provider.test/v1", model="embed-small")
    return EmbeddingClient(config, client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


@pytest.mark.asyncio
async def test_embed_posts_input_and_model(fake_provider):
    client = EmbeddingClient(
        EmbeddingConfig(api_key="sk-test", api_base_url="https://provider.test/v1", model="embed-small"),
        client=fake_provider.client(),
    )
    vector = await client.embed("hello world")
    assert vector == tuple(letter_vector("hello world"))
    assert fake_provider.embedding_requests == [{"input": "hello world", "model": "embed-small"}]
    assert fake_provider.headers[0]["Authorization"] == "Bearer sk-test"


@pytest.mark.asyncio
async def test_http_error_raises_provider_error_with_status():
    client = _client(lambda request: httpx.Response(401, json={"error": {"message": "bad key"}}))
    with pytest.raises(ProviderError) as excinfo:
        await client.embed("text")
    assert excinfo.value.status_code == 401
    assert excinfo.value.detail == "bad key"


@pytest.mark.asyncio
async def test_http_error_without_body_reports_status():
    client = _client(lambda request: httpx.Response(503, text="unavailable"))
    with pytest.raises(ProviderError) as excinfo:
        await client.embed("text")
    assert excinfo.value.detail == "HTTP 503"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [{}, {"data": []}, {"data": [{"embedding": []}]}, {"data": [{"embedding": ["a", "b"]}]}],
)
async def test_malformed_body_raises_malformed_response(payload):
    client = _client(lambda request: httpx.Response(200, json=payload))
    with pytest.raises(MalformedResponse):
        await client.embed("text")


@pytest.mark.asyncio
async def test_transport_failure_is_a_provider_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ProviderError):
        await _client(handler).embed("text")


@pytest.mark.asyncio
async def test_missing_credential_skips_the_request(fake_provider):
    client = EmbeddingClient(EmbeddingConfig(api_key=None), client=fake_provider.client())
    with pytest.raises(ConfigurationError):
        await client.embed("text")
    assert fake_provider.call_count == 0


@pytest.mark.asyncio
async def test_hash_embedding_dim_matches_config():
    backend = HashEmbeddingBackend(EmbeddingConfig(dim=64))
    vec = await backend.embed("hello world")
    assert isinstance(vec, tuple)
    assert len(vec) == 64
    assert vec == await backend.embed("hello world")
    assert backend.calls == 2
