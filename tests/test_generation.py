from __future__ import annotations

import httpx
import pytest

from ragchat.errors import ConfigurationError, MalformedResponse, ProviderError
from ragchat.services.generation import CompletionClient, GenerationConfig


def _client(handler, api_key: str | None = "sk-test") -> CompletionClient:
    config = GenerationConfig(api_key=api_key, api_base_url="https://provider.test/v1/", model="chat-small")
    return CompletionClient(config, client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


@pytest.mark.asyncio
async def test_complete_sends_system_and_user_messages(fake_provider):
    client = CompletionClient(
        GenerationConfig(api_key="sk-test", api_base_url="https://provider.test/v1", model="chat-small"),
        client=fake_provider.client(),
    )
    text = await client.complete("be brief", "what colour is the sky?", 256, 0.2)
    assert text == "The sky is blue."
    (request,) = fake_provider.completion_requests
    assert request == {
        "model": "chat-small",
        "messages": [
            {"role": "system", "content": "be brief"},
            {"role": "user", "content": "what colour is the sky?"},
        ],
        "max_tokens": 256,
        "temperature": 0.2,
    }


@pytest.mark.asyncio
async def test_base_url_trailing_slash_is_normalized():
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        return httpx.Response(200, json={"choices": [{"message": {"content": "ok"}}]})

    assert await _client(handler).complete("s", "u", 10, 0.0) == "ok"
    assert seen == ["https://provider.test/v1/chat/completions"]


@pytest.mark.asyncio
async def test_provider_error_message_is_surfaced():
    client = _client(lambda request: httpx.Response(429, json={"error": {"message": "Rate limit reached"}}))
    with pytest.raises(ProviderError) as excinfo:
        await client.complete("s", "u", 10, 0.0)
    assert excinfo.value.status_code == 429
    assert "Rate limit reached" in str(excinfo.value)


@pytest.mark.asyncio
async def test_status_reported_when_error_body_is_not_json():
    client = _client(lambda request: httpx.Response(500, text="<html>oops</html>"))
    with pytest.raises(ProviderError) as excinfo:
        await client.complete("s", "u", 10, 0.0)
    assert excinfo.value.detail == "HTTP 500"


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [{}, {"choices": []}, {"choices": [{"message": {}}]}, {"choices": ["x"]}])
async def test_missing_choices_is_malformed(payload):
    client = _client(lambda request: httpx.Response(200, json=payload))
    with pytest.raises(MalformedResponse):
        await client.complete("s", "u", 10, 0.0)


@pytest.mark.asyncio
async def test_missing_credential_raises_configuration_error(fake_provider):
    client = CompletionClient(GenerationConfig(api_key=""), client=fake_provider.client())
    with pytest.raises(ConfigurationError):
        await client.complete("s", "u", 10, 0.0)
    assert fake_provider.call_count == 0
