from __future__ import annotations

import json
import string
from dataclasses import dataclass, field

import httpx
import pytest

from ragchat.config import Settings


def letter_vector(text: str) -> list[float]:
    """Bag-of-letters embedding: similar wording gives similar vectors."""

    lowered = text.lower()
    return [float(lowered.count(letter)) for letter in string.ascii_lowercase]


@dataclass
class FakeProvider:
    """Stands in for an OpenAI-compatible embeddings + chat completions API."""

    reply: str = "The sky is blue."
    embedding_status: int = 200
    completion_status: int = 200
    dimensions: int | None = None
    fail_inputs: set[str] = field(default_factory=set)
    embedding_requests: list[dict] = field(default_factory=list)
    completion_requests: list[dict] = field(default_factory=list)
    headers: list[httpx.Headers] = field(default_factory=list)

    @property
    def call_count(self) -> int:
        return len(self.embedding_requests) + len(self.completion_requests)

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.headers.append(request.headers)
        if request.url.path.endswith("/embeddings"):
            self.embedding_requests.append(body)
            if self.embedding_status != 200 or body["input"] in self.fail_inputs:
                status = self.embedding_status if self.embedding_status != 200 else 500
                return httpx.Response(status, json={"error": {"message": "Incorrect API key provided"}})
            vector = letter_vector(body["input"])[: self.dimensions]
            return httpx.Response(200, json={"data": [{"embedding": vector}]})
        if request.url.path.endswith("/chat/completions"):
            self.completion_requests.append(body)
            if self.completion_status != 200:
                return httpx.Response(self.completion_status, json={"error": {"message": "Rate limit reached"}})
            return httpx.Response(200, json={"choices": [{"message": {"role": "assistant", "content": self.reply}}]})
        return httpx.Response(404, json={"error": {"message": "unknown route"}})

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def settings() -> Settings:
    return Settings(environment="test", api_key="sk-test", max_chunk_chars=100, _env_file=None)
