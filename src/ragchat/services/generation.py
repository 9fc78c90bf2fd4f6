"""Chat-completion backends for ragchat."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Protocol

import httpx

from ragchat.config import Settings
from ragchat.errors import MalformedResponse
from ragchat.providers import ProviderClient


@dataclass(frozen=True)
class GenerationConfig:
    """Configuration for answer generation."""

    model: str = "gpt-3.5-turbo"
    api_base_url: str = "https://api.openai.com/v1"
    api_key: str | None = None
    timeout: float = 30.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "GenerationConfig":
        return cls(
            model=settings.completion_model,
            api_base_url=settings.api_base_url,
            api_key=settings.api_key,
            timeout=settings.request_timeout_seconds,
        )


class GenerationBackend(Protocol):
    """Protocol describing generation behaviour."""

    async def complete(self, system_prompt: str, user_prompt: str, max_tokens: int, temperature: float) -> str:
        """Return the model's reply to a system/user prompt pair."""


class CompletionClient(ProviderClient):
    """Client for an OpenAI-compatible ``/chat/completions`` endpoint."""

    provider_name = "completions"

    def __init__(self, config: GenerationConfig | None = None, *, client: httpx.AsyncClient | None = None) -> None:
        self._config = config or GenerationConfig()
        super().__init__(
            api_key=self._config.api_key,
            base_url=self._config.api_base_url,
            timeout=self._config.timeout,
            client=client,
        )

    async def complete(self, system_prompt: str, user_prompt: str, max_tokens: int, temperature: float) -> str:
        payload = {
            "model": self._config.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        data = await self.post_json("chat/completions", payload)
        return _first_choice_text(data)


def _first_choice_text(data: Mapping[str, Any]) -> str:
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices:
        raise MalformedResponse("Completion response has no choices")
    message = choices[0].get("message") if isinstance(choices[0], Mapping) else None
    content = message.get("content") if isinstance(message, Mapping) else None
    if not isinstance(content, str):
        raise MalformedResponse("Completion response choice has no message content")
    return content
