"""HTTP transport shared by the embedding and completion provider clients."""

from __future__ import annotations

from typing import Any, Mapping

import httpx

from ragchat.errors import ConfigurationError, MalformedResponse, ProviderError
from ragchat.metrics.observability import PipelineMetrics, get_logger


def extract_error_message(response: httpx.Response) -> str:
    """Return the provider-supplied error message, or the bare HTTP status."""

    try:
        payload = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    if isinstance(payload, Mapping):
        error = payload.get("error")
        if isinstance(error, Mapping) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error:
            return error
    return f"HTTP {response.status_code}"


class ProviderClient:
    """Bearer-authenticated JSON POST client for an OpenAI-compatible API."""

    provider_name = "provider"

    def __init__(
        self,
        *,
        api_key: str | None,
        base_url: str,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._logger = get_logger(f"providers.{self.provider_name}")

    @property
    def has_credential(self) -> bool:
        return bool(self._api_key and self._api_key.strip())

    async def post_json(self, path: str, payload: Mapping[str, Any]) -> Mapping[str, Any]:
        if not self.has_credential:
            raise ConfigurationError("Provider API key is not configured")
        url = f"{self._base_url}/{path.lstrip('/')}"
        headers = {"Authorization": f"Bearer {self._api_key}", "Content-Type": "application/json"}
        try:
            response = await self._client.post(url, json=dict(payload), headers=headers)
        except httpx.HTTPError as exc:
            PipelineMetrics.provider_errors.labels(provider=self.provider_name).inc()
            self._logger.warning("provider.transport_error", url=url, detail=str(exc))
            raise ProviderError(f"{self.provider_name} request failed: {exc}", detail=str(exc)) from exc
        if response.is_error:
            detail = extract_error_message(response)
            PipelineMetrics.provider_errors.labels(provider=self.provider_name).inc()
            self._logger.warning("provider.http_error", url=url, status_code=response.status_code, detail=detail)
            raise ProviderError(
                f"{self.provider_name} returned HTTP {response.status_code}: {detail}",
                status_code=response.status_code,
                detail=detail,
            )
        try:
            data = response.json()
        except ValueError as exc:
            raise MalformedResponse(
                f"{self.provider_name} returned a non-JSON body",
                status_code=response.status_code,
            ) from exc
        if not isinstance(data, Mapping):
            raise MalformedResponse(
                f"{self.provider_name} returned an unexpected payload",
                status_code=response.status_code,
            )
        return data

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


__all__ = ["ProviderClient", "extract_error_message"]
