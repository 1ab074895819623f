"""
Chat-completions client for the Nexus LLM gateway.

Nexus exposes an OpenAI-compatible API under ``<endpoint>/v1`` and holds the real provider key
server-side, so the SDK is configured with a placeholder key.  Responses are handed to the core as
plain dictionaries so the orchestration code never depends on SDK types.
"""

import logging
from typing import (
    Any,
    AsyncIterator,
    Dict,
    List,
    Mapping,
)

import httpx
import openai

from nexuschat.core.errors import TransportError

logger = logging.getLogger(__name__)


def api_base_url(endpoint: str) -> str:
    return endpoint.rstrip("/") + "/v1"


class CompletionClient:
    """Thin async wrapper around :class:`openai.AsyncOpenAI`."""

    def __init__(
        self,
        endpoint: str,
        api_key: str = "not-used",
        timeout: float = 60.0,
        headers: Mapping[str, str] | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.endpoint = endpoint
        self._client = openai.AsyncOpenAI(
            api_key=api_key,
            base_url=api_base_url(endpoint),
            timeout=timeout,
            max_retries=0,
            default_headers=dict(headers or {}),
            http_client=http_client,
        )
        logger.info("Completion client connected to %s", endpoint)

    async def aclose(self) -> None:
        await self._client.close()

    async def list_models(self) -> List[str]:
        """Return the ids of the models the gateway offers."""
        try:
            page = await self._client.models.list()
        except (openai.APIError, httpx.HTTPError) as exc:
            raise TransportError(f"Failed to load models: {exc}") from exc
        return [model.id for model in page.data]

    async def complete(
        self, payload: Mapping[str, Any], headers: Mapping[str, str] | None = None
    ) -> Dict[str, Any]:
        """Send a non-streaming request and return the whole response."""
        try:
            response = await self._client.chat.completions.create(
                **payload, extra_headers=dict(headers or {})
            )
        except (openai.APIError, httpx.HTTPError) as exc:
            raise TransportError(str(exc)) from exc
        return response.model_dump(exclude_none=True)

    async def stream(
        self, payload: Mapping[str, Any], headers: Mapping[str, str] | None = None
    ) -> AsyncIterator[Dict[str, Any]]:
        """
        Send a streaming request and yield every fragment as a dictionary.

        Any SDK or HTTP failure, before or during the stream, surfaces as :class:`TransportError`.
        """
        try:
            stream = await self._client.chat.completions.create(
                **payload, extra_headers=dict(headers or {})
            )
            async for chunk in stream:
                yield chunk.model_dump(exclude_none=True)
        except (openai.APIError, httpx.HTTPError) as exc:
            raise TransportError(str(exc)) from exc
