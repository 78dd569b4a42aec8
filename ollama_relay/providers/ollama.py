"""
Ollama backend provider.

Owns the pooled HTTP client used to reach the Ollama server and performs the
outbound calls: chat (streamed or not) and model listing.
"""

import logging
from typing import Optional

import httpx
import orjson

from ollama_relay.models.ollama import OllamaChatRequest, OllamaListModelResponse
from ollama_relay.relay.exchange import AbortController
from ollama_relay.relay.translator import (
    OLLAMA_CHAT_PATH,
    OLLAMA_LIST_MODEL_PATH,
    build_headers,
    join_url,
    resolve_base_url,
)

logger = logging.getLogger(__name__)

# Connect/write limit for backend calls; reads are unbounded while streaming
_CONNECT_TIMEOUT = 30.0


class OllamaProvider:
    """Ollama server reachable at `base_url`."""

    name = "ollama"

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: float = 600.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = resolve_base_url(base_url)
        self.api_key = api_key
        self._timeout = float(timeout)
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(_CONNECT_TIMEOUT, read=None),
        )
        logger.info(f"[Ollama Request] Using base URL: {self.base_url}")

    @property
    def timeout(self) -> float:
        """Seconds allowed until the first backend response."""
        return self._timeout

    @property
    def chat_url(self) -> str:
        return join_url(self.base_url, OLLAMA_CHAT_PATH)

    @property
    def list_models_url(self) -> str:
        return join_url(self.base_url, OLLAMA_LIST_MODEL_PATH)

    async def open_chat(
        self, payload: OllamaChatRequest, controller: AbortController
    ) -> httpx.Response:
        """
        Send the chat request and return once response headers arrive.

        The body is left unread (stream mode); the caller must close the
        response. The first-response timer is armed here and cleared as soon
        as headers are in.
        """
        body = payload.to_payload()
        logger.info(f"[Ollama Request] URL: {self.chat_url}")
        logger.debug(
            f"[Ollama Request] Body: {orjson.dumps(body, option=orjson.OPT_INDENT_2).decode()}"
        )

        request = self._client.build_request(
            "POST",
            self.chat_url,
            content=orjson.dumps(body),
            headers=build_headers(self.api_key),
        )
        timer = controller.abort_after(self.timeout)
        try:
            return await controller.guard(self._client.send(request, stream=True))
        finally:
            timer.cancel()

    async def list_models(self) -> OllamaListModelResponse:
        response = await self._client.get(
            self.list_models_url, headers=build_headers(self.api_key)
        )
        response.raise_for_status()
        return OllamaListModelResponse.model_validate(response.json())

    async def cleanup(self):
        """Cleanup HTTP client resources."""
        if self._client:
            await self._client.aclose()
            self._client = None
