"""
OpenAI-compatible chat routes backed by Ollama.

POST /api/ollama/api/chat
POST /api/ollama/v1/chat/completions
GET  /api/ollama/api/tags
"""

import logging

import httpx
import orjson
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import ValidationError

from ollama_relay.config import settings
from ollama_relay.models.request import ChatCompletionRequest
from ollama_relay.providers.ollama import OllamaProvider
from ollama_relay.relay.errors import RelayTimeout
from ollama_relay.relay.exchange import AbortController, Exchange, LoggingSink
from ollama_relay.relay.fallback import to_chat_completion
from ollama_relay.relay.stream import OllamaStreamRelay
from ollama_relay.relay.translator import OLLAMA_CHAT_PATH, OLLAMA_LIST_MODEL_PATH, build_ollama_request
from ollama_relay.utils.auth import check_access
from ollama_relay.utils.exceptions import error_response, raise_bad_request

logger = logging.getLogger(__name__)

router = APIRouter()


def get_provider(request: Request) -> OllamaProvider:
    """Provider created at startup (see main.lifespan)."""
    return request.app.state.ollama


@router.post(f"/{OLLAMA_CHAT_PATH}")
@router.post("/v1/chat/completions")
async def chat_completions(
    request: ChatCompletionRequest,
    _: None = Depends(check_access),
    provider: OllamaProvider = Depends(get_provider),
):
    """
    Relay an OpenAI chat completion request to Ollama.

    Streams `data: <chat.completion.chunk>` records terminated by
    `data: [DONE]` when streaming (the default), otherwise returns one
    chat.completion document. Backend failures come back as
    {error, message, details} with the backend's status code.
    """
    if not request.messages:
        raise_bad_request("messages must not be empty")

    ollama_request = build_ollama_request(request)
    controller = AbortController()

    try:
        response = await provider.open_chat(ollama_request, controller)
    except RelayTimeout as e:
        logger.error(f"[Ollama Error] {e}")
        return error_response("Ollama API timeout", str(e), 504)
    except httpx.HTTPError as e:
        logger.error(f"[Ollama Error] {e}")
        return error_response("Failed to make request to Ollama API", str(e), 500)

    if response.status_code != 200:
        try:
            error_text = (await response.aread()).decode(errors="replace")
        finally:
            await response.aclose()
        logger.error(f"[Ollama Error] Response status: {response.status_code}")
        logger.error(f"[Ollama Error] Response text: {error_text}")
        return error_response(
            f"Ollama API error: {response.status_code} {response.reason_phrase}",
            error_text,
            response.status_code,
        )

    if ollama_request.stream:
        relay = OllamaStreamRelay(
            model=request.model,
            exchange=Exchange(sink=LoggingSink(f"Ollama {request.model}")),
            controller=controller,
        )
        return StreamingResponse(
            relay.sse(response),
            media_type="text/plain; charset=utf-8",
            headers={
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
                "X-Accel-Buffering": "no",  # Disable nginx buffering
            },
        )

    try:
        body = await response.aread()
    except httpx.HTTPError as e:
        logger.error(f"[Ollama Error] {e}")
        return error_response("Failed to read Ollama API response", str(e), 502)
    finally:
        await response.aclose()

    try:
        return JSONResponse(to_chat_completion(orjson.loads(body), request.model))
    except (orjson.JSONDecodeError, ValidationError) as e:
        logger.error(f"[Ollama Parse Error] {e}")
        return error_response("Invalid response from Ollama API", str(e), 502)


@router.get(f"/{OLLAMA_LIST_MODEL_PATH}")
async def list_models(
    _: None = Depends(check_access),
    provider: OllamaProvider = Depends(get_provider),
):
    """Ollama model list, or an empty list when listing is disabled."""
    if settings.disable_list_models:
        return {"models": []}

    try:
        result = await provider.list_models()
    except httpx.HTTPStatusError as e:
        return error_response(
            f"Ollama API error: {e.response.status_code}",
            e.response.text,
            e.response.status_code,
        )
    except httpx.HTTPError as e:
        logger.error(f"[Ollama Error] {e}")
        return error_response("Failed to make request to Ollama API", str(e), 500)

    return result.model_dump()
