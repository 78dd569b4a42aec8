"""
Outbound request translation: OpenAI chat request -> Ollama /api/chat request.
"""

import logging
from typing import Dict, Optional

from ollama_relay.models.ollama import OllamaChatRequest, OllamaMessage, OllamaOptions
from ollama_relay.models.request import ChatCompletionRequest
from ollama_relay.utils.message_helpers import format_for_ollama

logger = logging.getLogger(__name__)

# Ollama endpoints (relative to the server root)
OLLAMA_CHAT_PATH = "api/chat"
OLLAMA_LIST_MODEL_PATH = "api/tags"
OLLAMA_EXAMPLE_ENDPOINT = "http://localhost:11434"

# Relay prefix under which the server exposes Ollama-backed routes
OLLAMA_API_PATH = "/api/ollama"

# Lowest output budget the generic-API client asks for
MIN_MAX_TOKENS = 1024


def resolve_base_url(base_url: Optional[str]) -> str:
    """Configured base URL, or the example endpoint, without trailing slash."""
    base = (base_url or "").strip() or OLLAMA_EXAMPLE_ENDPOINT
    if "://" not in base:
        base = f"http://{base}"
    return base.rstrip("/")


def join_url(base: str, path: str) -> str:
    """Join base and path with exactly one slash."""
    return f"{base.rstrip('/')}/{path.lstrip('/')}"


def build_chat_url(base_url: Optional[str]) -> str:
    return join_url(resolve_base_url(base_url), OLLAMA_CHAT_PATH)


def build_headers(api_key: Optional[str] = None) -> Dict[str, str]:
    """JSON headers, plus a bearer token when a key is configured."""
    headers = {
        "Content-Type": "application/json",
        "Accept": "application/json",
    }
    if api_key and api_key.strip():
        headers["Authorization"] = f"Bearer {api_key.strip()}"
    return headers


def apply_token_floor(max_tokens: Optional[int]) -> int:
    return max(max_tokens or 0, MIN_MAX_TOKENS)


def build_ollama_request(request: ChatCompletionRequest) -> OllamaChatRequest:
    """
    Project an OpenAI chat request onto Ollama's request shape.

    Sampling parameters move into `options` (max_tokens becomes num_predict);
    parameters the caller left unset stay unset so Ollama applies its own
    defaults. Streaming defaults to on, as in Ollama.
    """
    messages = [
        OllamaMessage(**format_for_ollama(message.model_dump()))
        for message in request.messages
    ]

    options = OllamaOptions(
        temperature=request.temperature,
        top_p=request.top_p,
        num_predict=request.max_tokens,
        presence_penalty=request.presence_penalty,
        frequency_penalty=request.frequency_penalty,
        stop=request.stop,
        seed=request.seed,
    )

    return OllamaChatRequest(
        model=request.model,
        messages=messages,
        stream=True if request.stream is None else request.stream,
        options=options,
    )
