"""
Async client for the relay's OpenAI-compatible Ollama endpoint.

Consumes the `data:` event stream produced by the server and reports progress
through callbacks: on_update(text, delta) for each fragment, on_finish(text)
exactly once, on_error(error) when the exchange ends abnormally.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

import httpx
import orjson

from ollama_relay.client.locale import DEFAULT_LANG, get_text
from ollama_relay.models.ollama import OllamaListModelResponse
from ollama_relay.models.response import CompletionUsage
from ollama_relay.relay.errors import (
    BackendNonSuccess,
    BackendStreamError,
    BackendUnreachable,
    StreamAborted,
)
from ollama_relay.relay.exchange import AbortController, Exchange, ExchangeState
from ollama_relay.relay.translator import (
    OLLAMA_API_PATH,
    OLLAMA_CHAT_PATH,
    OLLAMA_LIST_MODEL_PATH,
    apply_token_floor,
    build_headers,
    join_url,
)
from ollama_relay.utils.format import pretty_object
from ollama_relay.utils.message_helpers import get_message_text_content
from ollama_relay.utils.sse import SSE_DONE_DATA, parse_sse_data

logger = logging.getLogger(__name__)

DEFAULT_API_HOST = "http://localhost:8000"
REQUEST_TIMEOUT = 60.0  # Seconds until the first response

# Content types the relay streams with
EVENT_STREAM_CONTENT_TYPES = ("text/event-stream", "text/plain")


@dataclass
class AccessConfig:
    """User-supplied endpoint settings."""

    use_custom_config: bool = False
    ollama_url: str = ""
    ollama_api_key: str = ""


@dataclass
class ClientConfig:
    access: AccessConfig = field(default_factory=AccessConfig)
    default_api_host: str = DEFAULT_API_HOST
    lang: str = DEFAULT_LANG
    request_timeout: float = REQUEST_TIMEOUT
    disable_list_models: bool = True


@dataclass
class ModelConfig:
    model: str = "llama3"
    temperature: float = 0.5
    top_p: float = 1.0
    max_tokens: int = 4000
    presence_penalty: float = 0.0
    frequency_penalty: float = 0.0
    stream: bool = True


@dataclass
class ChatOptions:
    messages: List[Dict[str, Any]]
    on_finish: Callable[[str], None]
    config: ModelConfig = field(default_factory=ModelConfig)
    on_update: Optional[Callable[[str, str], None]] = None
    on_error: Optional[Callable[[Exception], None]] = None
    on_controller: Optional[Callable[[AbortController], None]] = None


@dataclass
class LLMModelProvider:
    id: str
    provider_name: str
    provider_type: str
    sorted: int


@dataclass
class LLMModel:
    name: str
    available: bool
    provider: LLMModelProvider
    sorted: int


OLLAMA_PROVIDER = LLMModelProvider(
    id="ollama", provider_name="Ollama", provider_type="ollama", sorted=16
)


class _CallbackSink:
    """Forwards exchange notifications to the ChatOptions callbacks."""

    def __init__(self, options: ChatOptions):
        self.options = options

    def on_delta(self, text: str, delta: str) -> None:
        if self.options.on_update:
            self.options.on_update(text, delta)

    def on_complete(self, final_text: str, usage: CompletionUsage) -> None:
        self.options.on_finish(final_text)

    def on_error(self, error: Exception) -> None:
        if self.options.on_error:
            self.options.on_error(error)


def get_headers(access: AccessConfig) -> Dict[str, str]:
    """Request headers; the API key is only sent with a custom config."""
    api_key = access.ollama_api_key if access.use_custom_config else None
    return build_headers(api_key)


async def _next_line(lines: AsyncIterator[str]) -> Optional[str]:
    try:
        return await lines.__anext__()
    except StopAsyncIteration:
        return None


class OllamaApi:
    """Chat client for the relay's Ollama endpoint."""

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.config = config or ClientConfig()
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(30.0, read=None))

    def path(self, path: str) -> str:
        access = self.config.access

        base_url = ""
        if access.use_custom_config:
            base_url = access.ollama_url.strip()

        if not base_url:
            base_url = f"{self.config.default_api_host}{OLLAMA_API_PATH}"

        base_url = base_url.rstrip("/")
        if not base_url.startswith("http"):
            base_url = f"https://{base_url}"

        logger.debug(f"[Proxy Endpoint] {base_url} {path}")
        return join_url(base_url, path)

    @staticmethod
    def extract_message(res: Dict[str, Any]) -> str:
        choices = res.get("choices") or []
        if not choices:
            return ""
        return ((choices[0] or {}).get("message") or {}).get("content") or ""

    async def chat(self, options: ChatOptions) -> None:
        """
        Run one chat exchange.

        Never raises for relay failures: they are reported through on_error,
        and on_finish always receives the text accumulated so far.
        """
        messages = [
            {"role": m.get("role", "user"), "content": get_message_text_content(m)}
            for m in options.messages
        ]
        model_config = options.config

        request_payload = {
            "messages": messages,
            "stream": model_config.stream,
            "model": model_config.model,
            "temperature": model_config.temperature,
            "presence_penalty": model_config.presence_penalty,
            "frequency_penalty": model_config.frequency_penalty,
            "top_p": model_config.top_p,
            "max_tokens": apply_token_floor(model_config.max_tokens),
        }
        logger.debug(f"[Request] ollama payload: {request_payload}")

        controller = AbortController()
        if options.on_controller:
            options.on_controller(controller)

        exchange = Exchange(sink=_CallbackSink(options))
        controller.add_callback(exchange.abort)

        chat_path = self.path(OLLAMA_CHAT_PATH)
        headers = get_headers(self.config.access)
        body = orjson.dumps(request_payload)

        timer = controller.abort_after(self.config.request_timeout)
        try:
            if model_config.stream:
                await self._stream_chat(chat_path, body, headers, controller, timer, exchange)
            else:
                response = await controller.guard(
                    self._client.post(chat_path, content=body, headers=headers)
                )
                timer.cancel()
                if response.status_code != 200:
                    await self._reject(response, controller, exchange)
                    return
                exchange.append(self.extract_message(response.json()))
                exchange.finalize(ExchangeState.COMPLETED)
        except StreamAborted as e:
            exchange.abort(e)
        except asyncio.CancelledError:
            exchange.abort()
            raise
        except httpx.HTTPError as e:
            logger.error(f"[Request] failed to make a chat request: {e}")
            exchange.finalize(ExchangeState.ERRORED, error=BackendUnreachable(str(e)))
        except Exception as e:
            logger.exception("[Request] failed to make a chat request")
            exchange.finalize(ExchangeState.ERRORED, error=e)
        finally:
            timer.cancel()

    async def _stream_chat(
        self,
        url: str,
        body: bytes,
        headers: Dict[str, str],
        controller: AbortController,
        timer: asyncio.TimerHandle,
        exchange: Exchange,
    ) -> None:
        request = self._client.build_request("POST", url, content=body, headers=headers)
        response = await controller.guard(self._client.send(request, stream=True))
        timer.cancel()

        try:
            content_type = response.headers.get("content-type", "")
            logger.debug(f"[Ollama] request response content type: {content_type}")

            if response.status_code != 200 or not content_type.startswith(
                EVENT_STREAM_CONTENT_TYPES
            ):
                await self._reject(response, controller, exchange)
                return

            lines = response.aiter_lines().__aiter__()
            while not exchange.is_finished:
                line = await controller.guard(_next_line(lines))
                if line is None:
                    break
                exchange.start_streaming()
                self._handle_line(line, exchange)

            # Stream closed
            exchange.finalize(ExchangeState.COMPLETED)
        finally:
            await response.aclose()

    def _handle_line(self, line: str, exchange: Exchange) -> None:
        data = parse_sse_data(line)
        if data is None:
            # Blank separators, comments and event names
            return
        if data == SSE_DONE_DATA:
            exchange.finalize(ExchangeState.COMPLETED)
            return

        try:
            payload = orjson.loads(data)
        except orjson.JSONDecodeError:
            logger.error(f"[Request] parse error {data!r}")
            return
        if not isinstance(payload, dict):
            return

        if payload.get("error"):
            error = payload["error"]
            message = error.get("message") if isinstance(error, dict) else str(error)
            exchange.finalize(ExchangeState.ERRORED, error=BackendStreamError(message))
            return

        if payload.get("usage"):
            exchange.usage = CompletionUsage.model_validate(payload["usage"])

        choices = payload.get("choices") or []
        if choices:
            delta = ((choices[0] or {}).get("delta") or {}).get("content")
            if delta:
                exchange.append(delta)

    async def _reject(
        self, response: httpx.Response, controller: AbortController, exchange: Exchange
    ) -> None:
        """Finish with an explanation instead of a stream."""
        response_texts = [exchange.text]
        if response.status_code == 401:
            response_texts.append(get_text("unauthorized", self.config.lang))

        raw = await controller.guard(response.aread())
        extra_info = raw.decode(errors="replace")
        try:
            extra_info = pretty_object(orjson.loads(raw))
        except orjson.JSONDecodeError:
            pass
        response_texts.append(extra_info)

        exchange.append("\n\n".join(text for text in response_texts if text))
        exchange.finalize(
            ExchangeState.ERRORED,
            error=BackendNonSuccess(
                response.status_code, extra_info, reason=response.reason_phrase
            ),
        )

    async def speech(self, options: Any) -> bytes:
        raise NotImplementedError("Speech synthesis is not supported by Ollama")

    async def usage(self) -> Dict[str, int]:
        return {"used": 0, "total": 0}

    async def models(self) -> List[LLMModel]:
        if self.config.disable_list_models:
            return []

        response = await self._client.get(
            self.path(OLLAMA_LIST_MODEL_PATH),
            headers=get_headers(self.config.access),
        )
        response.raise_for_status()
        res = OllamaListModelResponse.model_validate(response.json())

        return [
            LLMModel(
                name=model.name,
                available=True,
                provider=OLLAMA_PROVIDER,
                sorted=2000 + index,
            )
            for index, model in enumerate(res.models)
        ]

    async def cleanup(self):
        """Cleanup HTTP client resources."""
        if self._client:
            await self._client.aclose()
            self._client = None
