from ollama_relay.relay.exchange import AbortController, Exchange, ExchangeState, RelayEvent
from ollama_relay.relay.fallback import to_chat_completion
from ollama_relay.relay.stream import OllamaStreamRelay
from ollama_relay.relay.translator import build_chat_url, build_ollama_request

__all__ = [
    "AbortController",
    "Exchange",
    "ExchangeState",
    "RelayEvent",
    "OllamaStreamRelay",
    "build_chat_url",
    "build_ollama_request",
    "to_chat_completion",
]
