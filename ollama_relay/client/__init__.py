from ollama_relay.client.ollama import (
    AccessConfig,
    ChatOptions,
    ClientConfig,
    LLMModel,
    ModelConfig,
    OllamaApi,
    get_headers,
)

__all__ = [
    "AccessConfig",
    "ChatOptions",
    "ClientConfig",
    "LLMModel",
    "ModelConfig",
    "OllamaApi",
    "get_headers",
]
