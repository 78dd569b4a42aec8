from ollama_relay.providers.ollama import OllamaProvider

__all__ = ["OllamaProvider"]
