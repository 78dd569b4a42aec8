from ollama_relay.utils.sse import format_sse_data, format_sse_done, parse_sse_data
from ollama_relay.utils.format import pretty_object
from ollama_relay.utils.message_helpers import format_for_ollama, get_message_text_content

__all__ = [
    "format_sse_data",
    "format_sse_done",
    "parse_sse_data",
    "pretty_object",
    "format_for_ollama",
    "get_message_text_content",
]
