"""Non-streaming path: one Ollama response body -> one OpenAI chat.completion."""

from typing import Any, Dict

from ollama_relay.models.ollama import OllamaChatChunk
from ollama_relay.models.response import ChatCompletion, Choice, ChoiceMessage
from ollama_relay.relay.exchange import FINISH_REASON_STOP
from ollama_relay.utils.time import unix_ms, unix_now


def to_chat_completion(data: Dict[str, Any], model: str) -> Dict[str, Any]:
    """
    Translate a complete Ollama /api/chat body.

    Missing content becomes an empty string; missing counters count as 0.
    """
    record = OllamaChatChunk.model_validate(data)

    completion = ChatCompletion(
        id=f"chatcmpl-{unix_ms()}",
        created=unix_now(),
        model=model,
        choices=[
            Choice(
                index=0,
                message=ChoiceMessage(content=record.content),
                finish_reason=FINISH_REASON_STOP,
            )
        ],
        usage=record.usage(),
    )
    return completion.model_dump()
