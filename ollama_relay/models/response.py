from pydantic import BaseModel, Field
from typing import List, Literal, Optional


class CompletionUsage(BaseModel):
    """Token counters reported back to OpenAI-style callers"""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ChoiceMessage(BaseModel):
    role: Literal["assistant"] = "assistant"
    content: str = ""


class Choice(BaseModel):
    index: int = 0
    message: ChoiceMessage
    finish_reason: Optional[str] = "stop"


class ChatCompletion(BaseModel):
    """Single (non-streaming) chat completion response"""

    id: str
    object: Literal["chat.completion"] = "chat.completion"
    created: int
    model: str
    choices: List[Choice]
    usage: CompletionUsage = Field(default_factory=CompletionUsage)


class ChoiceDelta(BaseModel):
    content: Optional[str] = None


class ChunkChoice(BaseModel):
    index: int = 0
    delta: ChoiceDelta = Field(default_factory=ChoiceDelta)
    finish_reason: Optional[str] = None


class ChatCompletionChunk(BaseModel):
    """One record of the streamed response"""

    id: str
    object: Literal["chat.completion.chunk"] = "chat.completion.chunk"
    created: int
    model: str
    choices: List[ChunkChoice]
    usage: Optional[CompletionUsage] = None  # Only set on the final record

    def to_payload(self) -> dict:
        """Dump for the wire; usage is left out until it is known."""
        payload = self.model_dump()
        if self.usage is None:
            payload.pop("usage")
        if self.choices[0].delta.content is None:
            payload["choices"][0]["delta"] = {}
        return payload
