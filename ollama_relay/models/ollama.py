"""
Ollama wire models.

Request body for POST /api/chat, the records of its NDJSON response stream,
and the GET /api/tags model listing.
"""

from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from ollama_relay.models.response import CompletionUsage


class OllamaMessage(BaseModel):
    role: str = "assistant"
    content: Optional[str] = ""
    images: Optional[List[str]] = None  # Base64 data without the data URL prefix

    model_config = ConfigDict(extra="ignore")


class OllamaOptions(BaseModel):
    """Sampling options; unset fields are left to Ollama's own defaults."""
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    num_predict: Optional[int] = None
    presence_penalty: Optional[float] = None
    frequency_penalty: Optional[float] = None
    stop: Optional[Union[str, List[str]]] = None
    seed: Optional[int] = None


class OllamaChatRequest(BaseModel):
    model: str
    messages: List[OllamaMessage]
    stream: bool = True
    options: OllamaOptions = Field(default_factory=OllamaOptions)

    def to_payload(self) -> dict:
        """Wire body; unset fields are omitted rather than sent as null."""
        payload = self.model_dump(exclude_none=True)
        payload.setdefault("options", {})
        return payload


class OllamaChatChunk(BaseModel):
    """One record of a /api/chat response (streamed line or full body)."""
    model: Optional[str] = None
    message: Optional[OllamaMessage] = None
    done: bool = False
    done_reason: Optional[str] = None
    prompt_eval_count: Optional[int] = None
    eval_count: Optional[int] = None
    error: Optional[str] = None

    model_config = ConfigDict(extra="ignore")

    @property
    def content(self) -> str:
        if self.message is None:
            return ""
        return self.message.content or ""

    def usage(self) -> CompletionUsage:
        prompt_tokens = self.prompt_eval_count or 0
        completion_tokens = self.eval_count or 0
        return CompletionUsage(
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=prompt_tokens + completion_tokens,
        )


class OllamaModelDetails(BaseModel):
    format: Optional[str] = None
    family: Optional[str] = None
    families: Optional[List[str]] = None
    parameter_size: Optional[str] = None
    quantization_level: Optional[str] = None


class OllamaModel(BaseModel):
    name: str
    modified_at: Optional[str] = None
    size: Optional[int] = None
    digest: Optional[str] = None
    details: OllamaModelDetails = Field(default_factory=OllamaModelDetails)

    model_config = ConfigDict(extra="ignore")


class OllamaListModelResponse(BaseModel):
    models: List[OllamaModel] = Field(default_factory=list)
