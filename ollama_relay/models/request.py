from pydantic import BaseModel, ConfigDict
from typing import List, Optional, Literal, Union


class TextContent(BaseModel):
    """Text content part of a multimodal message"""
    type: Literal["text"] = "text"
    text: str


class ImageUrl(BaseModel):
    url: str  # data URL ("data:image/png;base64,...") or remote URL
    detail: Optional[str] = None


class ImageUrlContent(BaseModel):
    """Image content part of a multimodal message"""
    type: Literal["image_url"] = "image_url"
    image_url: ImageUrl


class Message(BaseModel):
    """Message with either text-only (string) or multimodal (array) content"""
    role: str
    content: Union[str, List[Union[TextContent, ImageUrlContent]], None] = None

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        json_schema_extra={
            "examples": [
                {
                    "role": "user",
                    "content": "What is the capital of France?"
                },
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": "What's in this image?"},
                        {
                            "type": "image_url",
                            "image_url": {"url": "data:image/jpeg;base64,iVBORw0KGgoAAAANSUhEUgAA..."}
                        }
                    ]
                }
            ]
        }
    )


class ChatCompletionRequest(BaseModel):
    """OpenAI-style chat completion request accepted by the relay."""
    model: str
    messages: List[Message]
    stream: Optional[bool] = None  # None means "backend default" (streaming)
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    max_tokens: Optional[int] = None
    presence_penalty: Optional[float] = None
    frequency_penalty: Optional[float] = None
    stop: Optional[Union[str, List[str]]] = None
    seed: Optional[int] = None

    model_config = ConfigDict(frozen=True, extra="ignore")
