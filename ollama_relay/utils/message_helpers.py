"""Message format conversion between OpenAI chat messages and Ollama messages."""

from typing import Any


def has_images(message: dict[str, Any]) -> bool:
    """
    Check if a message contains images.

    Args:
        message: OpenAI-style message dict with 'content' field

    Returns:
        True if message contains image_url content parts
    """
    content = message.get("content")
    if isinstance(content, list):
        return any(
            isinstance(item, dict) and item.get("type") == "image_url"
            for item in content
        )
    return False


def get_message_text_content(message: dict[str, Any]) -> str:
    """
    Text of a message, with multimodal parts reduced to their text.

    Examples:
        >>> get_message_text_content({"role": "user", "content": "Hi"})
        "Hi"
        >>> get_message_text_content({"role": "user", "content": [{"type": "text", "text": "Hi"}, {"type": "image_url", ...}]})
        "Hi"
    """
    content = message.get("content")

    if isinstance(content, str):
        return content

    if isinstance(content, list):
        text_parts = [
            item.get("text", "")
            for item in content
            if isinstance(item, dict) and item.get("type") == "text"
        ]
        return "\n".join(text_parts).strip()

    return ""


def format_for_ollama(message: dict[str, Any]) -> dict[str, Any]:
    """
    Convert an OpenAI-style message to Ollama's chat format.

    Ollama format for images:
    {
        "role": "user",
        "content": "What's in this image?",
        "images": ["iVBORw0KGgoAAAANSUhEUgAA..."]  # No data URL prefix
    }

    Only inline data URLs can be forwarded; remote image URLs are dropped.

    Args:
        message: OpenAI-format message

    Returns:
        Ollama-formatted message
    """
    formatted = {
        "role": message.get("role", "user"),
        "content": get_message_text_content(message),
    }

    if has_images(message):
        images = []
        for item in message["content"]:
            if not isinstance(item, dict) or item.get("type") != "image_url":
                continue
            url = (item.get("image_url") or {}).get("url", "")
            if url.startswith("data:") and "," in url:
                images.append(url.split(",", 1)[1])
        if images:
            formatted["images"] = images

    return formatted
