"""Line framing and record decoding for Ollama's newline-delimited JSON stream."""

import codecs
import logging
from typing import List, Optional

import orjson
from pydantic import ValidationError

from ollama_relay.models.ollama import OllamaChatChunk
from ollama_relay.relay.errors import MalformedRecord

logger = logging.getLogger(__name__)

# Keys that make a JSON object a chat record rather than a control record
RECORD_KEYS = frozenset({"message", "done", "error"})


class NDJSONLineSplitter:
    """
    Splits incoming byte buffers into complete, non-blank lines.

    A line cut by a buffer boundary is held until the next buffer; multi-byte
    UTF-8 sequences split across buffers are handled by the incremental decoder.
    """

    def __init__(self):
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending = ""

    def feed(self, data: bytes) -> List[str]:
        text = self._pending + self._decoder.decode(data)
        *lines, self._pending = text.split("\n")
        return [line.strip() for line in lines if line.strip()]

    def flush(self) -> List[str]:
        """Return whatever is left once the stream has ended."""
        text = (self._pending + self._decoder.decode(b"", final=True)).strip()
        self._pending = ""
        return [text] if text else []


def decode_record(line: str) -> Optional[OllamaChatChunk]:
    """
    Decode one stream line.

    Returns None for control records (valid JSON that carries no chat data,
    e.g. keep-alive objects). Raises MalformedRecord for lines that are not
    JSON or do not match the chat record shape.
    """
    try:
        data = orjson.loads(line)
    except orjson.JSONDecodeError as e:
        raise MalformedRecord(line, f"Invalid JSON: {e}") from e

    if not isinstance(data, dict) or not RECORD_KEYS & data.keys():
        logger.debug(f"Skipping control record: {line[:80]!r}")
        return None

    try:
        return OllamaChatChunk.model_validate(data)
    except ValidationError as e:
        raise MalformedRecord(line, f"Unexpected record shape: {e.error_count()} errors") from e
