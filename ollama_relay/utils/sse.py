import orjson
from typing import Optional


SSE_DATA_PREFIX = "data:"
SSE_DONE_DATA = "[DONE]"
SSE_DONE_SIGNAL = f"data: {SSE_DONE_DATA}"


def format_sse_data(payload: dict) -> str:
    """Format a JSON payload as one SSE data record"""
    return f"data: {orjson.dumps(payload).decode()}\n\n"


def format_sse_done() -> str:
    """End-of-stream sentinel record"""
    return f"{SSE_DONE_SIGNAL}\n\n"


def parse_sse_data(line: str) -> Optional[str]:
    """Return the data of a `data:` line, or None for any other line"""
    if not line.startswith(SSE_DATA_PREFIX):
        return None
    return line[len(SSE_DATA_PREFIX):].strip()
