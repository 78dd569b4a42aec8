"""Shared fixtures for the test suite."""

import asyncio

import httpx
import orjson
import pytest

from ollama_relay.providers.ollama import OllamaProvider


def ndjson(*records: dict) -> bytes:
    """Encode records the way Ollama streams them."""
    return b"".join(orjson.dumps(record) + b"\n" for record in records)


async def byte_stream(*chunks: bytes):
    for chunk in chunks:
        yield chunk


async def stalled_stream():
    """A backend that never sends anything."""
    await asyncio.Event().wait()
    yield b""  # pragma: no cover


class RecordingSink:
    def __init__(self):
        self.deltas = []
        self.completions = []
        self.errors = []

    def on_delta(self, text, delta):
        self.deltas.append((text, delta))

    def on_complete(self, final_text, usage):
        self.completions.append((final_text, usage))

    def on_error(self, error):
        self.errors.append(error)


def make_provider(handler, **kwargs) -> OllamaProvider:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return OllamaProvider(base_url="http://ollama.test:11434", client=client, **kwargs)


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def greeting_records():
    return [
        {"model": "llama3", "message": {"role": "assistant", "content": "Hi"}, "done": False},
        {
            "model": "llama3",
            "message": {"role": "assistant", "content": " there"},
            "done": True,
            "eval_count": 3,
            "prompt_eval_count": 5,
        },
    ]


@pytest.fixture
def simple_messages():
    return [{"role": "user", "content": "Say hi"}]
