"""Tests for the server-side stream relay (Ollama NDJSON -> OpenAI SSE)."""

import asyncio

import httpx
import orjson
import pytest

from conftest import byte_stream, ndjson, stalled_stream
from ollama_relay.relay.exchange import AbortController, Exchange, ExchangeState
from ollama_relay.relay.stream import OllamaStreamRelay


async def collect(relay, chunks):
    return [event async for event in relay.events(chunks)]


@pytest.mark.asyncio
async def test_greeting_stream(greeting_records, sink):
    relay = OllamaStreamRelay(model="llama3", exchange=Exchange(sink=sink))
    events = await collect(relay, byte_stream(ndjson(*greeting_records)))

    assert [(e.kind, e.text, e.delta) for e in events[:2]] == [
        ("delta", "Hi", "Hi"),
        ("delta", "Hi there", " there"),
    ]
    terminal = events[2]
    assert terminal.is_terminal
    assert terminal.finish_reason == "stop"
    assert terminal.usage.prompt_tokens == 5
    assert terminal.usage.completion_tokens == 3
    assert terminal.usage.total_tokens == 8
    assert len(events) == 3

    assert relay.exchange.state is ExchangeState.COMPLETED
    assert [text for text, _ in sink.completions] == ["Hi there"]


@pytest.mark.asyncio
async def test_fragments_concatenate_in_order():
    fragments = ["The", " quick", " brown", " fox", ""]
    records = [{"message": {"content": f}, "done": False} for f in fragments]
    records.append({"message": {"content": "."}, "done": True})
    body = ndjson(*records)

    # Deliver in awkward pieces to cross line boundaries
    pieces = [body[i:i + 7] for i in range(0, len(body), 7)]
    relay = OllamaStreamRelay(model="llama3")
    events = await collect(relay, byte_stream(*pieces))

    deltas = [e.delta for e in events if not e.is_terminal]
    assert "".join(deltas) == "The quick brown fox."
    assert sum(e.is_terminal for e in events) == 1


@pytest.mark.asyncio
async def test_malformed_line_does_not_stop_the_stream():
    body = (
        ndjson({"message": {"content": "A"}, "done": False})
        + b"{this is not json\n"
        + b"{}\n"
        + ndjson({"message": {"content": "B"}, "done": True})
    )
    events = await collect(OllamaStreamRelay(model="llama3"), byte_stream(body))

    assert [e.text for e in events if not e.is_terminal] == ["A", "AB"]
    assert events[-1].is_terminal


@pytest.mark.asyncio
async def test_stream_closed_without_done_still_terminates(sink):
    relay = OllamaStreamRelay(model="llama3", exchange=Exchange(sink=sink))
    events = await collect(relay, byte_stream(ndjson({"message": {"content": "cut"}, "done": False})))

    assert [e.kind for e in events] == ["delta", "done"]
    assert relay.exchange.state is ExchangeState.COMPLETED
    assert sink.completions[0][0] == "cut"


@pytest.mark.asyncio
async def test_records_after_done_are_ignored():
    body = ndjson(
        {"message": {"content": "end"}, "done": True},
        {"message": {"content": "ghost"}, "done": False},
    )
    events = await collect(OllamaStreamRelay(model="llama3"), byte_stream(body))
    assert [e.kind for e in events] == ["delta", "done"]
    assert events[-1].text == "end"


@pytest.mark.asyncio
async def test_error_record_ends_exchange_as_errored(sink):
    relay = OllamaStreamRelay(model="llama3", exchange=Exchange(sink=sink))
    body = ndjson({"message": {"content": "par"}, "done": False}, {"error": "model crashed"})
    events = await collect(relay, byte_stream(body))

    assert events[-1].is_terminal
    assert events[-1].error == "model crashed"
    assert relay.exchange.state is ExchangeState.ERRORED
    assert sink.completions[0][0] == "par"
    assert len(sink.errors) == 1


@pytest.mark.asyncio
async def test_transport_error_is_finalized_with_partial_text(sink):
    async def broken():
        yield ndjson({"message": {"content": "half"}, "done": False})
        raise httpx.ReadError("connection reset")

    relay = OllamaStreamRelay(model="llama3", exchange=Exchange(sink=sink))
    events = await collect(relay, broken())

    assert [e.kind for e in events] == ["delta", "done"]
    assert "connection reset" in events[-1].error
    assert relay.exchange.state is ExchangeState.ERRORED
    assert sink.completions == [("half", relay.exchange.usage)]


@pytest.mark.asyncio
async def test_abort_before_first_byte(sink):
    controller = AbortController()
    relay = OllamaStreamRelay(model="llama3", exchange=Exchange(sink=sink), controller=controller)
    asyncio.get_running_loop().call_later(0.01, controller.abort)

    events = await collect(relay, stalled_stream())

    assert len(events) == 1 and events[0].is_terminal
    assert relay.exchange.state is ExchangeState.ABORTED
    assert [text for text, _ in sink.completions] == [""]
    assert sink.errors == []


@pytest.mark.asyncio
async def test_abort_mid_stream_keeps_partial_text(sink):
    async def part_then_stall():
        yield ndjson({"message": {"content": "part"}, "done": False})
        await asyncio.Event().wait()

    controller = AbortController()
    relay = OllamaStreamRelay(model="llama3", exchange=Exchange(sink=sink), controller=controller)

    events = []
    async for event in relay.events(part_then_stall()):
        events.append(event)
        if event.kind == "delta":
            asyncio.get_running_loop().call_later(0.01, controller.abort)

    assert [e.kind for e in events] == ["delta", "done"]
    assert events[-1].text == "part"
    assert events[-1].error is None
    assert relay.exchange.state is ExchangeState.ABORTED
    assert [text for text, _ in sink.completions] == ["part"]
    assert sink.errors == []


@pytest.mark.asyncio
async def test_done_record_with_null_content_keeps_usage(sink):
    relay = OllamaStreamRelay(model="llama3", exchange=Exchange(sink=sink))
    body = ndjson(
        {"message": {"content": "a"}, "done": False},
        {
            "message": {"role": "assistant", "content": None},
            "done": True,
            "eval_count": 4,
            "prompt_eval_count": 1,
        },
    )
    events = await collect(relay, byte_stream(body))

    assert [e.kind for e in events] == ["delta", "done"]
    assert events[-1].text == "a"
    assert events[-1].usage.prompt_tokens == 1
    assert events[-1].usage.completion_tokens == 4
    assert events[-1].usage.total_tokens == 5
    assert relay.exchange.state is ExchangeState.COMPLETED


@pytest.mark.asyncio
async def test_consumer_leaving_early_aborts_once(sink):
    relay = OllamaStreamRelay(model="llama3", exchange=Exchange(sink=sink))
    body = ndjson(
        {"message": {"content": "one"}, "done": False},
        {"message": {"content": "two"}, "done": False},
    )

    events = relay.events(byte_stream(body))
    first = await events.__anext__()
    await events.aclose()

    assert first.text == "one"
    assert relay.exchange.state is ExchangeState.ABORTED
    assert [text for text, _ in sink.completions] == ["one"]


@pytest.mark.asyncio
async def test_sse_framing(greeting_records):
    response = httpx.Response(200, content=ndjson(*greeting_records))
    relay = OllamaStreamRelay(model="llama3")

    output = "".join([record async for record in relay.sse(response)])

    records = output.split("\n\n")
    assert records[-1] == ""
    records = records[:-1]
    assert all(r.startswith("data: ") for r in records)
    assert records[-1] == "data: [DONE]"

    chunks = [orjson.loads(r[len("data: "):]) for r in records[:-1]]
    assert [c["choices"][0]["delta"] for c in chunks] == [
        {"content": "Hi"},
        {"content": " there"},
        {},
    ]
    assert [c["choices"][0]["finish_reason"] for c in chunks] == [None, None, "stop"]
    assert all(c["object"] == "chat.completion.chunk" for c in chunks)
    assert all(c["model"] == "llama3" and c["choices"][0]["index"] == 0 for c in chunks)
    assert "usage" not in chunks[0]
    assert chunks[-1]["usage"] == {"prompt_tokens": 5, "completion_tokens": 3, "total_tokens": 8}

    ids = [int(c["id"].split("-")[1]) for c in chunks]
    assert ids == sorted(set(ids))
    assert response.is_closed


@pytest.mark.asyncio
async def test_sse_error_record_precedes_stop():
    response = httpx.Response(200, content=ndjson({"error": "out of memory"}))
    relay = OllamaStreamRelay(model="llama3")

    records = [record async for record in relay.sse(response)]

    assert len(records) == 1
    parts = records[0].split("\n\n")
    assert orjson.loads(parts[0][len("data: "):]) == {
        "error": {"message": "out of memory", "type": "backend_error"}
    }
    assert orjson.loads(parts[1][len("data: "):])["choices"][0]["finish_reason"] == "stop"
    assert parts[2] == "data: [DONE]"
