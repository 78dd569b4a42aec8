"""Tests for NDJSON line framing and record decoding."""

import pytest

from ollama_relay.relay.errors import MalformedRecord
from ollama_relay.relay.ndjson import NDJSONLineSplitter, decode_record


def test_splitter_drops_blank_lines():
    splitter = NDJSONLineSplitter()
    assert splitter.feed(b'{"a":1}\n\n  \n{"b":2}\n') == ['{"a":1}', '{"b":2}']


def test_splitter_holds_partial_line_until_next_buffer():
    splitter = NDJSONLineSplitter()
    assert splitter.feed(b'{"message":{"content":"He') == []
    assert splitter.feed(b'llo"},"done":false}\n') == ['{"message":{"content":"Hello"},"done":false}']


def test_splitter_handles_multibyte_characters_across_buffers():
    encoded = '{"message":{"content":"café"}}\n'.encode("utf-8")
    cut = encoded.index(b"\xc3") + 1

    splitter = NDJSONLineSplitter()
    assert splitter.feed(encoded[:cut]) == []
    assert splitter.feed(encoded[cut:]) == ['{"message":{"content":"café"}}']


def test_splitter_flush_returns_unterminated_last_line():
    splitter = NDJSONLineSplitter()
    splitter.feed(b'{"done":true}')
    assert splitter.flush() == ['{"done":true}']
    assert splitter.flush() == []


def test_splitter_accepts_crlf():
    splitter = NDJSONLineSplitter()
    assert splitter.feed(b'{"done":false}\r\n{"done":true}\r\n') == ['{"done":false}', '{"done":true}']


def test_decode_record():
    record = decode_record(
        '{"message":{"role":"assistant","content":"Hi"},"done":true,"prompt_eval_count":5,"eval_count":3}'
    )
    assert record.content == "Hi"
    assert record.done is True
    usage = record.usage()
    assert (usage.prompt_tokens, usage.completion_tokens, usage.total_tokens) == (5, 3, 8)


def test_decode_record_without_counters_reports_zero_usage():
    usage = decode_record('{"message":{"content":"x"},"done":true}').usage()
    assert usage.total_tokens == 0


@pytest.mark.parametrize("line", ["{}", '{"ping":1}', "[1, 2]", "42"])
def test_control_records_are_not_chat_records(line):
    assert decode_record(line) is None


@pytest.mark.parametrize("line", ["not json", '{"message":', '{"done":"maybe"}'])
def test_malformed_records_raise(line):
    with pytest.raises(MalformedRecord):
        decode_record(line)
