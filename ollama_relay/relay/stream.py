"""
Inbound stream relay: Ollama NDJSON chat stream -> OpenAI chat.completion.chunk
records framed as `data: <json>\\n\\n`, terminated by `data: [DONE]\\n\\n`.
"""

import logging
from typing import AsyncIterable, AsyncIterator, List, Optional

import httpx

from ollama_relay.models.response import ChatCompletionChunk, ChoiceDelta, ChunkChoice
from ollama_relay.relay.errors import (
    BackendStreamError,
    MalformedRecord,
    RelayTimeout,
    StreamAborted,
)
from ollama_relay.relay.exchange import (
    FINISH_REASON_STOP,
    AbortController,
    Exchange,
    ExchangeState,
    RelayEvent,
)
from ollama_relay.relay.ndjson import NDJSONLineSplitter, decode_record
from ollama_relay.utils.sse import format_sse_data, format_sse_done
from ollama_relay.utils.time import unix_ms, unix_now

logger = logging.getLogger(__name__)


class OllamaStreamRelay:
    """Relays one streamed Ollama chat response to an OpenAI-style caller."""

    def __init__(
        self,
        model: str,
        exchange: Optional[Exchange] = None,
        controller: Optional[AbortController] = None,
    ):
        self.model = model
        self.exchange = exchange or Exchange()
        self.controller = controller
        self._last_id = 0

    async def _read(self, iterator: AsyncIterator[bytes]) -> Optional[bytes]:
        """Next buffer from the backend, or None at end of stream."""

        async def next_chunk() -> Optional[bytes]:
            try:
                return await iterator.__anext__()
            except StopAsyncIteration:
                return None

        if self.controller is None:
            return await next_chunk()
        return await self.controller.guard(next_chunk())

    def _finish(
        self, state: ExchangeState, error: Optional[Exception] = None
    ) -> Optional[RelayEvent]:
        """Finalize the exchange; the terminal event exists only for the first call."""
        if not self.exchange.finalize(state, error=error):
            return None
        return RelayEvent(
            kind=RelayEvent.DONE,
            text=self.exchange.text,
            finish_reason=FINISH_REASON_STOP,
            usage=self.exchange.usage,
            error=str(error) if error is not None else None,
        )

    def _translate(self, line: str) -> List[RelayEvent]:
        try:
            record = decode_record(line)
        except MalformedRecord as e:
            logger.warning(f"[Ollama Parse Error] {e}")
            return []
        if record is None:
            return []

        if record.error:
            raise BackendStreamError(record.error)

        events = []
        delta = record.content
        if self.exchange.append(delta):
            events.append(
                RelayEvent(kind=RelayEvent.DELTA, text=self.exchange.text, delta=delta)
            )

        if record.done:
            self.exchange.usage = record.usage()
            terminal = self._finish(ExchangeState.COMPLETED)
            if terminal is not None:
                events.append(terminal)
        return events

    async def events(self, chunks: AsyncIterable[bytes]) -> AsyncIterator[RelayEvent]:
        """
        Translate backend byte buffers into relay events.

        Always ends with exactly one terminal event while the consumer is
        still iterating; if the consumer goes away first, the exchange is
        finalized as aborted without one.
        """
        splitter = NDJSONLineSplitter()
        iterator = chunks.__aiter__()
        try:
            while not self.exchange.is_finished:
                raw = await self._read(iterator)
                if raw is None:
                    lines = splitter.flush()
                else:
                    self.exchange.start_streaming()
                    lines = splitter.feed(raw)

                for line in lines:
                    for event in self._translate(line):
                        yield event
                    if self.exchange.is_finished:
                        break

                if raw is None:
                    break

            # Stream closed without a done record
            terminal = self._finish(ExchangeState.COMPLETED)
            if terminal is not None:
                yield terminal

        except StreamAborted as e:
            logger.info(f"[Ollama Stream] {e}")
            error = e if isinstance(e, RelayTimeout) else None
            terminal = self._finish(ExchangeState.ABORTED, error=error)
            if terminal is not None:
                yield terminal
        except (httpx.HTTPError, BackendStreamError) as e:
            logger.error(f"[Ollama Stream Error] {e}")
            terminal = self._finish(ExchangeState.ERRORED, error=e)
            if terminal is not None:
                yield terminal
        finally:
            self.exchange.finalize(ExchangeState.ABORTED)

    def _next_id(self) -> str:
        # Millisecond ids, bumped so they stay strictly increasing
        self._last_id = max(unix_ms(), self._last_id + 1)
        return f"chatcmpl-{self._last_id}"

    def _chunk(self, event: RelayEvent) -> dict:
        if event.is_terminal:
            choice = ChunkChoice(index=0, delta=ChoiceDelta(), finish_reason=event.finish_reason)
        else:
            choice = ChunkChoice(index=0, delta=ChoiceDelta(content=event.delta))
        chunk = ChatCompletionChunk(
            id=self._next_id(),
            created=unix_now(),
            model=self.model,
            choices=[choice],
            usage=event.usage if event.is_terminal else None,
        )
        return chunk.to_payload()

    def format_event(self, event: RelayEvent) -> str:
        """SSE text for one event; the terminal event also carries the sentinel."""
        if not event.is_terminal:
            return format_sse_data(self._chunk(event))

        records = []
        if event.error:
            records.append(
                format_sse_data({"error": {"message": event.error, "type": "backend_error"}})
            )
        records.append(format_sse_data(self._chunk(event)))
        records.append(format_sse_done())
        return "".join(records)

    async def sse(self, response: httpx.Response) -> AsyncIterator[str]:
        """Relay a streaming httpx response; the response is always closed."""
        try:
            async for event in self.events(response.aiter_bytes()):
                yield self.format_event(event)
        finally:
            await response.aclose()
