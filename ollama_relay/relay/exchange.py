"""
Per-exchange state machine shared by the server relay and the client consumer.

    OPEN -> STREAMING -> {COMPLETED, ABORTED, ERRORED}

The Exchange owns the accumulated response text and is the only place where
terminal transitions happen. A sink observes deltas and the single completion.
"""

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Protocol, TypeVar

from ollama_relay.models.response import CompletionUsage
from ollama_relay.relay.errors import RelayTimeout, StreamAborted

logger = logging.getLogger(__name__)

T = TypeVar("T")

ABORT_REASON = "aborted"
TIMEOUT_REASON = "timeout"

FINISH_REASON_STOP = "stop"


class ExchangeState(str, Enum):
    OPEN = "open"
    STREAMING = "streaming"
    COMPLETED = "completed"
    ABORTED = "aborted"
    ERRORED = "errored"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset(
    {ExchangeState.COMPLETED, ExchangeState.ABORTED, ExchangeState.ERRORED}
)


@dataclass
class RelayEvent:
    """Caller-facing unit: a content delta or the terminal marker."""

    kind: str  # "delta" or "done"
    text: str = ""  # Accumulated response so far
    delta: str = ""
    finish_reason: Optional[str] = None
    usage: Optional[CompletionUsage] = None
    error: Optional[str] = None

    DELTA = "delta"
    DONE = "done"

    @property
    def is_terminal(self) -> bool:
        return self.kind == self.DONE


class RelaySink(Protocol):
    def on_delta(self, text: str, delta: str) -> None: ...

    def on_complete(self, final_text: str, usage: CompletionUsage) -> None: ...

    def on_error(self, error: Exception) -> None: ...


class LoggingSink:
    """Sink that only records the outcome of an exchange."""

    def __init__(self, label: str = "exchange"):
        self.label = label

    def on_delta(self, text: str, delta: str) -> None:
        pass

    def on_complete(self, final_text: str, usage: CompletionUsage) -> None:
        logger.info(
            f"[{self.label}] finished: {len(final_text)} chars, "
            f"{usage.prompt_tokens} prompt / {usage.completion_tokens} completion tokens"
        )

    def on_error(self, error: Exception) -> None:
        logger.warning(f"[{self.label}] error: {error}")


class Exchange:
    """One request/response exchange and its accumulated text."""

    def __init__(self, sink: Optional[RelaySink] = None):
        self.state = ExchangeState.OPEN
        self.text = ""
        self.usage = CompletionUsage()
        self.error: Optional[Exception] = None
        self._sink = sink

    @property
    def is_finished(self) -> bool:
        return self.state.is_terminal

    def start_streaming(self) -> None:
        """First backend bytes arrived."""
        if self.state is ExchangeState.OPEN:
            self.state = ExchangeState.STREAMING

    def append(self, delta: str) -> bool:
        """Append a content fragment and notify the sink."""
        if not delta or self.is_finished:
            return False
        self.text += delta
        if self._sink is not None:
            self._sink.on_delta(self.text, delta)
        return True

    def finalize(
        self, state: ExchangeState = ExchangeState.COMPLETED, error: Optional[Exception] = None
    ) -> bool:
        """
        Move into a terminal state and deliver the accumulated text.

        Returns False (and does nothing) when the exchange already ended.
        """
        if not state.is_terminal:
            raise ValueError(f"{state.value} is not a terminal state")
        if self.is_finished:
            logger.debug(f"Ignoring {state.value} finalize, exchange already {self.state.value}")
            return False

        self.state = state
        self.error = error
        if self._sink is not None:
            if error is not None:
                self._sink.on_error(error)
            self._sink.on_complete(self.text, self.usage)
        return True

    def abort(self, exc: Optional[StreamAborted] = None) -> bool:
        """Finalize as ABORTED; only timeouts count as errors."""
        error = exc if isinstance(exc, RelayTimeout) else None
        return self.finalize(ExchangeState.ABORTED, error=error)


class AbortController:
    """
    Cancellation signal for one exchange.

    abort() may be called at any time, from callbacks or timers. Awaits wrapped
    in guard() stop at once with StreamAborted (or RelayTimeout).
    """

    def __init__(self):
        self._event = asyncio.Event()
        self._callbacks: List[Callable[[StreamAborted], None]] = []
        self.reason: Optional[str] = None

    @property
    def aborted(self) -> bool:
        return self._event.is_set()

    @property
    def exception(self) -> StreamAborted:
        if self.reason == TIMEOUT_REASON:
            return RelayTimeout()
        return StreamAborted(self.reason or ABORT_REASON)

    def add_callback(self, callback: Callable[[StreamAborted], None]) -> None:
        """Run callback(exception) when the controller aborts."""
        self._callbacks.append(callback)

    def abort(self, reason: str = ABORT_REASON) -> None:
        if self.aborted:
            return
        self.reason = reason
        self._event.set()
        logger.debug(f"Exchange aborted: {reason}")
        for callback in self._callbacks:
            callback(self.exception)

    def abort_after(self, seconds: float) -> asyncio.TimerHandle:
        """Arm the first-response timer. Cancel the handle once headers arrive."""
        loop = asyncio.get_running_loop()
        return loop.call_later(seconds, self.abort, TIMEOUT_REASON)

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """Await `awaitable` unless the controller aborts first."""
        if self.aborted:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise self.exception

        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            if not task.done():
                task.cancel()
                # Let the read unwind before the caller closes the response
                with contextlib.suppress(asyncio.CancelledError):
                    await task

        if task in done:
            return task.result()
        raise self.exception
