"""
Incremental decoder for streamed model responses.

Turns raw SSE bytes into three outputs:
- reasoning deltas, framed as ``g:"..."`` lines
- content deltas, framed as ``0:"..."`` lines
- one ``<recommendations>`` block lifted out of the content, written as an annotation

Bytes arrive with no alignment to lines, JSON payloads or tags, so every
logical unit is reassembled across reads.
"""

import asyncio
import codecs
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterable, AsyncIterator, Callable, List, Optional

import orjson

from chatstream.services.cancellation import CancellationToken
from chatstream.services.sinks import StreamSinks
from chatstream.utils.exceptions import (
    CancellationError,
    MalformedEventWarning,
    TrailingContentWarning,
)
from chatstream.utils.sse import CONTENT_TAG, REASONING_TAG, format_annotation, format_frame

logger = logging.getLogger(__name__)

# Constants
SSE_DATA_PREFIX = "data: "
SSE_DONE_PAYLOAD = "[DONE]"
BLOCK_OPEN = "<"
BLOCK_CLOSE = "</recommendations>"


class EventKind(Enum):
    REASONING_DELTA = "reasoning_delta"
    CONTENT_DELTA = "content_delta"
    COMPLETION = "completion"
    TERMINATOR = "terminator"
    OTHER = "other"


@dataclass(frozen=True)
class Event:
    kind: EventKind
    text: str = ""
    stop_reason: Optional[str] = None


OTHER_EVENT = Event(EventKind.OTHER)

EventClassifier = Callable[[Any], Event]


def delta_text(value: Any) -> Optional[str]:
    """Return ``value`` if it is a non-empty string, else None."""
    if isinstance(value, str) and value:
        return value
    return None


def classify_anthropic_event(data: Any) -> Event:
    """Classify one Anthropic Messages streaming event."""
    if not isinstance(data, dict):
        return OTHER_EVENT
    event_type = data.get("type")
    delta = data.get("delta")
    if not isinstance(delta, dict):
        delta = {}

    if event_type == "content_block_delta":
        if delta.get("type") == "thinking_delta" and delta_text(delta.get("thinking")):
            return Event(EventKind.REASONING_DELTA, text=delta["thinking"])
        if delta.get("type") == "text_delta" and delta_text(delta.get("text")):
            return Event(EventKind.CONTENT_DELTA, text=delta["text"])
    elif event_type == "message_delta" and delta.get("stop_reason"):
        return Event(EventKind.COMPLETION, stop_reason=delta["stop_reason"])
    elif event_type == "message_stop":
        return Event(EventKind.TERMINATOR)
    return OTHER_EVENT


class ExtractionState(Enum):
    """Where the decoder stands relative to the structured block."""

    IDLE = "idle"
    COLLECTING = "collecting"
    DONE = "done"


@dataclass
class DecodeResult:
    """Full reasoning and content text seen during one decode call."""

    thinking: str = ""
    content: str = ""
    warnings: List[UserWarning] = field(default_factory=list)


@dataclass
class _DecodeState:
    line_buffer: str = ""
    block_buffer: str = ""
    extraction: ExtractionState = ExtractionState.IDLE
    result: DecodeResult = field(default_factory=DecodeResult)


class StreamDecoder:
    """Single-pass decoder for one response body per ``decode`` call.

    The decoder itself holds no per-call state, so one instance can serve
    concurrent calls.
    """

    def __init__(
        self,
        classify: EventClassifier = classify_anthropic_event,
        block_open: str = BLOCK_OPEN,
        block_close: str = BLOCK_CLOSE,
    ):
        self.classify = classify
        self.block_open = block_open
        self.block_close = block_close

    async def decode(
        self,
        stream: AsyncIterable[bytes],
        sinks: StreamSinks,
        cancel_token: Optional[CancellationToken] = None,
    ) -> DecodeResult:
        """
        Read ``stream`` to exhaustion, writing framed output to ``sinks``.

        Raises:
            CancellationError: ``cancel_token`` fired before the stream ended.
                Writes already made to the sinks are kept.
        """
        state = _DecodeState()
        text_decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        chunks = stream.__aiter__()

        while True:
            chunk = await self._next_chunk(chunks, cancel_token)
            if chunk is None:
                break
            state.line_buffer += text_decoder.decode(chunk)
            lines = state.line_buffer.split("\n")
            state.line_buffer = lines.pop()
            for line in lines:
                self._process_line(line, state, sinks)

        if state.extraction is ExtractionState.COLLECTING:
            logger.warning(
                f"Stream ended inside structured block; discarding {len(state.block_buffer)} chars"
            )
        return state.result

    async def _next_chunk(
        self,
        chunks: AsyncIterator[bytes],
        cancel_token: Optional[CancellationToken],
    ) -> Optional[bytes]:
        """Await the next chunk, or None at end of stream."""
        if cancel_token is None:
            return await self._read(chunks)

        if cancel_token.cancelled:
            await self._abort(chunks)

        read = asyncio.create_task(self._read(chunks))
        cancelled = asyncio.create_task(cancel_token.wait())
        try:
            await asyncio.wait({read, cancelled}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            read.cancel()
            await asyncio.gather(read, return_exceptions=True)
            aclose = getattr(chunks, "aclose", None)
            if aclose is not None:
                await aclose()
            raise
        finally:
            cancelled.cancel()

        if cancel_token.cancelled:
            if read.done():
                # Discard the finished read
                read.exception()
            else:
                read.cancel()
                await asyncio.gather(read, return_exceptions=True)
            await self._abort(chunks)
        return read.result()

    @staticmethod
    async def _read(chunks: AsyncIterator[bytes]) -> Optional[bytes]:
        try:
            return await chunks.__anext__()
        except StopAsyncIteration:
            return None

    @staticmethod
    async def _abort(chunks: AsyncIterator[bytes]):
        logger.info("Stream cancelled by caller")
        aclose = getattr(chunks, "aclose", None)
        if aclose is not None:
            await aclose()
        raise CancellationError()

    def _process_line(self, line: str, state: _DecodeState, sinks: StreamSinks) -> None:
        if not line.strip() or not line.startswith(SSE_DATA_PREFIX):
            return
        payload = line[len(SSE_DATA_PREFIX):].strip()
        if payload == SSE_DONE_PAYLOAD:
            return

        logger.debug(f"Stream data: {payload}")
        try:
            data = orjson.loads(payload)
        except orjson.JSONDecodeError as e:
            self._warn(state, MalformedEventWarning(f"Failed to parse stream event: {e}"))
            return

        event = self.classify(data)
        if event.kind is EventKind.REASONING_DELTA:
            state.result.thinking += event.text
            sinks.write_reasoning(format_frame(REASONING_TAG, event.text))
        elif event.kind is EventKind.CONTENT_DELTA:
            self._route_content(event.text, state, sinks)
        elif event.kind is EventKind.COMPLETION:
            logger.debug(f"Model finished: {event.stop_reason}")

    def _route_content(self, text: str, state: _DecodeState, sinks: StreamSinks) -> None:
        """Send content to the content sink or into the structured block."""
        if state.extraction is ExtractionState.DONE:
            self._warn(state, TrailingContentWarning(f"Dropping content after block: {text!r}"))
            return

        if state.extraction is ExtractionState.IDLE:
            start = text.find(self.block_open)
            if start == -1:
                self._emit_content(text, state, sinks)
                return
            if start > 0:
                self._emit_content(text[:start], state, sinks)
            state.extraction = ExtractionState.COLLECTING
            text = text[start:]

        state.block_buffer += text
        end = state.block_buffer.find(self.block_close)
        if end == -1:
            return

        end += len(self.block_close)
        block, rest = state.block_buffer[:end], state.block_buffer[end:]
        sinks.write_annotation(format_annotation(block))
        state.block_buffer = ""
        state.extraction = ExtractionState.DONE
        if rest:
            self._warn(state, TrailingContentWarning(f"Dropping content after block: {rest!r}"))

    @staticmethod
    def _emit_content(text: str, state: _DecodeState, sinks: StreamSinks) -> None:
        state.result.content += text
        sinks.write_content(format_frame(CONTENT_TAG, text))

    @staticmethod
    def _warn(state: _DecodeState, warning: UserWarning) -> None:
        logger.warning(f"{type(warning).__name__}: {warning}")
        state.result.warnings.append(warning)
