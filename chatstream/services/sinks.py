"""Output sinks that receive decoder writes."""

import asyncio
from typing import AsyncIterator, Optional, Protocol

from chatstream.utils.sse import ERROR_TAG, format_annotation_frame, format_frame


class StreamSinks(Protocol):
    """Write-only destinations for one decode call.

    Writes are synchronous and arrive in emission order.
    """

    def write_reasoning(self, text: str) -> None: ...

    def write_content(self, text: str) -> None: ...

    def write_annotation(self, text: str) -> None: ...


class DataStreamSinks:
    """Queue-backed sinks that feed a streaming HTTP response.

    The decoder already frames reasoning and content lines, so those are
    forwarded as-is. Annotations are wrapped into a message-annotation line.
    """

    def __init__(self, include_reasoning: bool = True):
        self.include_reasoning = include_reasoning
        self._queue: asyncio.Queue[Optional[str]] = asyncio.Queue()

    def write_reasoning(self, text: str) -> None:
        if self.include_reasoning:
            self._queue.put_nowait(text)

    def write_content(self, text: str) -> None:
        self._queue.put_nowait(text)

    def write_annotation(self, text: str) -> None:
        self._queue.put_nowait(format_annotation_frame(text))

    def write_error(self, message: str) -> None:
        self._queue.put_nowait(format_frame(ERROR_TAG, message))

    def close(self) -> None:
        """Mark the end of the stream. Pending frames are still delivered."""
        self._queue.put_nowait(None)

    async def frames(self) -> AsyncIterator[str]:
        while True:
            frame = await self._queue.get()
            if frame is None:
                return
            yield frame
