"""Shared helpers for building SSE streams and recording sink writes."""

from typing import AsyncIterator, List, Tuple

import orjson
import pytest


class RecordingSinks:
    """Sinks that keep every write in order, tagged by channel."""

    def __init__(self):
        self.writes: List[Tuple[str, str]] = []

    def write_reasoning(self, text: str) -> None:
        self.writes.append(("reasoning", text))

    def write_content(self, text: str) -> None:
        self.writes.append(("content", text))

    def write_annotation(self, text: str) -> None:
        self.writes.append(("annotation", text))

    def channel(self, name: str) -> List[str]:
        return [text for channel, text in self.writes if channel == name]


def data_line(event) -> bytes:
    return b"data: " + orjson.dumps(event) + b"\n"


def text_delta(text: str) -> bytes:
    return data_line({"type": "content_block_delta", "index": 1, "delta": {"type": "text_delta", "text": text}})


def thinking_delta(text: str) -> bytes:
    return data_line({"type": "content_block_delta", "index": 0, "delta": {"type": "thinking_delta", "thinking": text}})


DONE_LINE = b"data: [DONE]\n"


async def chunked(data: bytes, size: int) -> AsyncIterator[bytes]:
    for i in range(0, len(data), size):
        yield data[i:i + size]


async def from_chunks(chunks: List[bytes]) -> AsyncIterator[bytes]:
    for chunk in chunks:
        yield chunk


@pytest.fixture
def sinks() -> RecordingSinks:
    return RecordingSinks()
