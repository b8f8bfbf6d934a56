"""Tests for provider request building and response handling."""

import httpx
import orjson
import pytest

from chatstream.providers.base import classify_openai_event
from chatstream.providers.claude import ClaudeProvider
from chatstream.providers.openai import DeepSeekProvider
from chatstream.services.cancellation import CancellationToken
from chatstream.services.decoder import EventKind
from chatstream.utils.exceptions import (
    CancellationError,
    ConfigurationError,
    TransportError,
)

from conftest import DONE_LINE, RecordingSinks, data_line, text_delta, thinking_delta

MESSAGES = [
    {"role": "system", "content": "be brief"},
    {"role": "user", "content": "Suggest a book"},
    {"role": "assistant", "content": [{"type": "text", "text": "Which genre?"}]},
    {"role": "user", "content": "Sci-fi"},
]


def use_transport(provider, handler):
    """Route the provider's HTTP client through a mock handler."""
    provider._client = httpx.AsyncClient(
        transport=httpx.MockTransport(handler),
        base_url=provider.base_url,
        headers=provider._headers(),
    )
    return provider


def sse_response(body: bytes, status_code: int = 200) -> httpx.Response:
    return httpx.Response(
        status_code, content=body, headers={"content-type": "text/event-stream"}
    )


CLAUDE_BODY = (
    thinking_delta("User wants sci-fi.")
    + text_delta("Try this: ")
    + text_delta("<recommendations><book>Dune</book></recommendations>")
    + data_line({"type": "message_delta", "delta": {"stop_reason": "end_turn"}})
    + data_line({"type": "message_stop"})
)


@pytest.mark.asyncio
async def test_claude_with_thinking_builds_request_and_decodes():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return sse_response(CLAUDE_BODY)

    provider = use_transport(
        ClaudeProvider("test-key", "claude-test", base_url="https://claude.test/v1", thinking_budget=2048),
        handler,
    )
    sinks = RecordingSinks()
    result = await provider.get_content_with_thinking(MESSAGES, "You recommend books.", sinks)

    assert result.thinking == "User wants sci-fi."
    assert result.content == "Try this: "
    assert sinks.channel("annotation") == ["<recommendations><book>Dune</book></recommendations>\n"]

    request = requests[0]
    assert request.url == "https://claude.test/v1/messages"
    assert request.headers["x-api-key"] == "test-key"
    payload = orjson.loads(request.content)
    assert payload["model"] == "claude-test"
    assert payload["stream"] is True
    assert payload["system"] == "You recommend books."
    assert payload["thinking"] == {"type": "enabled", "budget_tokens": 2048}
    assert payload["messages"] == [
        {"role": "user", "content": "be brief"},
        {"role": "user", "content": "Suggest a book"},
        {"role": "assistant", "content": "Which genre?"},
        {"role": "user", "content": "Sci-fi"},
    ]


@pytest.mark.asyncio
async def test_claude_without_thinking_returns_content_only():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return sse_response(text_delta("Just content") + DONE_LINE)

    provider = use_transport(ClaudeProvider("k", "claude-test", base_url="https://claude.test/v1"), handler)
    content = await provider.get_content_without_thinking(MESSAGES, None, RecordingSinks())

    assert content == "Just content"
    payload = orjson.loads(requests[0].content)
    assert "thinking" not in payload
    assert "system" not in payload


@pytest.mark.asyncio
async def test_error_status_raises_transport_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(529, json={"error": {"type": "overloaded_error", "message": "Overloaded"}})

    provider = use_transport(ClaudeProvider("k", "claude-test", base_url="https://claude.test/v1"), handler)
    sinks = RecordingSinks()
    with pytest.raises(TransportError) as exc_info:
        await provider.get_content_with_thinking(MESSAGES, None, sinks)

    assert exc_info.value.status_code == 529
    assert sinks.writes == []


@pytest.mark.asyncio
async def test_empty_body_raises_transport_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(204)

    provider = use_transport(ClaudeProvider("k", "claude-test", base_url="https://claude.test/v1"), handler)
    with pytest.raises(TransportError):
        await provider.get_content_with_thinking(MESSAGES, None, RecordingSinks())


@pytest.mark.asyncio
async def test_network_failure_raises_transport_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    provider = use_transport(ClaudeProvider("k", "claude-test", base_url="https://claude.test/v1"), handler)
    with pytest.raises(TransportError):
        await provider.get_content_with_thinking(MESSAGES, None, RecordingSinks())


@pytest.mark.asyncio
async def test_missing_api_key_fails_before_request():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return sse_response(b"")

    provider = use_transport(ClaudeProvider(None, "claude-test", base_url="https://claude.test/v1"), handler)
    with pytest.raises(ConfigurationError):
        await provider.get_content_with_thinking(MESSAGES, None, RecordingSinks())
    assert calls == []


@pytest.mark.asyncio
async def test_cancellation_propagates_unchanged():
    token = CancellationToken()
    token.cancel()

    def handler(request: httpx.Request) -> httpx.Response:
        return sse_response(CLAUDE_BODY)

    provider = use_transport(ClaudeProvider("k", "claude-test", base_url="https://claude.test/v1"), handler)
    sinks = RecordingSinks()
    with pytest.raises(CancellationError):
        await provider.get_content_with_thinking(MESSAGES, None, sinks, token)
    assert sinks.writes == []


@pytest.mark.asyncio
async def test_deepseek_streams_reasoning_and_content():
    requests = []
    body = (
        data_line({"choices": [{"index": 0, "delta": {"role": "assistant", "content": ""}}]})
        + data_line({"choices": [{"index": 0, "delta": {"reasoning_content": "Hmm."}}]})
        + data_line({"choices": [{"index": 0, "delta": {"content": "Read "}}]})
        + data_line({"choices": [{"index": 0, "delta": {"content": "<recommendations/>"}}]})
        + data_line({"choices": [{"index": 0, "delta": {}, "finish_reason": "stop"}]})
        + DONE_LINE
    )

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return sse_response(body)

    provider = use_transport(DeepSeekProvider("ds-key", "deepseek-r1", "https://dashscope.test/v1"), handler)
    sinks = RecordingSinks()
    result = await provider.get_content_with_thinking(MESSAGES[1:], "sys", sinks)

    assert result.thinking == "Hmm."
    assert result.content == "Read "
    assert sinks.channel("annotation") == []

    request = requests[0]
    assert request.url == "https://dashscope.test/v1/chat/completions"
    assert request.headers["authorization"] == "Bearer ds-key"
    payload = orjson.loads(request.content)
    assert payload["messages"][0] == {"role": "system", "content": "sys"}
    assert payload["stream"] is True


def test_classify_openai_event():
    assert classify_openai_event({"choices": []}).kind is EventKind.OTHER
    assert classify_openai_event({"choices": [{"delta": {"content": "x"}}]}).kind is EventKind.CONTENT_DELTA
    finished = classify_openai_event({"choices": [{"delta": {}, "finish_reason": "length"}]})
    assert finished.kind is EventKind.COMPLETION
    assert finished.stop_reason == "length"
    assert classify_openai_event("nope").kind is EventKind.OTHER
    assert classify_openai_event({"choices": [{"delta": {"content": {"a": 1}}}]}).kind is EventKind.OTHER


@pytest.mark.asyncio
async def test_cleanup_closes_client():
    provider = ClaudeProvider("k", "claude-test", base_url="https://claude.test/v1")
    client = provider.client
    await provider.cleanup()

    assert client.is_closed
    assert provider._client is None


@pytest.mark.asyncio
async def test_openai_non_string_content_is_ignored():
    body = (
        data_line({"choices": [{"delta": {"content": "Hello "}}]})
        + data_line({"choices": [{"delta": {"content": {"a": 1}}}]})
        + data_line({"choices": [{"delta": {"reasoning_content": 7}}]})
        + data_line({"choices": [{"delta": {"content": "world"}}]})
        + DONE_LINE
    )
    provider = use_transport(
        DeepSeekProvider("ds-key", "deepseek-r1", "https://dashscope.test/v1"),
        lambda request: sse_response(body),
    )
    result = await provider.get_content_with_thinking(MESSAGES, None, RecordingSinks())

    assert result.content == "Hello world"
    assert result.thinking == ""
