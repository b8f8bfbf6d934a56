import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx
import orjson

from chatstream.config import settings
from chatstream.services.cancellation import CancellationToken
from chatstream.services.decoder import (
    OTHER_EVENT,
    DecodeResult,
    Event,
    EventKind,
    StreamDecoder,
    delta_text,
)
from chatstream.services.sinks import StreamSinks
from chatstream.utils.exceptions import (
    CancellationError,
    ChatStreamError,
    ConfigurationError,
    TransportError,
)
from chatstream.utils.message_helpers import normalize_messages

logger = logging.getLogger(__name__)


class BaseProvider(ABC):
    """Abstract base class for model providers.

    Builds the provider request, validates the HTTP response and hands the
    body to a StreamDecoder.
    """

    name: str  # Provider identifier: "claude", "openai", "deepseek"
    request_path: str = ""

    def __init__(
        self,
        api_key: Optional[str],
        model: str,
        base_url: str,
        decoder: Optional[StreamDecoder] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.decoder = decoder or StreamDecoder()
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def timeout(self) -> float:
        """Get the configured provider timeout in seconds."""
        return float(settings.provider_timeout)

    @property
    def client(self) -> httpx.AsyncClient:
        """HTTP client, created on first use."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=self._headers(),
                timeout=self.timeout,
            )
        return self._client

    @abstractmethod
    def _headers(self) -> dict:
        """Provider-specific request headers, including credentials."""

    @abstractmethod
    def _build_payload(
        self, messages: list[dict], system_prompt: Optional[str], with_thinking: bool
    ) -> dict:
        """Build the streaming request body."""

    def is_configured(self) -> bool:
        """Check if provider has valid API key"""
        return bool(self.api_key)

    async def cleanup(self):
        """Cleanup HTTP client resources."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def get_content_with_thinking(
        self,
        messages: list[dict],
        system_prompt: Optional[str],
        sinks: StreamSinks,
        cancel_token: Optional[CancellationToken] = None,
    ) -> DecodeResult:
        """Stream a completion with reasoning enabled; return reasoning and content."""
        payload = self._build_payload(normalize_messages(messages), system_prompt, True)
        return await self._stream_completion(payload, sinks, cancel_token)

    async def get_content_without_thinking(
        self,
        messages: list[dict],
        system_prompt: Optional[str],
        sinks: StreamSinks,
        cancel_token: Optional[CancellationToken] = None,
    ) -> str:
        """Stream a completion and return only the content text."""
        payload = self._build_payload(normalize_messages(messages), system_prompt, False)
        result = await self._stream_completion(payload, sinks, cancel_token)
        return result.content

    async def _stream_completion(
        self,
        payload: dict,
        sinks: StreamSinks,
        cancel_token: Optional[CancellationToken],
    ) -> DecodeResult:
        if not self.is_configured():
            raise ConfigurationError(f"No API key configured for provider '{self.name}'")

        try:
            async with self.client.stream("POST", self.request_path, json=payload) as response:
                await self._check_response(response)
                return await self.decoder.decode(response.aiter_bytes(), sinks, cancel_token)
        except CancellationError:
            raise
        except httpx.HTTPError as e:
            logger.error(f"Error in {self.name} API call: {e}")
            raise TransportError(f"{self.name} request failed: {e}") from e
        except ChatStreamError as e:
            logger.error(f"Error in {self.name} API call: {e}")
            raise

    async def _check_response(self, response: httpx.Response) -> None:
        """Raise TransportError for a failed status or an empty body."""
        if not response.is_success:
            # Read error response body for better debugging
            error_body = await response.aread()
            try:
                error_json = orjson.loads(error_body)
                error_msg = error_json.get("error", {}).get("message", str(error_body))
            except (orjson.JSONDecodeError, AttributeError):
                error_msg = error_body.decode("utf-8", errors="replace")
            logger.error(
                f"{self.name} API error for model '{self.model}': "
                f"status={response.status_code}, error={error_msg}"
            )
            raise TransportError(
                f"HTTP error! status: {response.status_code}", status_code=response.status_code
            )
        if response.status_code == 204 or response.headers.get("content-length") == "0":
            raise TransportError(
                f"{self.name} returned no response body", status_code=response.status_code
            )


def classify_openai_event(data: Any) -> Event:
    """Classify one OpenAI-format chat completion chunk.

    ``reasoning_content`` is the DeepSeek reasoning field.
    """
    if not isinstance(data, dict):
        return OTHER_EVENT
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return OTHER_EVENT
    choice = choices[0]
    delta = choice.get("delta")
    if not isinstance(delta, dict):
        delta = {}

    if delta_text(delta.get("reasoning_content")):
        return Event(EventKind.REASONING_DELTA, text=delta["reasoning_content"])
    if delta_text(delta.get("content")):
        return Event(EventKind.CONTENT_DELTA, text=delta["content"])
    if choice.get("finish_reason"):
        return Event(EventKind.COMPLETION, stop_reason=choice["finish_reason"])
    return OTHER_EVENT


class OpenAIFormatProvider(BaseProvider):
    """Base class for providers using OpenAI-compatible API format.

    Subclasses only need to set `name`.
    """

    name: str = ""  # Override in subclass
    request_path = "/chat/completions"

    def __init__(self, api_key: Optional[str], model: str, base_url: str):
        super().__init__(api_key, model, base_url, decoder=StreamDecoder(classify_openai_event))

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _build_payload(
        self, messages: list[dict], system_prompt: Optional[str], with_thinking: bool
    ) -> dict:
        # Reasoning models stream their trace unprompted; there is no budget knob here
        formatted_messages = []
        if system_prompt:
            formatted_messages.append({"role": "system", "content": system_prompt})
        formatted_messages.extend(messages)

        return {
            "model": self.model,
            "messages": formatted_messages,
            "stream": True,
        }
