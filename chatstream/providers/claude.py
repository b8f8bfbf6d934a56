from typing import Optional

from chatstream.config import settings
from chatstream.providers.base import BaseProvider


class ClaudeProvider(BaseProvider):
    name = "claude"
    request_path = "/messages"

    def __init__(
        self,
        api_key: Optional[str],
        model: str,
        base_url: Optional[str] = None,
        thinking_budget: Optional[int] = None,
    ):
        super().__init__(api_key, model, base_url or settings.anthropic_api_base)
        self.thinking_budget = thinking_budget or settings.thinking_budget_tokens

    def _headers(self) -> dict:
        headers = {
            "anthropic-version": settings.anthropic_version,
            "Content-Type": "application/json",
        }
        if self.api_key:
            headers["x-api-key"] = self.api_key
        return headers

    def _build_payload(
        self, messages: list[dict], system_prompt: Optional[str], with_thinking: bool
    ) -> dict:
        payload = {
            "model": self.model,
            "max_tokens": settings.max_tokens,
            "messages": messages,
            "stream": True,
        }
        if system_prompt:
            payload["system"] = system_prompt
        if with_thinking:
            payload["thinking"] = {
                "type": "enabled",
                "budget_tokens": self.thinking_budget,
            }
        return payload
