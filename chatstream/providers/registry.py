import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Type

from chatstream.config import Settings, settings
from chatstream.providers.base import BaseProvider
from chatstream.providers.claude import ClaudeProvider
from chatstream.providers.openai import DeepSeekProvider, OpenAIProvider
from chatstream.utils.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModelSpec:
    """A selectable model id and the provider request shape behind it."""

    id: str
    name: str
    provider_type: str
    model: str
    description: str = ""
    selectable: bool = True


# Mapping of provider types to their classes
PROVIDER_CLASSES: Dict[str, Type[BaseProvider]] = {
    "anthropic": ClaudeProvider,
    "openai": OpenAIProvider,
    "deepseek": DeepSeekProvider,
}

# Settings attribute names for (api key, base url) per provider type
PROVIDER_ENDPOINTS: Dict[str, tuple[str, str]] = {
    "anthropic": ("anthropic_api_key", "anthropic_api_base"),
    "openai": ("openai_api_key", "openai_api_base"),
    "deepseek": ("dashscope_api_key", "dashscope_api_base"),
}

DEFAULT_CHAT_MODEL = "chat-model-small"

MODEL_SPECS: List[ModelSpec] = [
    ModelSpec(
        id="chat-model-small",
        name="gpt-4o-mini",
        provider_type="openai",
        model="gpt-4o-mini",
        description="Small model for fast, lightweight tasks",
    ),
    ModelSpec(
        id="chat-model-large",
        name="gpt-4o",
        provider_type="openai",
        model="gpt-4o",
        description="Large model for complex, multi-step tasks",
    ),
    ModelSpec(
        id="chat-model-reasoning",
        name="deepseek-r1",
        provider_type="deepseek",
        model="deepseek-r1",
        description="Uses advanced reasoning",
    ),
    ModelSpec(
        id="chat-model-claude",
        name="claude-3.7-sonnet",
        provider_type="anthropic",
        model=settings.claude_model,
        description="Extended thinking with structured recommendations",
    ),
    ModelSpec(
        id="title-model",
        name="gpt-4-turbo",
        provider_type="openai",
        model="gpt-4-turbo",
        selectable=False,
    ),
    ModelSpec(
        id="artifact-model",
        name="gpt-4o-mini",
        provider_type="openai",
        model="gpt-4o-mini",
        selectable=False,
    ),
]


class ProviderRegistry:
    """Maps model ids to configured providers. Providers are built on first use."""

    # Maximum time to wait for active streams during cleanup (seconds)
    CLEANUP_TIMEOUT = 10.0

    def __init__(
        self,
        models: Optional[List[ModelSpec]] = None,
        config: Optional[Settings] = None,
    ):
        self._specs: Dict[str, ModelSpec] = {m.id: m for m in (models or MODEL_SPECS)}
        self._config = config
        self._providers: Dict[str, BaseProvider] = {}
        self._active_streams: int = 0

    @property
    def config(self) -> Settings:
        return self._config or settings

    def stream_started(self) -> None:
        """Call when a provider stream starts."""
        self._active_streams += 1

    def stream_ended(self) -> None:
        """Call when a provider stream ends."""
        self._active_streams = max(0, self._active_streams - 1)

    def get_spec(self, model_id: str) -> ModelSpec:
        spec = self._specs.get(model_id)
        if spec is None:
            raise ConfigurationError(f"Unknown model '{model_id}'")
        return spec

    def get_provider(self, model_id: str) -> BaseProvider:
        """
        Return the provider serving ``model_id``.

        Raises:
            ConfigurationError: unknown model id, unknown provider type,
                or missing credential/endpoint.
        """
        if model_id in self._providers:
            return self._providers[model_id]

        spec = self.get_spec(model_id)
        provider_class = PROVIDER_CLASSES.get(spec.provider_type)
        if not provider_class:
            raise ConfigurationError(f"Unknown provider type '{spec.provider_type}'")

        key_attr, base_attr = PROVIDER_ENDPOINTS[spec.provider_type]
        api_key = getattr(self.config, key_attr)
        base_url = getattr(self.config, base_attr)
        if not api_key:
            raise ConfigurationError(f"{key_attr.upper()} environment variable is not set")
        if not base_url:
            raise ConfigurationError(f"{base_attr.upper()} environment variable is not set")

        provider = provider_class(api_key, spec.model, base_url)
        self._providers[model_id] = provider
        return provider

    def chat_models(self) -> List[ModelSpec]:
        """Return models offered in the model selector."""
        return [m for m in self._specs.values() if m.selectable]

    def get_model_ids(self) -> List[str]:
        return list(self._specs.keys())

    async def cleanup(self):
        """Cleanup all providers, waiting for active streams to complete."""
        # Wait for active streams to complete (with timeout)
        wait_time = 0.0
        while self._active_streams > 0 and wait_time < self.CLEANUP_TIMEOUT:
            logger.debug(f"Waiting for {self._active_streams} active streams to complete...")
            await asyncio.sleep(0.1)
            wait_time += 0.1

        if self._active_streams > 0:
            logger.warning(
                f"Cleanup timeout: {self._active_streams} streams still active after "
                f"{self.CLEANUP_TIMEOUT}s. Proceeding with cleanup."
            )

        for provider in self._providers.values():
            try:
                await provider.cleanup()
            except Exception as e:
                logger.warning(f"Error cleaning up provider {provider.name}: {e}")
        self._providers.clear()


# Singleton instance
provider_registry = ProviderRegistry()
