from chatstream.providers.base import BaseProvider
from chatstream.providers.registry import provider_registry

__all__ = ["BaseProvider", "provider_registry"]
