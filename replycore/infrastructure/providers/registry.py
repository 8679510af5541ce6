"""Provider registry built from configuration."""

import asyncio
from typing import Any, Dict, Iterable, List, Optional

from .anthropic_adapter import AnthropicAdapter
from .base import BaseProviderAdapter
from .deepseek_adapter import DeepSeekAdapter
from .groq_adapter import GroqAdapter
from .mock_adapter import MockProviderAdapter
from .openai_adapter import OpenAIAdapter
from replycore.core.exceptions import ConfigurationError
from replycore.core.interfaces import IIntegrationSource, IProviderAdapter
from replycore.core.models import ProviderDescriptor
from replycore.infrastructure.credentials import InMemoryIntegrationSource
from replycore.utils.logger import get_logger

logger = get_logger(__name__)

ADAPTER_TYPES = {
    "openai": OpenAIAdapter,
    "groq": GroqAdapter,
    "llama3": GroqAdapter,
    "deepseek": DeepSeekAdapter,
    "anthropic": AnthropicAdapter,
    "mock": MockProviderAdapter,
}


def create_provider_adapter(
    name: str,
    config: Dict[str, Any],
    integrations: Optional[IIntegrationSource] = None,
) -> BaseProviderAdapter:
    """
    Factory function to create provider adapters.

    Args:
        name: Provider name, used as the adapter type unless config sets ``type``
        config: Provider configuration
        integrations: Integration records for credential resolution

    Returns:
        Provider adapter instance

    Raises:
        ConfigurationError: If the adapter type is unknown
    """
    adapter_type = config.get("type", name)
    adapter_cls = ADAPTER_TYPES.get(adapter_type)
    if adapter_cls is None:
        raise ConfigurationError(f"Unknown provider type: {adapter_type}")

    if adapter_cls is MockProviderAdapter:
        return MockProviderAdapter(config, integrations, name=name)
    return adapter_cls(config, integrations)


class ProviderRegistry:
    """Adapters by name, in registration order."""

    def __init__(self, adapters: Optional[Iterable[IProviderAdapter]] = None):
        self._adapters: Dict[str, IProviderAdapter] = {}
        for adapter in adapters or []:
            self.register(adapter)

    @classmethod
    def from_config(
        cls,
        providers_config: Dict[str, Any],
        integrations: Optional[IIntegrationSource] = None,
    ) -> "ProviderRegistry":
        registry = cls()
        for name, provider_config in (providers_config or {}).items():
            provider_config = provider_config or {}
            if not provider_config.get("enabled", True):
                logger.info(f"Provider {name} disabled in config")
                continue
            registry.register(create_provider_adapter(name, provider_config, integrations))
        return registry

    def register(self, adapter: IProviderAdapter) -> None:
        if adapter.name in self._adapters:
            logger.warning(f"Replacing registered provider: {adapter.name}")
        self._adapters[adapter.name] = adapter

    def get(self, name: str) -> Optional[IProviderAdapter]:
        return self._adapters.get(name)

    def names(self) -> List[str]:
        return list(self._adapters)

    def __len__(self) -> int:
        return len(self._adapters)

    async def available(self) -> List[IProviderAdapter]:
        """Return adapters whose credentials resolve, in registry order."""
        adapters = list(self._adapters.values())
        flags = await asyncio.gather(*(a.is_available() for a in adapters))
        return [adapter for adapter, ok in zip(adapters, flags) if ok]

    async def descriptors(self) -> List[ProviderDescriptor]:
        """Describe every adapter with freshly checked availability."""
        await self.available()
        return [adapter.descriptor() for adapter in self._adapters.values()]

    def reset_credentials(self) -> None:
        for adapter in self._adapters.values():
            reset = getattr(adapter, "reset_credentials", None)
            if reset is not None:
                reset()

    async def shutdown(self) -> None:
        """Close every adapter's resources."""
        for adapter in self._adapters.values():
            try:
                await adapter.shutdown()
            except Exception as e:
                logger.warning(f"Error shutting down provider {adapter.name}: {e}")


def create_provider_registry(
    config: Dict[str, Any],
    integrations: Optional[IIntegrationSource] = None,
) -> ProviderRegistry:
    """
    Build the provider registry from the full configuration.

    Integration records default to the ``integrations`` config section.
    """
    if integrations is None:
        integrations = InMemoryIntegrationSource.from_config(config.get("integrations") or {})
    return ProviderRegistry.from_config(config.get("providers") or {}, integrations)
