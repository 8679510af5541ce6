"""Provider adapter implementations."""

from .base import BaseProviderAdapter, HttpProviderAdapter
from .openai_adapter import OpenAIAdapter
from .openai_compatible import OpenAICompatibleAdapter
from .groq_adapter import GroqAdapter
from .deepseek_adapter import DeepSeekAdapter
from .anthropic_adapter import AnthropicAdapter
from .mock_adapter import MockProviderAdapter
from .registry import (
    ProviderRegistry,
    create_provider_adapter,
    create_provider_registry,
)

__all__ = [
    'BaseProviderAdapter',
    'HttpProviderAdapter',
    'OpenAIAdapter',
    'OpenAICompatibleAdapter',
    'GroqAdapter',
    'DeepSeekAdapter',
    'AnthropicAdapter',
    'MockProviderAdapter',
    'ProviderRegistry',
    'create_provider_adapter',
    'create_provider_registry',
]
