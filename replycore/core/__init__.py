"""Core domain logic for replycore."""

from .interfaces import (
    IntegrationRecord,
    IProviderAdapter,
    IIntegrationSource,
    IUsageSink,
    IRetrievalStore,
    IEmbeddingModel,
)
from .exceptions import (
    ReplyCoreError,
    ConfigurationError,
    ProviderError,
    CredentialMissing,
    NoProvidersAvailable,
    AllProvidersFailed,
    ContractError,
    ParseError,
    SanitizerBlocked,
    RetrievalError,
)

__all__ = [
    "IntegrationRecord",
    "IProviderAdapter",
    "IIntegrationSource",
    "IUsageSink",
    "IRetrievalStore",
    "IEmbeddingModel",
    "ReplyCoreError",
    "ConfigurationError",
    "ProviderError",
    "CredentialMissing",
    "NoProvidersAvailable",
    "AllProvidersFailed",
    "ContractError",
    "ParseError",
    "SanitizerBlocked",
    "RetrievalError",
]
