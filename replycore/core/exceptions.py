"""Custom exceptions for replycore."""

from typing import Dict, Optional


class ReplyCoreError(Exception):
    """Base exception for replycore."""
    pass

class ConfigurationError(ReplyCoreError):
    """Configuration related errors."""
    pass

class ProviderError(ReplyCoreError):
    """A single provider attempt failed."""

    def __init__(self, message: str, provider: Optional[str] = None, status: Optional[int] = None):
        super().__init__(message)
        self.provider = provider
        self.status = status

class CredentialMissing(ProviderError):
    """No credential could be resolved for a provider."""
    pass

class NoProvidersAvailable(ReplyCoreError):
    """Every configured provider is unavailable."""
    pass

class AllProvidersFailed(ReplyCoreError):
    """Every available provider was attempted and failed.

    The message is the last provider's error; ``errors`` maps each attempted
    provider name to its error message, in attempt order.
    """

    def __init__(self, message: str, errors: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.errors = errors or {}

class ContractError(ReplyCoreError):
    """Candidate reply violates the output contract."""
    pass

class ParseError(ContractError):
    """Raw model text is not a valid structured reply."""
    pass

class SanitizerBlocked(ContractError):
    """Structured reply was rejected by the sanitizer."""
    pass

class RetrievalError(ReplyCoreError):
    """Retrieval store or embedding service errors."""
    pass
