"""Core interfaces for replycore."""

from typing import Protocol, List, Dict, Any, Optional, Sequence
from dataclasses import dataclass, field

from replycore.core.models import (
    CompletionOptions,
    CompletionResult,
    Message,
    ProviderDescriptor,
    SearchResult,
    UsageLogEntry,
    VectorDocument,
)

@dataclass
class IntegrationRecord:
    """Persisted provider integration, owned by the calling application."""
    name: str
    is_enabled: bool
    api_key: Optional[str]
    config: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

class IProviderAdapter(Protocol):
    """Interface for provider adapters."""

    name: str

    async def complete(
        self,
        messages: Sequence[Message],
        options: Optional[CompletionOptions] = None
    ) -> CompletionResult:
        """Generate a completion for the message list."""
        ...

    async def is_available(self) -> bool:
        """Resolve credentials and report whether the provider can be used."""
        ...

    def descriptor(self) -> ProviderDescriptor:
        """Describe the provider."""
        ...

    async def shutdown(self) -> None:
        """Cleanup resources."""
        ...

class IIntegrationSource(Protocol):
    """Read access to persisted integration records."""

    async def get_integration(self, name: str) -> Optional[IntegrationRecord]:
        """Fetch an integration by name."""
        ...

class IUsageSink(Protocol):
    """Append-only destination for usage entries."""

    async def append(self, entry: UsageLogEntry) -> None:
        """Append one entry."""
        ...

class IRetrievalStore(Protocol):
    """Interface for retrieval stores."""

    async def index(self, document: VectorDocument) -> None:
        """Embed and store a document, replacing any with the same id."""
        ...

    async def search(
        self,
        query: str,
        top_k: int = 5,
        similarity_threshold: float = 0.7,
        type_filter: Optional[str] = None,
        allowed_source_ids: Optional[Sequence[str]] = None,
    ) -> SearchResult:
        """Search for similar documents."""
        ...

    async def remove(self, document_id: str) -> bool:
        """Remove a document by id."""
        ...

    async def clear(self) -> None:
        """Remove every document."""
        ...

class IEmbeddingModel(Protocol):
    """Interface for embedding models."""

    async def embed_text(self, text: str) -> List[float]:
        """Generate embedding for text."""
        ...

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        """Generate embeddings for multiple texts."""
        ...

    @property
    def dimension(self) -> int:
        """Get embedding dimension."""
        ...
