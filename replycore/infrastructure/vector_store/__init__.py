"""Retrieval store implementations."""

from typing import Dict, Any

from replycore.core.interfaces import IEmbeddingModel
from replycore.core.exceptions import RetrievalError
from .base import BaseRetrievalStore
from .memory_store import MemoryRetrievalStore
from .similarity import cosine_similarity


def create_retrieval_store(
    config: Dict[str, Any], embedding_model: IEmbeddingModel
) -> BaseRetrievalStore:
    """
    Factory function to create retrieval stores.

    Args:
        config: ``retrieval`` configuration
        embedding_model: Embedding model to use

    Returns:
        Retrieval store instance

    Raises:
        RetrievalError: If store type is unknown
    """
    store_type = config.get("store", "memory")

    if store_type == "memory":
        return MemoryRetrievalStore(config, embedding_model)
    raise RetrievalError(f"Unknown retrieval store: {store_type}")


__all__ = ["create_retrieval_store", "BaseRetrievalStore", "MemoryRetrievalStore", "cosine_similarity"]
