"""Embedding models."""

from typing import Any, Dict

from replycore.core.interfaces import IEmbeddingModel
from .mock_embedding import MockEmbedding
from .openai_embedding import OpenAIEmbedding


def create_embedding_model(config: Dict[str, Any]) -> IEmbeddingModel:
    """Create embedding model based on the ``retrieval`` config section."""
    model_name = config.get('embedding_model', 'text-embedding-3-small')

    if model_name == 'mock':
        return MockEmbedding(int(config.get('embedding_dimension', 384)))
    return OpenAIEmbedding(config)


__all__ = ['create_embedding_model', 'OpenAIEmbedding', 'MockEmbedding']
