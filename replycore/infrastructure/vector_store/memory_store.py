"""In-memory retrieval store."""

import numpy as np
from typing import Any, Dict, List, Optional, Tuple
from sklearn.metrics.pairwise import cosine_similarity

from .base import BaseRetrievalStore
from replycore.core.interfaces import IEmbeddingModel
from replycore.core.exceptions import RetrievalError
from replycore.core.models import VectorDocument
from replycore.utils.logger import get_logger

logger = get_logger(__name__)


class MemoryRetrievalStore(BaseRetrievalStore):
    """Documents and their embedding matrix held in process memory.

    Rows of ``embeddings`` align with ``documents``. Mutation and search are
    not synchronized; a single editor is assumed.
    """

    def __init__(self, config: Dict[str, Any], embedding_model: IEmbeddingModel):
        super().__init__(config, embedding_model)
        self.documents: List[VectorDocument] = []
        self.embeddings: Optional[np.ndarray] = None

    @property
    def dimension(self) -> Optional[int]:
        if self.embeddings is None:
            return None
        return self.embeddings.shape[1]

    async def _store(self, document: VectorDocument) -> None:
        vector = np.asarray(document.embedding, dtype=float)
        if vector.ndim != 1 or vector.size == 0:
            raise RetrievalError(f"Invalid embedding for document {document.id}")

        existing = self._position(document.id)
        # A replacement of the only document may change dimension
        if self.dimension is not None and vector.size != self.dimension and not (
            existing is not None and len(self.documents) == 1
        ):
            raise RetrievalError(
                f"Embedding dimension {vector.size} does not match store dimension {self.dimension}"
            )

        if existing is not None:
            if len(self.documents) == 1:
                self.documents = [document]
                self.embeddings = vector.reshape(1, -1)
            else:
                self.documents[existing] = document
                self.embeddings[existing] = vector
            return

        self.documents.append(document)
        if self.embeddings is None:
            self.embeddings = vector.reshape(1, -1)
        else:
            self.embeddings = np.vstack([self.embeddings, vector])

    def _score(self, query_embedding: List[float]) -> List[Tuple[VectorDocument, float]]:
        if not self.documents or self.embeddings is None:
            return []

        query_vec = np.asarray(query_embedding, dtype=float).reshape(1, -1)
        if query_vec.shape[1] != self.dimension:
            logger.warning(
                f"Query embedding dimension {query_vec.shape[1]} does not match store dimension {self.dimension}"
            )
            return []

        # Zero vectors normalize to zero rows and score 0.0
        similarities = cosine_similarity(query_vec, self.embeddings)[0]
        return [(doc, float(score)) for doc, score in zip(self.documents, similarities)]

    def _position(self, document_id: str) -> Optional[int]:
        for i, doc in enumerate(self.documents):
            if doc.id == document_id:
                return i
        return None

    def get(self, document_id: str) -> Optional[VectorDocument]:
        position = self._position(document_id)
        return self.documents[position] if position is not None else None

    def count(self) -> int:
        return len(self.documents)

    async def remove(self, document_id: str) -> bool:
        """Remove a document by id; returns False when it was not indexed."""
        position = self._position(document_id)
        if position is None:
            return False

        self.documents.pop(position)
        if self.documents:
            self.embeddings = np.delete(self.embeddings, position, axis=0)
        else:
            self.embeddings = None
        logger.info(f"Removed document {document_id}")
        return True

    async def clear(self) -> None:
        self.documents.clear()
        self.embeddings = None
        logger.info("Retrieval store cleared")
