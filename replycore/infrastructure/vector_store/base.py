"""Base retrieval store implementation."""

from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Optional, Tuple

from replycore.core.interfaces import IEmbeddingModel, IRetrievalStore
from replycore.core.exceptions import RetrievalError
from replycore.core.models import SearchResult, VectorDocument
from replycore.utils.logger import get_logger

logger = get_logger(__name__)


class BaseRetrievalStore(ABC, IRetrievalStore):
    """Base class for retrieval stores.

    Embedding and result shaping live here; subclasses own storage and raw
    scoring.
    """

    def __init__(self, config: Dict[str, Any], embedding_model: IEmbeddingModel):
        self.config = config
        self.embedding_model = embedding_model
        self.max_embedding_chars = int(config.get('max_embedding_chars', 8000))
        self.default_top_k = int(config.get('top_k', 5))
        self.default_threshold = float(config.get('similarity_threshold', 0.7))

    async def index(self, document: VectorDocument) -> None:
        """
        Embed and store a document, replacing any with the same id.

        Raises:
            RetrievalError: If embedding fails or the embedding dimension
                differs from the documents already stored
        """
        if not document.content or not document.content.strip():
            raise RetrievalError(f"Document {document.id} has no content")

        embedding = document.embedding
        if embedding is None:
            try:
                embedding = await self.embedding_model.embed_text(
                    document.content[: self.max_embedding_chars]
                )
            except RetrievalError:
                raise
            except Exception as e:
                logger.error(f"Failed to embed document {document.id}: {e}")
                raise RetrievalError(f"Failed to embed document {document.id}: {e}")

        # Store a copy; the caller's document is never mutated
        await self._store(replace(document, embedding=list(embedding)))
        logger.debug(f"Indexed document {document.id}")

    async def index_many(self, documents: Iterable[VectorDocument]) -> int:
        """Index documents one by one; the first failure stops the batch."""
        count = 0
        for document in documents:
            await self.index(document)
            count += 1
        logger.info(f"Indexed {count} documents")
        return count

    async def search(
        self,
        query: str,
        top_k: Optional[int] = None,
        similarity_threshold: Optional[float] = None,
        type_filter: Optional[str] = None,
        allowed_source_ids: Optional[Iterable[str]] = None,
    ) -> SearchResult:
        """
        Search for documents similar to the query.

        Documents scoring below the threshold are dropped, the rest sorted by
        descending score, filtered by type and source, then truncated to
        ``top_k``. An embedding failure yields an empty result.
        """
        top_k = self.default_top_k if top_k is None else top_k
        threshold = self.default_threshold if similarity_threshold is None else similarity_threshold

        try:
            query_embedding = await self.embedding_model.embed_text(query[: self.max_embedding_chars])
        except Exception as e:
            logger.warning(f"Search embedding failed, returning no results: {e}")
            return SearchResult()

        scored = [(doc, score) for doc, score in self._score(query_embedding) if score >= threshold]
        scored.sort(key=lambda item: item[1], reverse=True)

        if type_filter:
            scored = [(doc, score) for doc, score in scored if doc.metadata.type == type_filter]
        if allowed_source_ids is not None:
            allowed = set(allowed_source_ids)
            scored = [(doc, score) for doc, score in scored if doc.metadata.source_id in allowed]

        scored = scored[: max(top_k, 0)]
        logger.debug(f"Found {len(scored)} documents for query")

        return SearchResult(
            documents=[doc for doc, _ in scored],
            scores=[score for _, score in scored],
            has_relevant_training=bool(scored),
        )

    @abstractmethod
    async def _store(self, document: VectorDocument) -> None:
        """Store an embedded document."""
        pass

    @abstractmethod
    def _score(self, query_embedding: List[float]) -> List[Tuple[VectorDocument, float]]:
        """Score every stored document against the query embedding."""
        pass

    @abstractmethod
    async def remove(self, document_id: str) -> bool:
        pass

    @abstractmethod
    async def clear(self) -> None:
        pass

    @abstractmethod
    def count(self) -> int:
        pass
