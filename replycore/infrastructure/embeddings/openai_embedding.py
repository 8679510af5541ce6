"""OpenAI embedding model."""

import os
from typing import Any, Dict, List, Optional

import openai
from openai import AsyncOpenAI

from replycore.core.exceptions import RetrievalError
from replycore.utils.logger import get_logger

logger = get_logger(__name__)

MODEL_DIMENSIONS = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
}


class OpenAIEmbedding:
    """Embedding model backed by the OpenAI embeddings endpoint."""

    def __init__(self, config: Dict[str, Any]):
        self.model_name = config.get("embedding_model", "text-embedding-3-small")
        self.max_chars = int(config.get("max_embedding_chars", 8000))
        self.api_key = config.get("embedding_api_key") or os.getenv(
            config.get("embedding_api_key_env", "OPENAI_API_KEY")
        )
        self.base_url = config.get("embedding_base_url")
        self.client: Optional[AsyncOpenAI] = None

    def _get_client(self) -> AsyncOpenAI:
        if not self.api_key:
            raise RetrievalError("OpenAI API key not configured for embeddings")
        if self.client is None:
            self.client = AsyncOpenAI(api_key=self.api_key, base_url=self.base_url)
        return self.client

    async def embed_text(self, text: str) -> List[float]:
        """Generate embedding for text, truncated to the character limit."""
        embeddings = await self.embed_batch([text])
        return embeddings[0]

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        """Generate embeddings for multiple texts."""
        if not texts:
            return []

        client = self._get_client()
        try:
            response = await client.embeddings.create(
                input=[text[: self.max_chars] for text in texts],
                model=self.model_name,
            )
        except openai.APIError as e:
            logger.error(f"Embedding generation error: {e}")
            raise RetrievalError(f"Embedding generation failed: {e}")

        return [item.embedding for item in response.data]

    @property
    def dimension(self) -> int:
        return MODEL_DIMENSIONS.get(self.model_name, 1536)

    async def shutdown(self) -> None:
        if self.client:
            await self.client.close()
            self.client = None
