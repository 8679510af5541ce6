"""Deterministic embedding model for tests and local runs."""

import hashlib
import re
from typing import List

_WORD_RE = re.compile(r"\w+")


class MockEmbedding:
    """Hashed bag-of-words embedding.

    Each lower-cased word is hashed with md5 into one of ``dimension``
    buckets, so identical texts embed identically and texts sharing no words
    are orthogonal. Text without words embeds as the zero vector.
    """

    def __init__(self, dimension: int = 384):
        self._dimension = dimension

    async def embed_text(self, text: str) -> List[float]:
        embedding = [0.0] * self._dimension
        for word in _WORD_RE.findall(text.lower()):
            digest = hashlib.md5(word.encode()).hexdigest()
            embedding[int(digest, 16) % self._dimension] += 1.0
        return embedding

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        embeddings = []
        for text in texts:
            embeddings.append(await self.embed_text(text))
        return embeddings

    @property
    def dimension(self) -> int:
        return self._dimension
