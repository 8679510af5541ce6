"""API client for replycore."""

import aiohttp
import asyncio
from typing import Dict, Any, List, Optional
from urllib.parse import urljoin

from replycore.core.exceptions import ReplyCoreError
from replycore.utils.logger import get_logger

logger = get_logger(__name__)


class APIClient:
    """Async HTTP client for the replycore API."""

    def __init__(self, base_url: str = "http://localhost:8000", timeout: int = 60):
        self.base_url = base_url.rstrip('/')
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self):
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def _ensure_session(self):
        if self.session is None:
            self.session = aiohttp.ClientSession(timeout=self.timeout)

    async def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        await self._ensure_session()
        url = urljoin(self.base_url, path)

        try:
            async with self.session.request(method, url, json=payload) as response:
                if response.status == 200:
                    return await response.json()
                error_text = await response.text()
                raise ReplyCoreError(f"API error ({response.status}): {error_text}")

        except aiohttp.ClientError as e:
            logger.error(f"HTTP client error: {e}")
            raise ReplyCoreError(f"Connection error: {e}")
        except asyncio.TimeoutError:
            raise ReplyCoreError("Request timeout")

    async def reply(
        self,
        history: List[Dict[str, str]],
        use_retrieval: bool = True,
        **kwargs
    ) -> Dict[str, Any]:
        """
        Request a reply for a conversation.

        Args:
            history: ``{"direction", "text"}`` records, oldest first
            use_retrieval: Ground the reply on training documents

        Returns:
            API response
        """
        payload = {"history": history, "use_retrieval": use_retrieval, **kwargs}
        return await self._request("POST", "/v1/reply", payload)

    async def search(self, query: str, top_k: int = 5, similarity_threshold: float = 0.7) -> Dict[str, Any]:
        payload = {"query": query, "top_k": top_k, "similarity_threshold": similarity_threshold}
        return await self._request("POST", "/v1/search", payload)

    async def health_check(self) -> Dict[str, Any]:
        """Check API health."""
        return await self._request("GET", "/health")

    async def close(self):
        """Close the client session."""
        if self.session:
            await self.session.close()
            self.session = None
