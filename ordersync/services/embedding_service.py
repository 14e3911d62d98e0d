"""
Wrapper for the embeddings API with a bounded in-process cache.
"""
import asyncio
import json
from collections import OrderedDict
from typing import Any, Dict, List, Optional

import aiohttp

from ordersync.config import config
from ordersync.errors import ExternalServiceError, NetworkError
from ordersync.logger import logger
from ordersync.utils.retry import async_retry, with_timeout


class EmbeddingCache:
    """LRU map from normalized text to vector, capped at max_size entries."""

    def __init__(self, max_size: int):
        self.max_size = max(1, max_size)
        self._entries: "OrderedDict[str, List[float]]" = OrderedDict()

    @staticmethod
    def key(text: str) -> str:
        return text.lower().strip()

    def get(self, text: str) -> Optional[List[float]]:
        key = self.key(text)
        if key not in self._entries:
            return None
        self._entries.move_to_end(key)
        return self._entries[key]

    def put(self, text: str, vector: List[float]):
        key = self.key(text)
        self._entries[key] = vector
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_size:
            self._entries.popitem(last=False)

    def clear(self):
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class EmbeddingService:
    """
    Generates text embeddings.
    Identical texts (after lower-casing and trimming) hit the API once.
    """

    def __init__(self, cache_size: Optional[int] = None):
        self.api_key = config.EMBEDDING_API_KEY
        self.base_url = config.EMBEDDING_BASE_URL.rstrip("/")
        self.model = config.EMBEDDING_MODEL
        self.session: Optional[aiohttp.ClientSession] = None
        self.is_available = bool(self.api_key)
        self.cache = EmbeddingCache(cache_size or config.EMBEDDING_CACHE_SIZE)

    async def initialize(self):
        """Initialize HTTP session (called after startup)."""
        if not self.is_available:
            logger.warning("Embedding service not configured")
            return

        self.session = aiohttp.ClientSession(
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json"
            }
        )
        logger.info(f"Embedding service initialized with model: {self.model}")

    async def close(self):
        if self.session:
            await self.session.close()
            self.session = None

    @async_retry()
    async def _request_embedding(self, text: str) -> Dict[str, Any]:
        try:
            response = await with_timeout(
                self.session.post(f"{self.base_url}/embeddings", json={"model": self.model, "input": text}),
                "embedding"
            )
            if response.status != 200:
                error_text = await response.text()
                raise ExternalServiceError(f"Embedding API error {response.status}: {error_text}")
            return await response.json()

        except aiohttp.ClientError as e:
            raise NetworkError(f"Network error calling embedding API: {str(e)}") from e
        except asyncio.TimeoutError as e:
            raise NetworkError(f"Timeout calling embedding API: {str(e)}") from e
        except json.JSONDecodeError as e:
            raise ExternalServiceError(f"Invalid JSON response from embedding API: {str(e)}") from e

    async def generate_embedding(self, text: str) -> List[float]:
        """
        Embedding vector for a text, served from cache when possible.

        Raises:
            ExternalServiceError: If the service is unavailable or returns a malformed body
        """
        cached = self.cache.get(text)
        if cached is not None:
            return cached

        if not self.is_available or self.session is None:
            raise ExternalServiceError("Embedding service not available")

        result = await self._request_embedding(text)
        try:
            vector = [float(x) for x in result["data"][0]["embedding"]]
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise ExternalServiceError("Invalid response format from embedding API") from e

        self.cache.put(text, vector)
        return vector


# Global service instance
embedding_service = EmbeddingService()
