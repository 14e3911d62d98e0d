"""
Catalog persistence adapters.
A single key holds the whole {products, index, last_updated} document.
"""
import copy
import json
from typing import Optional

# Import external dependencies at module level for easier testing
import redis.asyncio as redis
from redis.exceptions import RedisError

from ordersync.config import config
from ordersync.errors import CatalogStoreError
from ordersync.logger import logger
from ordersync.models.index import CatalogState


class CatalogStore:
    """Base interface for catalog persistence."""

    def __init__(self):
        self.is_available = False

    async def initialize(self):
        pass

    async def close(self):
        pass

    async def load(self) -> Optional[CatalogState]:
        raise NotImplementedError

    async def save(self, state: CatalogState):
        raise NotImplementedError

    async def clear(self):
        raise NotImplementedError


class InMemoryCatalogStore(CatalogStore):
    """Process-local store; used when Redis is unreachable and in tests."""

    def __init__(self):
        super().__init__()
        self.is_available = True
        self._document: Optional[dict] = None

    async def load(self) -> Optional[CatalogState]:
        if self._document is None:
            return None
        return CatalogState.from_dict(copy.deepcopy(self._document))

    async def save(self, state: CatalogState):
        self._document = copy.deepcopy(state.to_dict())

    async def clear(self):
        self._document = None


class RedisCatalogStore(CatalogStore):
    """Redis-backed store, full-document JSON under CATALOG_STORAGE_KEY."""

    def __init__(self, key: Optional[str] = None):
        super().__init__()
        self.redis = None
        self.key = key or config.CATALOG_STORAGE_KEY

    async def initialize(self):
        try:
            self.redis = redis.from_url(config.REDIS_URL, decode_responses=True)
            await self.redis.ping()
            self.is_available = True
            logger.info("Redis catalog store initialized")
        except (RedisError, OSError) as e:
            logger.warning(f"Redis catalog store init failed: {e}")
            self.is_available = False

    async def close(self):
        if self.redis:
            await self.redis.aclose()

    def _require(self):
        if not self.is_available or self.redis is None:
            raise CatalogStoreError("Redis catalog store is not available")

    async def load(self) -> Optional[CatalogState]:
        self._require()
        try:
            data = await self.redis.get(self.key)
        except RedisError as e:
            raise CatalogStoreError(f"Failed to load catalog: {e}") from e

        if not data:
            return None
        try:
            return CatalogState.from_dict(json.loads(data))
        except (json.JSONDecodeError, TypeError, ValueError) as e:
            raise CatalogStoreError(f"Stored catalog is corrupt: {e}") from e

    async def save(self, state: CatalogState):
        self._require()
        try:
            await self.redis.set(self.key, json.dumps(state.to_dict()))
        except RedisError as e:
            raise CatalogStoreError(f"Failed to save catalog: {e}") from e

    async def clear(self):
        self._require()
        try:
            await self.redis.delete(self.key)
        except RedisError as e:
            raise CatalogStoreError(f"Failed to clear catalog: {e}") from e
