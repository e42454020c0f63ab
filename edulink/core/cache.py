# edulink/core/cache.py
"""Redis caching implementation."""
import logging
import pickle
from typing import Any, Optional, Union
from datetime import timedelta
import redis.asyncio as redis
from redis.exceptions import RedisError
from .config import settings

logger = logging.getLogger(__name__)

class CacheManager:
    def __init__(self, url: str = None, enabled: bool = None):
        self.url = url or settings.redis_url
        self.enabled = settings.cache_enabled if enabled is None else enabled
        self.redis: Optional[redis.Redis] = None

    async def connect(self):
        """Initialize Redis connection."""
        if self.enabled and not self.redis:
            self.redis = redis.from_url(
                self.url,
                encoding="utf-8",
                decode_responses=False
            )

    async def disconnect(self):
        """Close Redis connection."""
        if self.redis:
            await self.redis.aclose()
            self.redis = None

    @staticmethod
    def make_key(*parts: Any) -> str:
        return ":".join(str(part) for part in parts if part is not None)

    async def get(self, key: str) -> Optional[Any]:
        """Get value from cache; misses and failures return None."""
        if not self.enabled:
            return None
        await self.connect()

        try:
            value = await self.redis.get(key)
            if value:
                return pickle.loads(value)
        except RedisError as e:
            logger.warning(f"Cache get failed for {key}: {e}")
        return None

    async def set(
        self,
        key: str,
        value: Any,
        expire: Optional[Union[int, timedelta]] = None
    ) -> bool:
        """Set value in cache."""
        if not self.enabled:
            return False
        await self.connect()

        expire = expire or settings.cache_ttl
        if isinstance(expire, timedelta):
            expire = int(expire.total_seconds())
        try:
            return bool(await self.redis.setex(key, expire, pickle.dumps(value)))
        except RedisError as e:
            logger.warning(f"Cache set failed for {key}: {e}")
            return False

    async def delete_pattern(self, pattern: str) -> int:
        """Delete every key matching a glob pattern."""
        if not self.enabled:
            return 0
        await self.connect()

        deleted = 0
        try:
            async for key in self.redis.scan_iter(match=pattern):
                deleted += await self.redis.delete(key)
        except RedisError as e:
            logger.warning(f"Cache invalidation failed for {pattern}: {e}")
        return deleted

# Global cache instance
cache_manager = CacheManager()

async def get_cache() -> CacheManager:
    """Dependency to get cache instance."""
    return cache_manager
