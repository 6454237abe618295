"""
Redis cache and rate limiting.

Every call degrades gracefully when Redis is not connected: reads miss,
writes are dropped and rate limits let the request through.
"""
import json
from typing import Any, Optional, Dict
import logging

from redis.exceptions import RedisError

from . import core

logger = logging.getLogger(__name__)


class CacheManager:
    """Thin JSON cache on top of the shared Redis connection"""

    def __init__(self):
        self.default_ttl = 3600  # 1 hour default TTL

    def _make_key(self, key: str, prefix: str = "") -> str:
        """Generate cache key with prefix"""
        if prefix:
            return f"{prefix}:{key}"
        return key

    async def set(self, key: str, value: Any, ttl: int = None, prefix: str = "") -> bool:
        """Set cache value with TTL"""
        if not core.REDIS:
            return False

        cache_key = self._make_key(key, prefix)
        ttl = ttl or self.default_ttl

        try:
            await core.REDIS.setex(cache_key, ttl, json.dumps(value, default=str))
            return True
        except RedisError as e:
            logger.error(f"Cache set failed for key {cache_key}: {str(e)}")
            return False

    async def get(self, key: str, prefix: str = "") -> Optional[Any]:
        """Get cache value"""
        if not core.REDIS:
            return None

        cache_key = self._make_key(key, prefix)

        try:
            value = await core.REDIS.get(cache_key)
        except RedisError as e:
            logger.error(f"Cache get failed for key {cache_key}: {str(e)}")
            return None
        if value is None:
            return None
        try:
            return json.loads(value)
        except (json.JSONDecodeError, TypeError):
            return None

    async def delete(self, key: str, prefix: str = "") -> bool:
        """Delete cache key"""
        if not core.REDIS:
            return False

        cache_key = self._make_key(key, prefix)

        try:
            result = await core.REDIS.delete(cache_key)
            return result > 0
        except RedisError as e:
            logger.error(f"Cache delete failed for key {cache_key}: {str(e)}")
            return False

    async def hit(self, key: str, window: int, prefix: str = "") -> Optional[int]:
        """Increment a windowed counter, starting the window on first hit"""
        if not core.REDIS:
            return None

        cache_key = self._make_key(key, prefix)

        try:
            current = await core.REDIS.incr(cache_key)
            if current == 1:
                await core.REDIS.expire(cache_key, window)
            return current
        except RedisError as e:
            logger.error(f"Cache increment failed for key {cache_key}: {str(e)}")
            return None


# Global cache manager instance
cache = CacheManager()


# Public profile cache, keyed by username
async def cache_profile(username: str, profile: Dict, ttl: int = 300):
    return await cache.set(username, profile, ttl, "profile")


async def get_cached_profile(username: str) -> Optional[Dict]:
    return await cache.get(username, "profile")


async def invalidate_profile(*usernames: str):
    for username in usernames:
        if username:
            await cache.delete(username, "profile")


async def check_rate_limit(user_id: int, action: str, limit: int = 100, window: int = 3600) -> bool:
    """Check if user is within rate limit"""
    current = await cache.hit(f"{user_id}:{action}", window, "rate")
    if current is None:
        return True
    return current <= limit
