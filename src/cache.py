import asyncio
import logging
from typing import Optional, Protocol

from redis.asyncio import Redis
from redis.exceptions import RedisError

from src.exceptions import CacheError

logger = logging.getLogger(__name__)

KEY_PREFIX = "url:"


class URLCache(Protocol):
    async def get(self, short_key: str) -> Optional[str]: ...

    async def set(self, short_key: str, long_url: str, ttl: int) -> None: ...

    async def delete(self, short_key: str) -> None: ...


def cache_key(short_key: str) -> str:
    return f"{KEY_PREFIX}{short_key}"


class RedisURLCache:
    """Short key -> long URL entries in Redis.

    ``get`` returns None on a miss. Transport failures surface as CacheError.
    """

    def __init__(self, redis: Redis):
        self.redis = redis

    async def get(self, short_key: str) -> Optional[str]:
        try:
            return await self.redis.get(cache_key(short_key))
        except (RedisError, OSError, asyncio.TimeoutError) as exc:
            raise CacheError("get", short_key, str(exc)) from exc

    async def set(self, short_key: str, long_url: str, ttl: int) -> None:
        try:
            await self.redis.setex(cache_key(short_key), ttl, long_url)
        except (RedisError, OSError, asyncio.TimeoutError) as exc:
            raise CacheError("set", short_key, str(exc)) from exc

    async def delete(self, short_key: str) -> None:
        try:
            await self.redis.delete(cache_key(short_key))
        except (RedisError, OSError, asyncio.TimeoutError) as exc:
            raise CacheError("delete", short_key, str(exc)) from exc
