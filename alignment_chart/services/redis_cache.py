"""
Remote Cache - Alignment Chart
alignment_chart/services/redis_cache.py

Async read-through cache over Redis, shared across all clients.

get/set never raise: a backing-store failure degrades to a miss (get) or a
dropped write (set) and is logged. A cache outage costs latency and money,
never correctness.
"""
from typing import Optional, Type, TypeVar

import redis.asyncio as redis
from pydantic import BaseModel, ValidationError

from alignment_chart.config import settings
from alignment_chart.core.exceptions import CacheUnavailable
from alignment_chart.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T", bound=BaseModel)


class RedisCache:
    """Read-through cache of pydantic models, serialized as JSON with a TTL."""

    def __init__(
        self,
        url: Optional[str] = None,
        client: Optional[redis.Redis] = None,
        socket_timeout: Optional[float] = None,
    ):
        self.url = url or settings.REDIS_URL
        self.socket_timeout = socket_timeout or settings.REDIS_SOCKET_TIMEOUT
        self._client = client

    @property
    def client(self) -> redis.Redis:
        """Construct the Redis client on first use and reuse it thereafter."""
        if self._client is None:
            self._client = redis.from_url(
                self.url,
                decode_responses=True,
                socket_connect_timeout=self.socket_timeout,
                socket_timeout=self.socket_timeout,
            )
        return self._client

    async def _call(self, operation: str, *args):
        """Run one client command, translating any backing-store failure."""
        try:
            return await getattr(self.client, operation)(*args)
        except Exception as e:
            raise CacheUnavailable(f"{operation} failed: {e}") from e

    async def get(self, key: str, model: Type[T]) -> Optional[T]:
        """Get cached item and deserialize to a pydantic model. Any failure is a miss."""
        try:
            data = await self._call("get", key)
        except CacheUnavailable as e:
            logger.warning("remote_cache_get_failed", key=key, error=e.message)
            return None
        if not data:
            return None
        try:
            return model.model_validate_json(data)
        except ValidationError as e:
            logger.warning("remote_cache_entry_invalid", key=key, error=str(e))
            return None

    async def set(self, key: str, value: BaseModel, ttl_seconds: int) -> None:
        """Cache a pydantic model with TTL. Always overwrites; failures are dropped."""
        payload = value.model_dump_json(by_alias=True, exclude_none=True)
        try:
            await self._call("setex", key, ttl_seconds, payload)
        except CacheUnavailable as e:
            logger.warning("remote_cache_set_failed", key=key, error=e.message)

    async def delete(self, key: str) -> None:
        """Invalidate a single cache entry."""
        try:
            await self._call("delete", key)
        except CacheUnavailable as e:
            logger.warning("remote_cache_delete_failed", key=key, error=e.message)

    async def ping(self) -> bool:
        try:
            return bool(await self._call("ping"))
        except CacheUnavailable as e:
            logger.warning("remote_cache_ping_failed", error=e.message)
            return False

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
