"""Redis-based distributed locks for tee-time booking."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import redis.asyncio as redis

from fairway.logging import get_logger
from fairway.storage.repository_base import TeeTimeLock

logger = get_logger(__name__)


class RedisTeeTimeLock(TeeTimeLock):
    """Per-tee-time lock using ``SET key 1 NX EX ttl``."""

    key_prefix = "fairway:lock:teetime"

    def __init__(self, redis_url: str, ttl_seconds: int = 5):
        """Initialize Redis lock helper."""
        self.redis_url = redis_url
        self.ttl_seconds = ttl_seconds
        self._client: redis.Redis | None = None

    @classmethod
    def from_client(cls, client: redis.Redis, ttl_seconds: int = 5) -> "RedisTeeTimeLock":
        """Wrap an already connected client."""
        lock = cls(redis_url="", ttl_seconds=ttl_seconds)
        lock._client = client
        return lock

    async def connect(self) -> None:
        """Establish Redis connection."""
        self._client = redis.from_url(self.redis_url, encoding="utf-8")

    async def disconnect(self) -> None:
        """Close Redis connection."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def _key(self, tee_time_id: int) -> str:
        return f"{self.key_prefix}:{tee_time_id}"

    @asynccontextmanager
    async def acquire(self, tee_time_id: int) -> AsyncGenerator[bool, None]:
        """Acquire exclusive lock on a tee time for a booking."""
        if not self._client:
            raise RuntimeError("Redis client not connected")

        lock_key = self._key(tee_time_id)
        acquired = False

        try:
            acquired = bool(
                await self._client.set(lock_key, "1", ex=self.ttl_seconds, nx=True)
            )
            if not acquired:
                logger.debug("tee_time_lock_busy", tee_time_id=tee_time_id)
            yield acquired
        finally:
            if acquired:
                await self._client.delete(lock_key)

    async def is_locked(self, tee_time_id: int) -> bool:
        """Check if a tee time is currently locked."""
        if not self._client:
            raise RuntimeError("Redis client not connected")

        return bool(await self._client.exists(self._key(tee_time_id)))
