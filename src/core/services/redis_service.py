import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import timedelta

from redis.asyncio import Redis
from redis.exceptions import WatchError

from src.core.config import settings


class RedisService:
    def __init__(self, client: Redis | None = None):
        self.client = client or Redis.from_url(settings.REDIS_URL, encoding="utf-8", decode_responses=True)

    async def set(self, key: str, value: str | int, expire: int | timedelta | None = None):
        """Set value in Redis."""
        await self.client.set(key, value, ex=expire)

    async def get(self, key: str) -> str | None:
        """Get value from Redis."""
        return await self.client.get(key)

    async def delete(self, *keys: str):
        """Delete keys from Redis."""
        if keys:
            await self.client.delete(*keys)

    async def exists(self, key: str) -> bool:
        return bool(await self.client.exists(key))

    async def set_if_absent(self, key: str, value: str | int, expire: int | timedelta) -> bool:
        """
        Atomically set a key only if it does not exist yet.

        Returns:
            bool: True if the key was set, False if it was already present
        """
        return bool(await self.client.set(key, value, ex=expire, nx=True))

    @asynccontextmanager
    async def lock(self, key: str, ttl: int) -> AsyncIterator[bool]:
        """
        Short-lived exclusive lock.

        Yields True if this caller holds the lock. The key stores a token unique to
        this holder and is released on exit only while it still carries that token,
        so a holder that outlived its TTL cannot free a lock someone else now owns.
        """
        token = uuid.uuid4().hex
        acquired = await self.set_if_absent(key, token, expire=ttl)
        try:
            yield acquired
        finally:
            if acquired:
                await self.delete_if_equals(key, token)

    async def delete_if_equals(self, key: str, value: str) -> bool:
        """
        Delete a key only if it still holds the given value.

        Returns:
            bool: True if the key was deleted
        """
        async with self.client.pipeline(transaction=True) as pipe:
            try:
                await pipe.watch(key)
                if await pipe.get(key) != value:
                    return False
                pipe.multi()
                pipe.delete(key)
                await pipe.execute()
            except WatchError:
                return False
        return True

    async def ping(self) -> bool:
        return bool(await self.client.ping())

    async def close(self):
        """Close Redis connection."""
        await self.client.aclose()


redis_service = RedisService()


async def get_redis_service() -> RedisService:
    return redis_service
