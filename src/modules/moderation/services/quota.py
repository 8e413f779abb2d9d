from src.core.services.redis_service import RedisService

QUOTA_FLAG_KEY = "moderation:quota_exceeded"


class QuotaFlag:
    """
    Process-wide "plan quota exceeded" state.

    Set by the client on HTTP 402 and read by the retry queue to stop scheduling.
    It stays set until an operator clears it after upgrading the plan.
    """

    def __init__(self, redis: RedisService, key: str = QUOTA_FLAG_KEY):
        self.redis = redis
        self.key = key

    async def is_set(self) -> bool:
        return await self.redis.get(self.key) == "1"

    async def set(self) -> None:
        await self.redis.set(self.key, "1")

    async def clear(self) -> None:
        await self.redis.delete(self.key)
