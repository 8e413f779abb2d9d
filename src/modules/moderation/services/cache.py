import hashlib

from pydantic import ValidationError

from src.core.config import Settings, settings
from src.core.logging import get_logger
from src.core.services.redis_service import RedisService
from src.modules.moderation.schemas import ScanResult

logger = get_logger(__name__)

CACHE_KEY_PREFIX = "moderation:cache"


def fingerprint(content: str, profile_id: str | None = None) -> str:
    """Stable cache key for a piece of content scanned under a profile."""
    return hashlib.md5(f"{content}{profile_id or ''}".encode()).hexdigest()


def content_hash(content: str) -> str:
    return hashlib.md5(content.encode()).hexdigest()


class DecisionCache:
    """Terminal scan decisions keyed by entity and content fingerprint."""

    def __init__(self, redis: RedisService, config: Settings = settings):
        self.redis = redis
        self.config = config

    @staticmethod
    def key(entity_class: str, entity_id: str | int, digest: str) -> str:
        return f"{CACHE_KEY_PREFIX}:{entity_class}:{entity_id}:{digest}"

    def _ttl(self, ttl: int | None) -> int:
        return self.config.MODERATION_CACHE_TTL if ttl is None else ttl

    async def get(
        self, entity_class: str, entity_id: str | int, digest: str, ttl: int | None = None
    ) -> ScanResult | None:
        if self._ttl(ttl) <= 0:
            return None

        raw = await self.redis.get(self.key(entity_class, entity_id, digest))
        if raw is None:
            return None

        try:
            return ScanResult.model_validate_json(raw)
        except ValidationError:
            logger.warning(f"Discarding unreadable cache entry for {entity_class}:{entity_id}")
            return None

    async def put(
        self,
        entity_class: str,
        entity_id: str | int,
        digest: str,
        result: ScanResult,
        ttl: int | None = None,
    ) -> None:
        ttl = self._ttl(ttl)
        if ttl <= 0 or result.is_transient:
            return

        await self.redis.set(self.key(entity_class, entity_id, digest), result.model_dump_json(), expire=ttl)
