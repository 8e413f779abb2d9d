"""Delayed, de-duplicated dispatch of retry jobs."""

import asyncio
import hashlib
import json
from dataclasses import dataclass, field
from typing import Any, Protocol

from src.core.celery import celery_app
from src.core.config import Settings, settings
from src.core.services.redis_service import RedisService

RETRY_TASK_NAME = "moderation.retry_item"
PENDING_KEY_PREFIX = "moderation:retry:pending"


@dataclass(frozen=True)
class RetryJob:
    """A scheduled re-scan. Two jobs with equal fields are the same job."""

    ref_id: str
    content_hash: str
    context: dict[str, Any] = field(default_factory=dict)
    attempt: int = 1

    def as_args(self) -> list[Any]:
        return [self.ref_id, self.content_hash, self.context, self.attempt]

    def identity(self) -> str:
        encoded = json.dumps(self.as_args(), sort_keys=True, default=str, separators=(",", ":"))
        return hashlib.md5(encoded.encode()).hexdigest()


class RetryScheduler(Protocol):
    async def schedule_once(self, job: RetryJob, delay: int) -> bool:
        """Schedule the job after `delay` seconds. False if an equivalent job is already pending."""
        ...

    async def release(self, job: RetryJob) -> None:
        """Mark the job as no longer pending (it has fired)."""
        ...


class CeleryRetryScheduler:
    """Celery countdown tasks guarded by a Redis pending marker per job identity."""

    def __init__(self, redis: RedisService, config: Settings = settings):
        self.redis = redis
        self.config = config

    @staticmethod
    def pending_key(job: RetryJob) -> str:
        return f"{PENDING_KEY_PREFIX}:{job.identity()}"

    async def schedule_once(self, job: RetryJob, delay: int) -> bool:
        key = self.pending_key(job)
        marker_ttl = delay + self.config.MODERATION_RETRY_PENDING_GRACE
        if not await self.redis.set_if_absent(key, "1", expire=max(marker_ttl, 1)):
            return False

        try:
            await asyncio.to_thread(
                celery_app.send_task, RETRY_TASK_NAME, args=job.as_args(), countdown=delay
            )
        except Exception:
            await self.redis.delete(key)
            raise
        return True

    async def release(self, job: RetryJob) -> None:
        await self.redis.delete(self.pending_key(job))
