"""Celery tasks for moderation retries."""

import asyncio
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from src.core.celery import celery_app
from src.core.config import settings
from src.core.logging import get_logger
from src.core.services.redis_service import RedisService
from src.modules.moderation.enums import RetryOutcome
from src.modules.moderation.repositories import ModerationRepository
from src.modules.moderation.services import (
    CeleryRetryScheduler,
    ModerationClient,
    ModerationEventLogger,
    QuotaFlag,
    RetryQueue,
)
from src.modules.moderation.services.content_store import get_content_store
from src.modules.moderation.services.scheduler import RETRY_TASK_NAME

logger = get_logger(__name__)


async def run_retry(ref_id: str, content_hash: str, context: dict[str, Any], attempt: int) -> RetryOutcome:
    """
    Execute one retry job with resources scoped to the current event loop.

    Each task invocation runs in its own loop, so the engine, Redis connection and
    HTTP client are created here and torn down before returning.
    """
    engine = create_async_engine(settings.DATABASE_URL, poolclass=NullPool)
    session_factory = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    redis = RedisService()
    events = ModerationEventLogger()
    quota = QuotaFlag(redis)
    client = ModerationClient(quota=quota, events=events)

    try:
        async with session_factory() as session:
            queue = RetryQueue(
                client=client,
                repository=ModerationRepository(session, redis),
                content_store=get_content_store(),
                scheduler=CeleryRetryScheduler(redis),
                quota=quota,
                redis=redis,
                events=events,
            )
            return await queue.execute(ref_id, content_hash, context, attempt)
    finally:
        await client.aclose()
        await redis.close()
        await engine.dispose()


@celery_app.task(name=RETRY_TASK_NAME)
def retry_item(ref_id: str, content_hash: str, context: dict[str, Any], attempt: int) -> str:
    """
    Re-scan an item whose earlier scan failed transiently.

    Args:
        ref_id: Entity id
        content_hash: md5 of the content when the retry was queued
        context: Scan context (type, field, profile_id, ...)
        attempt: Attempt number of this job, starting at 1

    Returns:
        The RetryOutcome value
    """
    outcome = asyncio.run(run_retry(ref_id, content_hash, context, attempt))
    logger.info(f"Retry for {context.get('type', 'unknown')}:{ref_id} attempt {attempt} finished: {outcome.value}")
    return outcome.value
