from functools import lru_cache

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.database import get_db
from src.core.security import basic_auth_guard
from src.core.services.redis_service import RedisService, get_redis_service, redis_service
from src.modules.moderation.repositories import ModerationRepository
from src.modules.moderation.services import (
    CeleryRetryScheduler,
    DecisionCache,
    HookRegistry,
    ModerationAdminService,
    ModerationClient,
    ModerationEventLogger,
    QuotaFlag,
    RetryQueue,
    ScanFlow,
)

require_admin = basic_auth_guard()


@lru_cache(maxsize=1)
def get_event_logger() -> ModerationEventLogger:
    return ModerationEventLogger()


@lru_cache(maxsize=1)
def get_moderation_client() -> ModerationClient:
    """Shared client so the HTTP connection pool is reused across requests."""
    return ModerationClient(quota=QuotaFlag(redis_service), events=get_event_logger())


@lru_cache(maxsize=1)
def get_hook_registry() -> HookRegistry:
    return HookRegistry.from_settings(get_moderation_client(), get_event_logger())


def get_quota_flag(redis: RedisService = Depends(get_redis_service)) -> QuotaFlag:
    return QuotaFlag(redis)


def get_moderation_repository(
    db: AsyncSession = Depends(get_db),
    redis: RedisService = Depends(get_redis_service),
) -> ModerationRepository:
    return ModerationRepository(db, redis)


def get_retry_queue(
    repository: ModerationRepository = Depends(get_moderation_repository),
    quota: QuotaFlag = Depends(get_quota_flag),
    redis: RedisService = Depends(get_redis_service),
) -> RetryQueue:
    # The live path only enqueues; executions run in the worker with their own content store
    return RetryQueue(
        client=get_moderation_client(),
        repository=repository,
        content_store=None,
        scheduler=CeleryRetryScheduler(redis),
        quota=quota,
        redis=redis,
        events=get_event_logger(),
    )


def get_scan_flow(
    repository: ModerationRepository = Depends(get_moderation_repository),
    retry_queue: RetryQueue = Depends(get_retry_queue),
    redis: RedisService = Depends(get_redis_service),
) -> ScanFlow:
    return ScanFlow(
        client=get_moderation_client(),
        cache=DecisionCache(redis),
        repository=repository,
        retry_queue=retry_queue,
        events=get_event_logger(),
    )


def get_admin_service(
    repository: ModerationRepository = Depends(get_moderation_repository),
    quota: QuotaFlag = Depends(get_quota_flag),
) -> ModerationAdminService:
    # The host content store is resolved lazily, only by actions that touch content
    return ModerationAdminService(
        client=get_moderation_client(),
        repository=repository,
        quota=quota,
        events=get_event_logger(),
    )
