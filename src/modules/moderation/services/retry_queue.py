from typing import Any

from src.core.config import Settings, settings
from src.core.services.redis_service import RedisService
from src.modules.moderation.enums import (
    BLOCKED_ENTITY_STATUS,
    COMMENT_CONTENT_FIELD,
    PostField,
    RefType,
    RetryOutcome,
)
from src.modules.moderation.repositories import ModerationRepository
from src.modules.moderation.services.cache import content_hash
from src.modules.moderation.services.client import ModerationClient
from src.modules.moderation.services.content_store import ContentStore
from src.modules.moderation.services.event_logger import DROPPED_KEYS, ModerationEventLogger
from src.modules.moderation.services.quota import QuotaFlag
from src.modules.moderation.services.scheduler import RetryJob, RetryScheduler

LOCK_KEY_PREFIX = "moderation:retry:lock"


class RetryQueue:
    """
    Bounded re-scans of content whose live scan hit a transient failure.

    Each attempt is a separate scheduled job. Executions for one ref_id are serialized
    by a short-lived Redis lock, and a job whose content changed since it was queued is
    dropped rather than scanned.
    """

    def __init__(
        self,
        client: ModerationClient,
        repository: ModerationRepository | None,
        content_store: ContentStore | None,
        scheduler: RetryScheduler,
        quota: QuotaFlag,
        redis: RedisService,
        events: ModerationEventLogger | None = None,
        config: Settings = settings,
    ):
        self.client = client
        self.repository = repository
        self.content_store = content_store
        self.scheduler = scheduler
        self.quota = quota
        self.redis = redis
        self.events = events or ModerationEventLogger()
        self.config = config

    @staticmethod
    def lock_key(ref_id: str) -> str:
        return f"{LOCK_KEY_PREFIX}:{ref_id}"

    async def enqueue(self, ref_id: str | int, content: str, context: dict[str, Any], attempts: int = 0) -> bool:
        """
        Schedule the next attempt for an item.

        Args:
            ref_id: Entity id
            content: Text that failed to scan
            context: Scan context; must carry "type", and "field"/"profile_id" where relevant
            attempts: Attempts already made; the scheduled job carries attempts + 1

        Returns:
            True if a new job was scheduled
        """
        ref_id = str(ref_id)
        log_context = {"ref_id": ref_id, "type": context.get("type", "unknown")}

        if await self.quota.is_set():
            self.events.warn("retry", "Quota exceeded; dropping retry job", context)
            return False

        schedule = self.config.MODERATION_RETRY_SCHEDULE
        if attempts < 0 or attempts >= self.config.MODERATION_MAX_RETRY_ATTEMPTS or attempts >= len(schedule):
            self.events.warn("retry", "Retry attempts exceeded; dropping job", log_context)
            return False

        # Job args travel through the broker; raw text is re-read from the content store
        job_context = {key: value for key, value in context.items() if key not in DROPPED_KEYS}
        job = RetryJob(ref_id=ref_id, content_hash=content_hash(content), context=job_context, attempt=attempts + 1)
        if not await self.scheduler.schedule_once(job, schedule[attempts]):
            self.events.debug("retry", "Retry already queued", {**log_context, "attempt": job.attempt})
            return False

        self.events.info("retry", "Queued retry", {**log_context, "attempt": job.attempt})
        return True

    async def execute(
        self, ref_id: str | int, expected_hash: str, context: dict[str, Any], attempt: int
    ) -> RetryOutcome:
        """Run one fired retry job. Never runs concurrently for the same ref_id."""
        ref_id = str(ref_id)
        job = RetryJob(ref_id=ref_id, content_hash=expected_hash, context=context, attempt=attempt)
        await self.scheduler.release(job)

        async with self.redis.lock(self.lock_key(ref_id), ttl=self.config.MODERATION_RETRY_LOCK_TTL) as acquired:
            if not acquired:
                self.events.debug("retry", "Item already being processed", {"ref_id": ref_id})
                return RetryOutcome.LOCKED
            return await self._process(job)

    def _scan_enabled(self, ref_type: str, field_name: str) -> bool:
        if ref_type == RefType.COMMENT.value:
            return self.config.MODERATION_ENABLE_COMMENTS
        if field_name == PostField.TITLE.value:
            return self.config.MODERATION_ENABLE_POST_TITLE_SCAN
        return self.config.MODERATION_ENABLE_POST_BODY_SCAN

    async def _process(self, job: RetryJob) -> RetryOutcome:
        if self.content_store is None or self.repository is None:
            raise RuntimeError("RetryQueue.execute requires a content store and a repository")

        if await self.quota.is_set():
            self.events.warn(
                "retry", "Quota exceeded; skipping retry job", {"ref_id": job.ref_id, "attempt": job.attempt}
            )
            return RetryOutcome.QUOTA_EXCEEDED

        ref_type = job.context.get("type", RefType.POST.value)
        if ref_type not in BLOCKED_ENTITY_STATUS:
            self.events.warn("retry", "Unsupported retry type; dropping job", {"ref_id": job.ref_id, "type": ref_type})
            return RetryOutcome.MISSING

        if ref_type == RefType.COMMENT.value:
            field_name = COMMENT_CONTENT_FIELD
        else:
            field_name = job.context.get("field", PostField.CONTENT.value)
        log_context = {"ref_id": job.ref_id, "type": ref_type, "field": field_name, "attempt": job.attempt}

        if not self._scan_enabled(ref_type, field_name):
            self.events.info("retry", "Scan disabled; dropping retry job", log_context)
            return RetryOutcome.DISABLED

        entity = await self.content_store.get_entity(ref_type, job.ref_id)
        if entity is None:
            self.events.info("retry", "Entity no longer exists; dropping retry job", log_context)
            return RetryOutcome.MISSING

        content = entity.text(field_name)
        if content_hash(content) != job.content_hash:
            self.events.info("retry", "Skipping retry; content changed", log_context)
            return RetryOutcome.CONTENT_CHANGED

        result = await self.client.scan(content, job.context, job.context.get("profile_id") or None)

        if result.is_quota_exceeded:
            return RetryOutcome.QUOTA_EXCEEDED

        if result.is_transient:
            if not result.is_retryable:
                self.events.warn("retry", f"Dropping retry job: {result.reason}", log_context)
                return RetryOutcome.DROPPED
            # Same attempt number: enqueue schedules attempt + 1 and checks the bound
            rescheduled = await self.enqueue(job.ref_id, content, job.context, job.attempt)
            return RetryOutcome.RESCHEDULED if rescheduled else RetryOutcome.DROPPED

        await self.repository.upsert(ref_type, job.ref_id, result, job.content_hash, job.attempt)
        if result.is_blocked:
            await self.content_store.update_status(ref_type, job.ref_id, BLOCKED_ENTITY_STATUS[ref_type])

        self.events.info("retry", f"Retry resolved as {result.status.value}", log_context)
        return RetryOutcome.PERSISTED
