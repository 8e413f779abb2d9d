import uuid
from collections.abc import Awaitable, Callable, Iterable

from src.core.config import Settings, settings
from src.core.exception import AppValueError, NotFoundError
from src.modules.moderation.enums import (
    BLOCKED_ENTITY_STATUS,
    COMMENT_APPROVED_STATUS,
    COMMENT_CONTENT_FIELD,
    POST_PUBLISH_STATUS,
    PostField,
    RefType,
    ScanReason,
    ScanStatus,
)
from src.modules.moderation.models import ModerationRecord
from src.modules.moderation.repositories import ModerationRepository
from src.modules.moderation.schemas import BulkActionResult, ModerationRecordOut, ModerationStats, ScanResult
from src.modules.moderation.services.aggregator import aggregate
from src.modules.moderation.services.cache import content_hash
from src.modules.moderation.services.client import ModerationClient
from src.modules.moderation.services.content_store import ContentEntity, ContentStore, get_content_store
from src.modules.moderation.services.event_logger import ModerationEventLogger
from src.modules.moderation.services.quota import QuotaFlag


class ModerationAdminService:
    """Operator actions on stored decisions: overrides, manual re-scans and quota reset."""

    def __init__(
        self,
        client: ModerationClient,
        repository: ModerationRepository,
        quota: QuotaFlag,
        content_store: ContentStore | None = None,
        events: ModerationEventLogger | None = None,
        config: Settings = settings,
    ):
        self.client = client
        self.repository = repository
        self.content_store = content_store
        self.quota = quota
        self.events = events or ModerationEventLogger()
        self.config = config

    @property
    def store(self) -> ContentStore:
        if self.content_store is None:
            self.content_store = get_content_store()
        return self.content_store

    async def get_record(self, record_id: uuid.UUID) -> ModerationRecord:
        record = await self.repository.find(record_id)
        if record is None:
            raise NotFoundError("Moderation record not found")
        return record

    async def mark_allowed(self, record_id: uuid.UUID) -> ModerationRecord:
        """Override a decision to allow and restore the entity's host status."""
        record = await self.get_record(record_id)
        entity = await self.store.get_entity(record.ref_type, record.ref_id)

        if entity is not None:
            if record.ref_type == RefType.POST.value:
                await self.store.update_status(
                    record.ref_type, record.ref_id, record.intended_status or POST_PUBLISH_STATUS
                )
            elif record.ref_type == RefType.COMMENT.value:
                await self.store.update_status(record.ref_type, record.ref_id, COMMENT_APPROVED_STATUS)

        decision = ScanResult(status=ScanStatus.ALLOW, reason=ScanReason.OVERRIDE.value)
        updated = await self.repository.upsert(
            record.ref_type, record.ref_id, decision, record.content_hash, record.attempts
        )
        updated = await self.repository.update(updated, {"intended_status": None})

        self.events.info("override", "Manual override to allow", {"ref_type": record.ref_type, "ref_id": record.ref_id})
        return updated

    async def rescan(self, record_id: uuid.UUID) -> ModerationRecord:
        """Scan the entity's current content again, bypassing the cache."""
        record = await self.get_record(record_id)
        entity = await self.store.get_entity(record.ref_type, record.ref_id)
        if entity is None:
            raise NotFoundError("Referenced content no longer exists")

        if record.ref_type == RefType.POST.value:
            decision = await self._rescan_post(entity)
            digest = content_hash(entity.text(PostField.CONTENT.value))
        elif record.ref_type == RefType.COMMENT.value:
            text = entity.text(COMMENT_CONTENT_FIELD)
            decision = await self.client.scan(
                text,
                {"type": RefType.COMMENT.value, "comment_id": entity.ref_id},
                self.config.profile_for("comment"),
            )
            digest = content_hash(text)
        else:
            raise AppValueError(f"Cannot rescan {record.ref_type} records")

        updated = await self.repository.upsert(record.ref_type, record.ref_id, decision, digest)
        if decision.is_blocked:
            blocked_status = BLOCKED_ENTITY_STATUS[record.ref_type]
            await self.store.update_status(record.ref_type, record.ref_id, blocked_status)

        self.events.info(
            "rescan",
            f"Manual rescan resolved as {decision.status.value}",
            {"ref_type": record.ref_type, "ref_id": record.ref_id},
        )
        return updated

    async def _rescan_post(self, entity: ContentEntity) -> ScanResult:
        fields = (
            (PostField.CONTENT, self.config.MODERATION_ENABLE_POST_BODY_SCAN),
            (PostField.TITLE, self.config.MODERATION_ENABLE_POST_TITLE_SCAN),
        )
        decisions: list[ScanResult] = []

        for field, enabled in fields:
            text = entity.text(field.value)
            if not enabled or not text:
                continue

            result = await self.client.scan(
                text,
                {"type": RefType.POST.value, "field": field.value, "post_id": entity.ref_id},
                self.config.profile_for(field.value),
            )
            decisions.append(result)

            if result.safe_content:
                await self.store.update_field(entity.ref_type, entity.ref_id, field.value, result.safe_content)
                entity.fields[field.value] = result.safe_content

        return aggregate(decisions)

    async def mark_allowed_many(self, record_ids: Iterable[uuid.UUID]) -> BulkActionResult:
        return await self._bulk(record_ids, self.mark_allowed)

    async def rescan_many(self, record_ids: Iterable[uuid.UUID]) -> BulkActionResult:
        return await self._bulk(record_ids, self.rescan)

    async def _bulk(
        self,
        record_ids: Iterable[uuid.UUID],
        action: Callable[[uuid.UUID], Awaitable[ModerationRecord]],
    ) -> BulkActionResult:
        """Apply an action to each record; a record that cannot be handled does not stop the rest."""
        outcome = BulkActionResult()
        for record_id in dict.fromkeys(record_ids):
            try:
                record = await action(record_id)
            except (NotFoundError, AppValueError) as e:
                outcome.failed[str(record_id)] = e.message
                continue
            outcome.processed.append(ModerationRecordOut.model_validate(record))
        return outcome

    async def stats(self) -> ModerationStats:
        return ModerationStats(
            blocked_count=await self.repository.blocked_count(),
            quota_exceeded=await self.quota.is_set(),
        )

    async def reset_quota(self) -> None:
        await self.quota.clear()
        self.events.info("quota", "Quota exceeded flag cleared")
