import uuid
from collections.abc import Sequence

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config import Settings, settings
from src.core.logging import get_logger
from src.core.repository import BaseRepository
from src.core.services.redis_service import RedisService
from src.modules.moderation.enums import ScanStatus
from src.modules.moderation.models import ModerationRecord
from src.modules.moderation.schemas import RecordFilters, ScanResult

logger = get_logger(__name__)

BLOCKED_COUNT_KEY = "moderation:blocked_count"


class ModerationRepository(BaseRepository[ModerationRecord]):
    """Durable latest-decision-wins store, one row per (ref_type, ref_id)."""

    def __init__(self, db: AsyncSession, redis: RedisService, config: Settings = settings):
        super().__init__(db, ModerationRecord)
        self.redis = redis
        self.config = config

    async def find_by_ref(self, ref_type: str, ref_id: str | int) -> ModerationRecord | None:
        result = await self.db.scalars(
            select(self.model).where(self.model.ref_type == ref_type, self.model.ref_id == str(ref_id)).limit(1)
        )
        return result.first()

    async def upsert(
        self,
        ref_type: str,
        ref_id: str | int,
        result: ScanResult,
        content_hash: str = "",
        attempts: int = 0,
        intended_status: str | None = None,
    ) -> ModerationRecord:
        """Insert or update the decision for an entity and invalidate the blocked count."""
        data = {
            "status": result.status.value,
            "score": result.score,
            "reason": result.reason,
            "details": result.details or None,
            "content_hash": content_hash,
            "attempts": attempts,
        }
        if intended_status is not None:
            data["intended_status"] = intended_status

        existing = await self.find_by_ref(ref_type, ref_id)
        if existing:
            record = await self.update(existing, data)
        else:
            try:
                record = await self.create(ModerationRecord(ref_type=ref_type, ref_id=str(ref_id), **data))
            except IntegrityError:
                # A concurrent writer inserted the row first; last decision wins
                await self.db.rollback()
                logger.debug(f"Concurrent insert for {ref_type}:{ref_id}, updating instead")
                winner = await self.find_by_ref(ref_type, ref_id)
                if winner is None:
                    raise
                record = await self.update(winner, data)

        await self.redis.delete(BLOCKED_COUNT_KEY)
        return record

    async def find(self, id: uuid.UUID) -> ModerationRecord | None:
        return await self.get(id)

    async def fetch(
        self, page: int = 1, per_page: int = 20, filters: RecordFilters | None = None
    ) -> tuple[Sequence[ModerationRecord], int]:
        criteria = []
        if filters and filters.status:
            criteria.append(self.model.status == filters.status)
        if filters and filters.ref_type:
            criteria.append(self.model.ref_type == filters.ref_type)

        statement = (
            select(self.model)
            .where(*criteria)
            .order_by(self.model.updated_at.desc(), self.model.id)
            .offset((max(page, 1) - 1) * per_page)
            .limit(per_page)
        )
        rows = (await self.db.scalars(statement)).all()
        total = await self.count(*criteria)
        return rows, total

    async def blocked_count(self) -> int:
        cached = await self.redis.get(BLOCKED_COUNT_KEY)
        if cached is not None:
            return int(cached)

        count = await self.db.scalar(
            select(func.count(self.model.id)).where(self.model.status == ScanStatus.BLOCK.value)
        )
        count = count or 0
        await self.redis.set(BLOCKED_COUNT_KEY, count, expire=self.config.MODERATION_BLOCKED_COUNT_TTL)
        return count
