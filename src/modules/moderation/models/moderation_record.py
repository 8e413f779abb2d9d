import uuid
from typing import Any

from sqlalchemy import JSON, Float, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database import Base


class ModerationRecord(Base):
    """Latest moderation decision per referenced entity."""

    __tablename__ = "moderation_records"
    __table_args__ = (UniqueConstraint("ref_type", "ref_id", name="uq_moderation_records_ref"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    ref_type: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    ref_id: Mapped[str] = mapped_column(String(64), nullable=False)

    status: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    score: Mapped[float | None] = mapped_column(Float, nullable=True)
    reason: Mapped[str] = mapped_column(Text, default="", nullable=False)
    details: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    content_hash: Mapped[str] = mapped_column(String(64), default="", nullable=False)
    attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Host status requested before a block forced the entity down
    intended_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
