import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.core.schema import BaseSchema
from src.modules.moderation.enums import TRANSIENT_STATUSES, ScanReason, ScanStatus


class ScanResult(BaseModel):
    """Normalized moderation decision. Callers never see transport-level details."""

    status: ScanStatus
    reason: str = ""
    score: float | None = None
    details: dict[str, Any] = Field(default_factory=dict)
    message: str | None = None

    @property
    def is_transient(self) -> bool:
        return self.status in TRANSIENT_STATUSES

    @property
    def is_retryable(self) -> bool:
        """Transient and worth another attempt. A missing credential or exhausted quota will not heal by waiting."""
        return self.is_transient and self.reason not in (
            ScanReason.MISSING_API_KEY.value,
            ScanReason.QUOTA_EXCEEDED.value,
        )

    @property
    def is_terminal(self) -> bool:
        return not self.is_transient

    @property
    def is_blocked(self) -> bool:
        return self.status == ScanStatus.BLOCK

    @property
    def is_quota_exceeded(self) -> bool:
        return self.reason == ScanReason.QUOTA_EXCEEDED.value

    @property
    def safe_content(self) -> str | None:
        """Rewritten text returned when replacement or PII redaction is enabled."""
        value = self.details.get("safeContent") or self.details.get("safe_content")
        return value if isinstance(value, str) and value else None

    @property
    def replaced_unsafe(self) -> bool:
        addons = self.details.get("addons") or {}
        return bool(addons.get("replacedUnsafe")) if isinstance(addons, dict) else False

    @property
    def replaced_pii(self) -> bool:
        addons = self.details.get("addons") or {}
        return bool(addons.get("replacedPii")) if isinstance(addons, dict) else False

    @classmethod
    def failure(cls, status: ScanStatus, reason: ScanReason, message: str) -> "ScanResult":
        return cls(status=status, reason=reason.value, message=message)


class ScanRequest(BaseModel):
    content: str
    context: dict[str, Any] = Field(default_factory=dict)
    profile_id: str | None = None
    language: str

    def payload(self, replace: bool, pii: bool) -> dict[str, Any]:
        """Body sent to the moderation API. Context stays local."""
        return {
            "content": self.content,
            "language": self.language,
            "replace": replace,
            "pii": pii,
            "replace_severity": None,
            "moderation_profile_id": self.profile_id,
        }


class UsageInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    tokens_used: int | None = None
    token_limit: int | None = None
    tier: str | None = None

    @classmethod
    def from_body(cls, body: dict[str, Any]) -> "UsageInfo":
        return cls(
            tokens_used=body.get("tokensUsed", body.get("TokensUsed")),
            token_limit=body.get("tokenLimit", body.get("TokenLimit")),
            tier=body.get("tier", body.get("Tier")),
        )


class UsageError(BaseModel):
    error: str
    code: int | None = None


# Live path submissions and verdicts


class PostSubmission(BaseModel):
    post_id: str
    title: str = ""
    content: str = ""
    status: str = "publish"
    author: str | None = None


class PostVerdict(BaseModel):
    post_id: str
    title: str
    content: str
    status: str
    decision: ScanResult | None = None
    field_decisions: dict[str, ScanResult] = Field(default_factory=dict)
    retries_scheduled: int = 0


class CommentSubmission(BaseModel):
    comment_id: str
    post_id: str | None = None
    content: str = ""
    author: str | None = None


class CommentVerdict(BaseModel):
    comment_id: str
    content: str
    approved: bool
    decision: ScanResult | None = None
    rejection_message: str | None = None
    retry_scheduled: bool = False


class UsernameSubmission(BaseModel):
    login: str
    email: str | None = None


class UsernameVerdict(BaseModel):
    login: str
    allowed: bool
    decision: ScanResult | None = None


class ScanIn(BaseModel):
    content: str = Field(..., min_length=1)
    entity_class: str = Field(default="generic", max_length=50)
    entity_id: str = Field(default="0", max_length=64)
    profile_id: str | None = None
    context: dict[str, Any] = Field(default_factory=dict)

    @field_validator("content")
    @classmethod
    def reject_blank_content(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("content must not be blank")
        return value


class HookOutcome(BaseModel):
    trigger: str
    payload: Any = None
    blocked: bool = False
    decision: ScanResult | None = None


# Moderation store surface


class ModerationRecordOut(BaseSchema):
    id: uuid.UUID
    ref_type: str
    ref_id: str
    status: str
    score: float | None = None
    reason: str = ""
    details: dict[str, Any] | None = None
    content_hash: str = ""
    attempts: int = 0
    intended_status: str | None = None
    created_at: datetime
    updated_at: datetime


class RecordFilters(BaseModel):
    status: str | None = None
    ref_type: str | None = None


class ModerationStats(BaseModel):
    blocked_count: int
    quota_exceeded: bool


class BulkRecordIds(BaseModel):
    ids: list[uuid.UUID] = Field(..., min_length=1, max_length=100)


class BulkActionResult(BaseModel):
    processed: list[ModerationRecordOut] = Field(default_factory=list)
    failed: dict[str, str] = Field(default_factory=dict)
