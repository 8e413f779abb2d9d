from enum import Enum as PyEnum


class ScanStatus(str, PyEnum):
    ALLOW = "allow"
    BLOCK = "block"
    RATE_LIMITED = "rate_limited"
    ERROR = "error"


class ScanReason(str, PyEnum):
    MISSING_API_KEY = "missing_api_key"
    NETWORK_ERROR = "network_error"
    QUOTA_EXCEEDED = "quota_exceeded"
    RATE_LIMITED = "rate_limited"
    UNAUTHORIZED = "unauthorized"
    UNEXPECTED_RESPONSE = "unexpected_response"
    INVALID_JSON = "invalid_json"
    OVERRIDE = "override"


class RefType(str, PyEnum):
    POST = "post"
    COMMENT = "comment"
    USER_SIGNUP = "user_signup"
    CUSTOM_HOOK = "custom_hook"


class PostField(str, PyEnum):
    TITLE = "post_title"
    CONTENT = "post_content"


class HookBehavior(str, PyEnum):
    BLOCK = "block"
    SANITIZE = "sanitize"


class RetryOutcome(str, PyEnum):
    """How a single retry execution ended."""

    LOCKED = "locked"
    MISSING = "missing"
    DISABLED = "disabled"
    CONTENT_CHANGED = "content_changed"
    QUOTA_EXCEEDED = "quota_exceeded"
    RESCHEDULED = "rescheduled"
    DROPPED = "dropped"
    PERSISTED = "persisted"


TRANSIENT_STATUSES = frozenset({ScanStatus.ERROR, ScanStatus.RATE_LIMITED})

# Host-side statuses applied to entities
POST_DRAFT_STATUS = "draft"
POST_PUBLISH_STATUS = "publish"
COMMENT_UNAPPROVED_STATUS = "unapproved"
COMMENT_APPROVED_STATUS = "approved"
COMMENT_CONTENT_FIELD = "comment_content"

# Status a blocked entity is forced into, per persisted ref type
BLOCKED_ENTITY_STATUS = {
    RefType.POST.value: POST_DRAFT_STATUS,
    RefType.COMMENT.value: COMMENT_UNAPPROVED_STATUS,
}
