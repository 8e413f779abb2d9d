from src.modules.moderation.services.admin_service import ModerationAdminService
from src.modules.moderation.services.aggregator import aggregate
from src.modules.moderation.services.cache import DecisionCache, content_hash, fingerprint
from src.modules.moderation.services.client import ModerationClient
from src.modules.moderation.services.content_store import ContentEntity, ContentStore
from src.modules.moderation.services.event_logger import ModerationEventLogger
from src.modules.moderation.services.hooks import HookRegistry, HookRule
from src.modules.moderation.services.quota import QuotaFlag
from src.modules.moderation.services.retry_queue import RetryQueue
from src.modules.moderation.services.scan_flow import ScanFlow
from src.modules.moderation.services.scheduler import CeleryRetryScheduler, RetryJob, RetryScheduler

__all__ = [
    "CeleryRetryScheduler",
    "ContentEntity",
    "ContentStore",
    "DecisionCache",
    "HookRegistry",
    "HookRule",
    "ModerationAdminService",
    "ModerationClient",
    "ModerationEventLogger",
    "QuotaFlag",
    "RetryJob",
    "RetryQueue",
    "RetryScheduler",
    "ScanFlow",
    "aggregate",
    "content_hash",
    "fingerprint",
]
