"""Moderation event logging with mandatory context redaction."""

import logging
from collections.abc import Mapping
from typing import Any

from src.core.logging import get_logger

REDACTED = "[REDACTED]"

# Raw text never leaves the process through logs
DROPPED_KEYS = frozenset({"content", "body", "response", "title"})

PII_KEYS = frozenset(
    {
        "author",
        "email",
        "ip",
        "login",
        "user_login",
        "comment_author",
        "comment_author_email",
    }
)


def redact(context: Mapping[str, Any] | None) -> dict[str, Any]:
    """Return a copy of the context without raw content and with PII values masked."""
    if not context:
        return {}

    safe: dict[str, Any] = {}
    for key, value in context.items():
        if key in DROPPED_KEYS:
            continue
        safe[key] = REDACTED if key in PII_KEYS else value
    return safe


class ModerationEventLogger:
    """Category-tagged logger used by every moderation component."""

    def __init__(self, logger: logging.Logger | None = None):
        self.logger = logger or get_logger("moderation.events")

    def debug(self, category: str, message: str, context: Mapping[str, Any] | None = None) -> None:
        self._log(logging.DEBUG, category, message, context)

    def info(self, category: str, message: str, context: Mapping[str, Any] | None = None) -> None:
        self._log(logging.INFO, category, message, context)

    def warn(self, category: str, message: str, context: Mapping[str, Any] | None = None) -> None:
        self._log(logging.WARNING, category, message, context)

    def error(self, category: str, message: str, context: Mapping[str, Any] | None = None) -> None:
        self._log(logging.ERROR, category, message, context)

    def _log(self, level: int, category: str, message: str, context: Mapping[str, Any] | None) -> None:
        safe_context = redact(context)
        self.logger.log(
            level,
            f"[{category}] {message} {safe_context}",
            extra={"category": category, "context": safe_context},
        )
