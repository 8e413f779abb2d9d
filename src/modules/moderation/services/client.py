"""HTTP client for the remote text moderation API."""

from typing import Any

import httpx

from src.core.config import Settings, settings
from src.core.logging import get_logger
from src.modules.moderation.enums import ScanReason, ScanStatus
from src.modules.moderation.schemas import ScanRequest, ScanResult, UsageError, UsageInfo
from src.modules.moderation.services.event_logger import ModerationEventLogger
from src.modules.moderation.services.quota import QuotaFlag

logger = get_logger(__name__)


def _as_score(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class ModerationClient:
    """
    Formats scan requests, calls the moderation API and classifies the outcome.

    Every API-level failure is returned as a ScanResult; nothing here retries or caches.
    """

    def __init__(
        self,
        quota: QuotaFlag,
        events: ModerationEventLogger | None = None,
        http_client: httpx.AsyncClient | None = None,
        config: Settings = settings,
    ):
        self.config = config
        self.quota = quota
        self.events = events or ModerationEventLogger()
        # TLS verification is always on
        self.http = http_client or httpx.AsyncClient(timeout=config.MODERATION_API_TIMEOUT, verify=True)

    def _url(self, path: str) -> str:
        return f"{self.config.MODERATION_API_URL}{path}"

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.config.MODERATION_API_KEY}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def build_request(self, content: str, context: dict[str, Any], profile_id: str | None) -> ScanRequest:
        return ScanRequest(
            content=content,
            context=context,
            profile_id=profile_id or None,
            language=self.config.moderation_language,
        )

    async def scan(
        self, content: str, context: dict[str, Any] | None = None, profile_id: str | None = None
    ) -> ScanResult:
        """
        Scan a piece of text.

        Args:
            content: Text to moderate
            context: Metadata for logging (entity type, ids, field); never sent to the API
            profile_id: Backend ruleset, None for the default one

        Returns:
            ScanResult with one of allow, block, rate_limited or error
        """
        context = dict(context or {})

        if not self.config.MODERATION_API_KEY:
            return ScanResult.failure(
                ScanStatus.ERROR, ScanReason.MISSING_API_KEY, "Moderation API key is not configured."
            )

        request = self.build_request(content, context, profile_id)
        payload = request.payload(
            replace=self.config.MODERATION_ENABLE_TEXT_REPLACEMENT,
            pii=self.config.MODERATION_ENABLE_PII_REDACTION,
        )

        try:
            response = await self.http.post(
                self._url("moderation/text"),
                json=payload,
                headers=self._headers(),
                timeout=self.config.MODERATION_API_TIMEOUT,
            )
        except httpx.RequestError as e:
            message = str(e) or type(e).__name__
            self.events.error("api", message, context)
            return ScanResult.failure(ScanStatus.ERROR, ScanReason.NETWORK_ERROR, message)

        code = response.status_code

        if code == 402:
            self.events.error("quota", "Moderation plan quota exceeded.", context)
            await self.quota.set()
            return ScanResult.failure(ScanStatus.ERROR, ScanReason.QUOTA_EXCEEDED, "Moderation plan quota exceeded.")

        if code == 429:
            self.events.warn("rate_limit", "Rate limited by the moderation API.", context)
            return ScanResult.failure(
                ScanStatus.RATE_LIMITED, ScanReason.RATE_LIMITED, "Rate limited by the moderation API."
            )

        if code in (401, 403):
            self.events.error("auth", "Unauthorized moderation request", context)
            return ScanResult.failure(ScanStatus.ERROR, ScanReason.UNAUTHORIZED, "Unauthorized moderation request.")

        if code >= 400:
            self.events.error("api", f"API Error {code}", {"code": code, **context})
            return ScanResult.failure(
                ScanStatus.ERROR, ScanReason.UNEXPECTED_RESPONSE, "Unexpected response from the moderation API."
            )

        try:
            body = response.json()
        except ValueError:
            body = None

        if not isinstance(body, dict):
            self.events.error("api", "Invalid JSON response", context)
            return ScanResult.failure(
                ScanStatus.ERROR, ScanReason.INVALID_JSON, "Invalid response from the moderation API."
            )

        return self._interpret(body, context)

    def _interpret(self, body: dict[str, Any], context: dict[str, Any]) -> ScanResult:
        status = body.get("status")
        if status is None and body.get("isClean") is not None:
            status = ScanStatus.ALLOW if body["isClean"] else ScanStatus.BLOCK
        if status is None:
            status = ScanStatus.ALLOW

        try:
            status = ScanStatus(status)
        except ValueError:
            self.events.error("api", f"Unknown moderation status {status!r}", context)
            return ScanResult.failure(
                ScanStatus.ERROR, ScanReason.UNEXPECTED_RESPONSE, "Unexpected response from the moderation API."
            )

        reason = body.get("reason")
        if reason is None:
            reason = body.get("severity")

        score = body.get("score")
        if score is None:
            score = body.get("severity")

        return ScanResult(
            status=status,
            reason="" if reason is None else str(reason),
            score=_as_score(score),
            details=body,
        )

    async def usage(self) -> UsageInfo | UsageError:
        """Token usage and plan tier, for reporting only."""
        if not self.config.MODERATION_API_KEY:
            return UsageError(error="no_key")

        headers = self._headers()
        headers.pop("Content-Type")

        try:
            response = await self.http.get(
                self._url("usage"), headers=headers, timeout=self.config.MODERATION_API_TIMEOUT
            )
        except httpx.RequestError as e:
            logger.warning(f"Usage request failed: {e}")
            return UsageError(error=str(e) or type(e).__name__)

        if response.status_code != 200:
            return UsageError(error="api_error", code=response.status_code)

        try:
            body = response.json()
        except ValueError:
            body = None

        if not body or not isinstance(body, dict):
            return UsageError(error="invalid_json")

        return UsageInfo.from_body(body)

    async def aclose(self) -> None:
        await self.http.aclose()
