"""Live moderation of content submitted by host call sites."""

from typing import Any

from src.core.config import Settings, settings
from src.modules.moderation.enums import (
    POST_DRAFT_STATUS,
    POST_PUBLISH_STATUS,
    PostField,
    RefType,
)
from src.modules.moderation.repositories import ModerationRepository
from src.modules.moderation.schemas import (
    CommentSubmission,
    CommentVerdict,
    PostSubmission,
    PostVerdict,
    ScanResult,
    UsernameSubmission,
    UsernameVerdict,
)
from src.modules.moderation.services.aggregator import aggregate
from src.modules.moderation.services.cache import DecisionCache, content_hash, fingerprint
from src.modules.moderation.services.client import ModerationClient
from src.modules.moderation.services.event_logger import ModerationEventLogger
from src.modules.moderation.services.retry_queue import RetryQueue


class ScanFlow:
    """
    Scans posts, comments and usernames on submit and decides what the host should do.

    Posts fail closed (forced to draft) when the API is unavailable; comments fail
    closed unless MODERATION_FAIL_OPEN_COMMENTS is set.
    """

    def __init__(
        self,
        client: ModerationClient,
        cache: DecisionCache,
        repository: ModerationRepository,
        retry_queue: RetryQueue,
        events: ModerationEventLogger | None = None,
        config: Settings = settings,
    ):
        self.client = client
        self.cache = cache
        self.repository = repository
        self.retry_queue = retry_queue
        self.events = events or ModerationEventLogger()
        self.config = config

    async def scan_field(
        self,
        entity_class: str,
        entity_id: str | int,
        content: str,
        profile_id: str | None,
        context: dict[str, Any],
    ) -> ScanResult:
        """Cached scan of one field. Only allow/block decisions are remembered."""
        digest = fingerprint(content, profile_id)
        cached = await self.cache.get(entity_class, entity_id, digest)
        if cached is not None:
            return cached

        result = await self.client.scan(content, context, profile_id)
        if result.is_terminal:
            await self.cache.put(entity_class, entity_id, digest, result)
        return result

    async def moderate_post(self, post: PostSubmission) -> PostVerdict:
        verdict = PostVerdict(post_id=post.post_id, title=post.title, content=post.content, status=post.status)

        if not self.config.MODERATION_ENABLE_POSTS or not self.config.MODERATION_AUTO_SCAN:
            return verdict
        if post.status != POST_PUBLISH_STATUS:
            return verdict

        fields = (
            (PostField.TITLE, "title", self.config.MODERATION_ENABLE_POST_TITLE_SCAN),
            (PostField.CONTENT, "content", self.config.MODERATION_ENABLE_POST_BODY_SCAN),
        )
        blocked = False

        for field, attr, enabled in fields:
            text = getattr(verdict, attr)
            if not text or not enabled:
                continue

            result = await self.scan_field(
                f"post_{field.value}",
                post.post_id,
                text,
                self.config.profile_for(field.value),
                self._post_context(post, field),
            )
            verdict.field_decisions[field.value] = result

            if result.safe_content:
                setattr(verdict, attr, result.safe_content)
            elif result.is_blocked:
                verdict.status = POST_DRAFT_STATUS
                blocked = True
                self.events.warn("scan", "Post blocked", {"post_id": post.post_id, "reason": result.reason})
                break

            if result.is_transient:
                self.events.error(
                    "scan", "Moderation unavailable; enforcing fail-closed for post", {"post_id": post.post_id}
                )
                verdict.status = POST_DRAFT_STATUS
                break

        if not verdict.field_decisions:
            return verdict

        final = aggregate(verdict.field_decisions.get(field.value) for field, _, _ in fields)
        verdict.decision = final

        if final.is_blocked or final.is_transient:
            main_text = verdict.content if PostField.CONTENT.value in verdict.field_decisions else verdict.title
            await self.repository.upsert(
                RefType.POST.value,
                post.post_id,
                final,
                content_hash(main_text),
                intended_status=post.status if blocked else None,
            )

        for field, attr, _ in fields:
            result = verdict.field_decisions.get(field.value)
            if result is None or not result.is_retryable:
                continue
            context = {**self._post_context(post, field), "profile_id": self.config.profile_for(field.value)}
            if await self.retry_queue.enqueue(post.post_id, getattr(verdict, attr), context, 0):
                verdict.retries_scheduled += 1

        return verdict

    @staticmethod
    def _post_context(post: PostSubmission, field: PostField) -> dict[str, Any]:
        return {
            "type": RefType.POST.value,
            "field": field.value,
            "post_id": post.post_id,
            "title": post.title,
            "author": post.author,
        }

    async def moderate_comment(self, comment: CommentSubmission) -> CommentVerdict:
        verdict = CommentVerdict(comment_id=comment.comment_id, content=comment.content, approved=True)

        if not self.config.MODERATION_ENABLE_COMMENTS or not self.config.MODERATION_AUTO_SCAN:
            return verdict
        if not comment.content.strip():
            return verdict

        profile_id = self.config.profile_for("comment")
        context = {
            "type": RefType.COMMENT.value,
            "post_id": comment.post_id,
            "comment_id": comment.comment_id,
            "author": comment.author,
        }

        result = await self.scan_field(
            RefType.COMMENT.value, comment.comment_id or comment.post_id or "0", comment.content, profile_id, context
        )
        verdict.decision = result

        if result.safe_content:
            verdict.content = result.safe_content
        elif result.is_blocked:
            verdict.approved = False
            if self.config.MODERATION_SHOW_REJECTION_REASON:
                verdict.rejection_message = f"Your comment was blocked: {result.reason}"

        if result.is_transient and not self.config.MODERATION_FAIL_OPEN_COMMENTS:
            self.events.error(
                "scan", "Moderation unavailable; holding comment for review", {"comment_id": comment.comment_id}
            )
            verdict.approved = False

        await self.repository.upsert(
            RefType.COMMENT.value,
            comment.comment_id,
            result,
            content_hash(verdict.content),
        )

        if result.is_retryable:
            verdict.retry_scheduled = await self.retry_queue.enqueue(
                comment.comment_id, verdict.content, {**context, "profile_id": profile_id}, 0
            )

        return verdict

    async def moderate_username(self, submission: UsernameSubmission) -> UsernameVerdict:
        verdict = UsernameVerdict(login=submission.login, allowed=True)

        if not self.config.MODERATION_AUTO_SCAN or not self.config.MODERATION_ENABLE_USERNAME_SCAN:
            return verdict
        if not submission.login.strip():
            return verdict

        result = await self.client.scan(
            submission.login,
            {"type": RefType.USER_SIGNUP.value, "user_login": submission.login, "email": submission.email},
            self.config.profile_for("username"),
        )
        verdict.decision = result

        if result.is_blocked:
            verdict.allowed = False
            self.events.info("scan", "Username blocked", {"user_login": submission.login})

        return verdict
