import os

# Settings are read at import time; keep the test process off real infrastructure
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("ADMIN_USER", "admin")
os.environ.setdefault("ADMIN_PASSWORD", "password")

from collections.abc import Callable  # noqa: E402
from typing import Any  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from fakeredis.aioredis import FakeRedis  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from src.core.config import Settings  # noqa: E402
from src.core.database import init_models  # noqa: E402
from src.core.services.redis_service import RedisService  # noqa: E402
from src.modules.moderation.models import ModerationRecord  # noqa: E402, F401
from src.modules.moderation.repositories import ModerationRepository  # noqa: E402
from src.modules.moderation.services import (  # noqa: E402
    ContentEntity,
    DecisionCache,
    ModerationClient,
    QuotaFlag,
    RetryJob,
    RetryQueue,
    ScanFlow,
)

TEST_SETTINGS: dict[str, Any] = {
    "MODERATION_API_KEY": "test-key",
    "MODERATION_API_URL": "https://moderation.test/api/v1/public/",
    "MODERATION_ENABLE_POSTS": True,
    "MODERATION_ENABLE_POST_TITLE_SCAN": True,
    "MODERATION_ENABLE_POST_BODY_SCAN": True,
    "MODERATION_ENABLE_COMMENTS": True,
    "MODERATION_ENABLE_USERNAME_SCAN": True,
}


class ScriptedBackend:
    """Moderation API double for httpx.MockTransport. Replies are consumed in order, then the default applies."""

    def __init__(self):
        self.replies: list[Any] = []
        self.requests: list[httpx.Request] = []
        self.default: tuple[int, Any] = (200, {"status": "allow"})

    def reply(self, status_code: int = 200, body: Any = None, text: str | None = None) -> "ScriptedBackend":
        self.replies.append((status_code, body, text))
        return self

    def fail(self, exc: Exception) -> "ScriptedBackend":
        self.replies.append(exc)
        return self

    @property
    def calls(self) -> int:
        return len(self.requests)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.replies:
            status_code, body = self.default
            return httpx.Response(status_code, json=body)

        item = self.replies.pop(0)
        if isinstance(item, Exception):
            raise item
        status_code, body, text = item
        if text is not None:
            return httpx.Response(status_code, text=text)
        if body is None:
            return httpx.Response(status_code)
        return httpx.Response(status_code, json=body)


class InMemoryContentStore:
    def __init__(self):
        self.entities: dict[tuple[str, str], ContentEntity] = {}
        self.status_updates: list[tuple[str, str, str]] = []
        self.field_updates: list[tuple[str, str, str, str]] = []

    def add(self, ref_type: str, ref_id: str, status: str | None = None, **fields: str) -> ContentEntity:
        entity = ContentEntity(ref_type=ref_type, ref_id=str(ref_id), fields=dict(fields), status=status)
        self.entities[(ref_type, str(ref_id))] = entity
        return entity

    async def get_entity(self, ref_type: str, ref_id: str) -> ContentEntity | None:
        return self.entities.get((ref_type, str(ref_id)))

    async def update_field(self, ref_type: str, ref_id: str, field_name: str, value: str) -> None:
        self.field_updates.append((ref_type, ref_id, field_name, value))
        entity = self.entities.get((ref_type, str(ref_id)))
        if entity is not None:
            entity.fields[field_name] = value

    async def update_status(self, ref_type: str, ref_id: str, status: str) -> None:
        self.status_updates.append((ref_type, ref_id, status))
        entity = self.entities.get((ref_type, str(ref_id)))
        if entity is not None:
            entity.status = status


class RecordingScheduler:
    """Scheduler double with the same once-per-identity contract as the Celery scheduler."""

    def __init__(self):
        self.scheduled: list[tuple[RetryJob, int]] = []
        self.pending: set[str] = set()

    async def schedule_once(self, job: RetryJob, delay: int) -> bool:
        if job.identity() in self.pending:
            return False
        self.pending.add(job.identity())
        self.scheduled.append((job, delay))
        return True

    async def release(self, job: RetryJob) -> None:
        self.pending.discard(job.identity())

    @property
    def delays(self) -> list[int]:
        return [delay for _, delay in self.scheduled]


@pytest.fixture
def make_settings() -> Callable[..., Settings]:
    def _make(**overrides: Any) -> Settings:
        return Settings(**{**TEST_SETTINGS, **overrides})

    return _make


@pytest.fixture
def config(make_settings) -> Settings:
    return make_settings()


@pytest_asyncio.fixture
async def redis():
    client = FakeRedis(decode_responses=True)
    try:
        yield RedisService(client)
    finally:
        await client.flushall()
        await client.aclose()


@pytest_asyncio.fixture
async def session_factory():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await init_models(engine)
    try:
        yield async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def repository(db_session, redis, config) -> ModerationRepository:
    return ModerationRepository(db_session, redis, config)


@pytest.fixture
def quota(redis) -> QuotaFlag:
    return QuotaFlag(redis)


@pytest.fixture
def backend() -> ScriptedBackend:
    return ScriptedBackend()


@pytest_asyncio.fixture
async def client(backend, quota, config):
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(backend.handler))
    moderation_client = ModerationClient(quota=quota, http_client=http_client, config=config)
    try:
        yield moderation_client
    finally:
        await moderation_client.aclose()


@pytest.fixture
def content_store() -> InMemoryContentStore:
    return InMemoryContentStore()


@pytest.fixture
def scheduler() -> RecordingScheduler:
    return RecordingScheduler()


@pytest.fixture
def retry_queue(client, repository, content_store, scheduler, quota, redis, config) -> RetryQueue:
    return RetryQueue(
        client=client,
        repository=repository,
        content_store=content_store,
        scheduler=scheduler,
        quota=quota,
        redis=redis,
        config=config,
    )


@pytest.fixture
def scan_flow(client, redis, repository, retry_queue, config) -> ScanFlow:
    return ScanFlow(
        client=client,
        cache=DecisionCache(redis, config),
        repository=repository,
        retry_queue=retry_queue,
        config=config,
    )
