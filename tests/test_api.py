import uuid

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from api import app
from src.modules.health.router import get_health_service
from src.modules.health.schemas import ServiceStatus
from src.modules.moderation.dependencies import (
    get_admin_service,
    get_hook_registry,
    get_moderation_client,
    get_moderation_repository,
    get_scan_flow,
)
from src.modules.moderation.enums import ScanStatus
from src.modules.moderation.schemas import ScanResult
from src.modules.moderation.services import HookRegistry, HookRule, ModerationAdminService

AUTH = ("admin", "password")
PREFIX = "/api/v1/moderation"


@pytest.fixture
def admin_service(client, repository, quota, content_store, config) -> ModerationAdminService:
    return ModerationAdminService(client, repository, quota, content_store, config=config)


@pytest_asyncio.fixture
async def api_client(scan_flow, repository, client, admin_service, config):
    registry = HookRegistry(client, config=config)
    registry.register(HookRule.for_path("review", "text", behavior="block"))

    app.dependency_overrides[get_scan_flow] = lambda: scan_flow
    app.dependency_overrides[get_moderation_repository] = lambda: repository
    app.dependency_overrides[get_moderation_client] = lambda: client
    app.dependency_overrides[get_admin_service] = lambda: admin_service
    app.dependency_overrides[get_hook_registry] = lambda: registry

    transport = ASGITransport(app=app)
    try:
        async with AsyncClient(transport=transport, base_url="http://testserver") as http:
            yield http
    finally:
        app.dependency_overrides.clear()


async def test_requires_admin_credentials(api_client):
    missing = await api_client.get(f"{PREFIX}/stats")
    wrong = await api_client.get(f"{PREFIX}/stats", auth=("admin", "nope"))

    assert missing.status_code == 401
    assert wrong.status_code == 401
    assert missing.headers["WWW-Authenticate"] == "Basic"


async def test_scan_endpoint(api_client, backend):
    backend.reply(200, {"status": "block", "reason": "hate_speech", "score": 0.9})

    response = await api_client.post(
        f"{PREFIX}/scan", json={"content": "hello", "entity_class": "post", "entity_id": "42"}, auth=AUTH
    )

    assert response.status_code == 200
    assert response.json()["status"] == "block"
    assert response.json()["reason"] == "hate_speech"
    assert response.headers["X-Request-ID"]


async def test_scan_rejects_empty_content(api_client):
    response = await api_client.post(f"{PREFIX}/scan", json={"content": ""}, auth=AUTH)

    assert response.status_code == 422
    assert response.json()["type"] == "ValidationError"


async def test_post_comment_and_username_routes(api_client, backend):
    backend.reply(200, {"status": "allow"}).reply(200, {"status": "block", "reason": "spam"})
    post = await api_client.post(
        f"{PREFIX}/posts", json={"post_id": "1", "title": "Hi", "content": "buy now"}, auth=AUTH
    )
    comment = await api_client.post(f"{PREFIX}/comments", json={"comment_id": "2", "content": "nice"}, auth=AUTH)
    username = await api_client.post(f"{PREFIX}/usernames", json={"login": "sam"}, auth=AUTH)

    assert post.json()["status"] == "draft"
    assert comment.json()["approved"] is True
    assert username.json()["allowed"] is True


async def test_hook_route(api_client, backend):
    backend.reply(200, {"status": "block"})

    response = await api_client.post(f"{PREFIX}/hooks/review", json={"text": "awful", "stars": 1}, auth=AUTH)

    assert response.json()["blocked"] is True
    assert response.json()["payload"] == {"text": "", "stars": 1}


async def test_records_listing_and_detail(api_client, repository):
    record = await repository.upsert("post", 1, ScanResult(status=ScanStatus.BLOCK, reason="spam"))
    await repository.upsert("comment", 2, ScanResult(status=ScanStatus.ALLOW))

    listing = await api_client.get(f"{PREFIX}/records", params={"status": "block"}, auth=AUTH)
    detail = await api_client.get(f"{PREFIX}/records/{record.id}", auth=AUTH)
    missing = await api_client.get(f"{PREFIX}/records/{uuid.uuid4()}", auth=AUTH)

    assert listing.json()["total"] == 1
    assert listing.json()["items"][0]["ref_id"] == "1"
    assert detail.json()["reason"] == "spam"
    assert missing.status_code == 404


async def test_allow_and_rescan_routes(api_client, repository, content_store, backend):
    content_store.add("comment", "3", status="unapproved", comment_content="fine words")
    record = await repository.upsert("comment", 3, ScanResult(status=ScanStatus.BLOCK, reason="spam"))

    allowed = await api_client.post(f"{PREFIX}/records/{record.id}/allow", auth=AUTH)
    rescanned = await api_client.post(f"{PREFIX}/records/{record.id}/rescan", auth=AUTH)

    assert allowed.json()["reason"] == "override"
    assert rescanned.json()["status"] == "allow"
    assert backend.calls == 1


async def test_stats_quota_and_usage(api_client, quota, backend):
    await quota.set()
    backend.reply(200, {"tokensUsed": 5, "tokenLimit": 100, "tier": "pro"})

    stats = await api_client.get(f"{PREFIX}/stats", auth=AUTH)
    reset = await api_client.delete(f"{PREFIX}/quota", auth=AUTH)
    usage = await api_client.get(f"{PREFIX}/usage", auth=AUTH)

    assert stats.json() == {"blocked_count": 0, "quota_exceeded": True}
    assert reset.status_code == 204
    assert not await quota.is_set()
    assert usage.json()["tier"] == "pro"


async def test_oversized_body_is_rejected(api_client):
    response = await api_client.post(f"{PREFIX}/scan", content=b"x" * (1024 * 1024 + 1), auth=AUTH)

    assert response.status_code == 413


async def test_health_reports_each_dependency(api_client):
    class StubHealth:
        async def check_database(self):
            return ServiceStatus(name="database", status="healthy")

        async def check_redis(self):
            return ServiceStatus(name="redis", status="unhealthy", message="down")

    app.dependency_overrides[get_health_service] = lambda: StubHealth()

    live = await api_client.get("/api/v1/health/live")
    ready = await api_client.get("/api/v1/health/ready")

    assert live.json() == {"status": "ok"}
    assert ready.status_code == 503
    assert ready.json() == {"status": "not_ready", "ready": False}


async def test_scan_rejects_whitespace_only_content(api_client, backend):
    response = await api_client.post(f"{PREFIX}/scan", json={"content": "   \n\t"}, auth=AUTH)

    assert response.status_code == 422
    assert backend.calls == 0


async def test_bulk_allow_and_rescan_routes(api_client, repository, content_store, backend):
    content_store.add("comment", "21", status="unapproved", comment_content="fine words")
    record = await repository.upsert("comment", 21, ScanResult(status=ScanStatus.BLOCK, reason="spam"))
    missing = str(uuid.uuid4())

    allowed = await api_client.post(f"{PREFIX}/records/allow", json={"ids": [str(record.id), missing]}, auth=AUTH)
    rescanned = await api_client.post(f"{PREFIX}/records/rescan", json={"ids": [str(record.id)]}, auth=AUTH)
    empty = await api_client.post(f"{PREFIX}/records/allow", json={"ids": []}, auth=AUTH)

    assert allowed.status_code == 200
    assert allowed.json()["processed"][0]["reason"] == "override"
    assert list(allowed.json()["failed"]) == [missing]
    assert rescanned.json()["processed"][0]["status"] == "allow"
    assert backend.calls == 1
    assert empty.status_code == 422
