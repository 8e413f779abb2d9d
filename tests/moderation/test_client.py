import json

import httpx
import pytest

from src.modules.moderation.enums import ScanReason, ScanStatus
from src.modules.moderation.schemas import UsageError, UsageInfo
from src.modules.moderation.services import ModerationClient


@pytest.mark.parametrize(
    ("status_code", "expected_status", "expected_reason"),
    [
        (402, ScanStatus.ERROR, ScanReason.QUOTA_EXCEEDED),
        (429, ScanStatus.RATE_LIMITED, ScanReason.RATE_LIMITED),
        (401, ScanStatus.ERROR, ScanReason.UNAUTHORIZED),
        (403, ScanStatus.ERROR, ScanReason.UNAUTHORIZED),
        (500, ScanStatus.ERROR, ScanReason.UNEXPECTED_RESPONSE),
        (404, ScanStatus.ERROR, ScanReason.UNEXPECTED_RESPONSE),
    ],
)
async def test_http_status_classification(client, backend, status_code, expected_status, expected_reason):
    backend.reply(status_code, {"message": "nope"})

    result = await client.scan("some text", {"type": "post"})

    assert result.status == expected_status
    assert result.reason == expected_reason.value
    assert result.message


async def test_quota_response_sets_flag(client, backend, quota):
    backend.reply(402)

    await client.scan("text")

    assert await quota.is_set()


async def test_other_failures_leave_quota_flag_alone(client, backend, quota):
    backend.reply(500).reply(429)

    await client.scan("text")
    await client.scan("text")

    assert not await quota.is_set()


async def test_non_json_body_is_invalid_json(client, backend):
    backend.reply(200, text="<html>gateway</html>")

    result = await client.scan("text")

    assert result.status == ScanStatus.ERROR
    assert result.reason == ScanReason.INVALID_JSON.value


async def test_empty_body_is_invalid_json(client, backend):
    backend.reply(200)

    result = await client.scan("text")

    assert result.reason == ScanReason.INVALID_JSON.value


async def test_json_array_body_is_invalid_json(client, backend):
    backend.reply(200, ["allow"])

    result = await client.scan("text")

    assert result.reason == ScanReason.INVALID_JSON.value


async def test_is_clean_false_maps_to_block(client, backend):
    backend.reply(200, {"isClean": False, "severity": "high"})

    result = await client.scan("text")

    assert result.status == ScanStatus.BLOCK
    assert result.reason == "high"
    assert result.score is None


async def test_is_clean_true_maps_to_allow(client, backend):
    backend.reply(200, {"isClean": True})

    result = await client.scan("text")

    assert result.status == ScanStatus.ALLOW


async def test_missing_status_defaults_to_allow(client, backend):
    backend.reply(200, {"id": "abc"})

    result = await client.scan("text")

    assert result.status == ScanStatus.ALLOW
    assert result.reason == ""
    assert result.details == {"id": "abc"}


async def test_explicit_status_reason_and_score(client, backend):
    backend.reply(200, {"status": "block", "reason": "hate_speech", "score": 0.9})

    result = await client.scan("text")

    assert result.status == ScanStatus.BLOCK
    assert result.reason == "hate_speech"
    assert result.score == 0.9


async def test_unknown_status_is_unexpected_response(client, backend):
    backend.reply(200, {"status": "quarantine"})

    result = await client.scan("text")

    assert result.status == ScanStatus.ERROR
    assert result.reason == ScanReason.UNEXPECTED_RESPONSE.value


async def test_safe_content_is_exposed(client, backend):
    backend.reply(
        200,
        {"status": "block", "safeContent": "hello ****", "addons": {"replacedUnsafe": True, "replacedPii": False}},
    )

    result = await client.scan("hello jerk")

    assert result.safe_content == "hello ****"
    assert result.replaced_unsafe is True
    assert result.replaced_pii is False


async def test_network_error(client, backend):
    backend.fail(httpx.ConnectError("connection refused"))

    result = await client.scan("text")

    assert result.status == ScanStatus.ERROR
    assert result.reason == ScanReason.NETWORK_ERROR.value
    assert "connection refused" in result.message


async def test_timeout_is_network_error(client, backend):
    backend.fail(httpx.ReadTimeout("timed out"))

    result = await client.scan("text")

    assert result.reason == ScanReason.NETWORK_ERROR.value


async def test_missing_api_key_skips_the_call(backend, quota, make_settings):
    config = make_settings(MODERATION_API_KEY="")
    client = ModerationClient(
        quota=quota, http_client=httpx.AsyncClient(transport=httpx.MockTransport(backend.handler)), config=config
    )

    result = await client.scan("text")
    await client.aclose()

    assert result.status == ScanStatus.ERROR
    assert result.reason == ScanReason.MISSING_API_KEY.value
    assert not result.is_retryable
    assert backend.calls == 0


async def test_request_format(client, backend):
    await client.scan("hello", {"type": "post", "author": "someone"}, "p1")

    request = backend.requests[0]
    assert request.method == "POST"
    assert str(request.url) == "https://moderation.test/api/v1/public/moderation/text"
    assert request.headers["Authorization"] == "Bearer test-key"
    assert request.headers["Accept"] == "application/json"

    body = json.loads(request.content)
    assert body == {
        "content": "hello",
        "language": "English",
        "replace": False,
        "pii": False,
        "replace_severity": None,
        "moderation_profile_id": "p1",
    }


async def test_language_follows_locale_when_non_english_enabled(backend, quota, make_settings):
    config = make_settings(MODERATION_ENABLE_NON_ENGLISH=True, MODERATION_LOCALE="de_DE")
    client = ModerationClient(
        quota=quota, http_client=httpx.AsyncClient(transport=httpx.MockTransport(backend.handler)), config=config
    )

    await client.scan("hallo")
    await client.aclose()

    assert json.loads(backend.requests[0].content)["language"] == "de"


async def test_empty_profile_is_sent_as_null(client, backend):
    await client.scan("hello", profile_id="")

    assert json.loads(backend.requests[0].content)["moderation_profile_id"] is None


async def test_usage_accepts_either_key_casing(client, backend):
    backend.reply(200, {"TokensUsed": 120, "TokenLimit": 1000, "Tier": "free"})

    usage = await client.usage()

    assert isinstance(usage, UsageInfo)
    assert usage.tokens_used == 120
    assert usage.token_limit == 1000
    assert usage.tier == "free"
    assert backend.requests[0].method == "GET"
    assert str(backend.requests[0].url).endswith("/usage")


async def test_usage_api_error(client, backend):
    backend.reply(503)

    usage = await client.usage()

    assert usage == UsageError(error="api_error", code=503)


async def test_usage_without_key(backend, quota, make_settings):
    client = ModerationClient(
        quota=quota,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(backend.handler)),
        config=make_settings(MODERATION_API_KEY=""),
    )

    usage = await client.usage()
    await client.aclose()

    assert usage == UsageError(error="no_key")
    assert backend.calls == 0
