"""Unit tests for the Redis fixed-window rate limiter."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from httpx import AsyncClient
from redis.exceptions import ConnectionError as RedisConnectionError

from config.settings import settings
from src.fm_gateway.middleware.rate_limit import client_ip


@pytest.fixture
def limiter_on(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "RATE_LIMIT_ENABLED", True)
    monkeypatch.setattr(settings, "RATE_LIMIT_PER_MINUTE", 2)


def _redis(count: int) -> AsyncMock:
    redis = AsyncMock()
    redis.incr.return_value = count
    return redis


@pytest.mark.asyncio
async def test_under_limit_passes(client: AsyncClient, limiter_on: None) -> None:
    redis = _redis(1)
    with patch(
        "src.fm_gateway.middleware.rate_limit.get_redis", AsyncMock(return_value=redis)
    ):
        resp = await client.get("/api/v1/funding/orders/1")
    assert resp.status_code != 429
    redis.expire.assert_awaited_once()


@pytest.mark.asyncio
async def test_over_limit_rejected(client: AsyncClient, limiter_on: None) -> None:
    with patch(
        "src.fm_gateway.middleware.rate_limit.get_redis", AsyncMock(return_value=_redis(3))
    ):
        resp = await client.get("/api/v1/funding/state")
    assert resp.status_code == 429
    assert resp.json()["code"] == 9001
    assert resp.headers["Retry-After"] == "60"


@pytest.mark.asyncio
async def test_health_is_exempt(client: AsyncClient, limiter_on: None) -> None:
    get_redis = AsyncMock(return_value=_redis(100))
    with patch("src.fm_gateway.middleware.rate_limit.get_redis", get_redis):
        resp = await client.get("/health")
    assert resp.status_code == 200
    get_redis.assert_not_awaited()


@pytest.mark.asyncio
async def test_redis_down_fails_open(client: AsyncClient, limiter_on: None) -> None:
    redis = AsyncMock()
    redis.incr.side_effect = RedisConnectionError("refused")
    with patch(
        "src.fm_gateway.middleware.rate_limit.get_redis", AsyncMock(return_value=redis)
    ):
        resp = await client.get("/api/v1/funding/orders/1")
    assert resp.status_code != 429


def test_client_ip_prefers_forwarded_header() -> None:
    request = MagicMock()
    request.headers = {"x-forwarded-for": "10.0.0.1, 10.0.0.2"}
    assert client_ip(request) == "10.0.0.1"


def test_client_ip_falls_back_to_peer() -> None:
    request = MagicMock()
    request.headers = {}
    request.client.host = "127.0.0.1"
    assert client_ip(request) == "127.0.0.1"
