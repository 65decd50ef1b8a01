"""Tests for security headers, rate limiting and the broadcaster."""

import json

import pytest
import redis.asyncio as redis
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from goagri.middleware import rate_limit
from goagri.middleware.rate_limit import RateLimitMiddleware
from goagri.services import broadcast
from goagri.services.broadcast import Broadcaster, announce_mutation


class FakeRedis:
    """Just enough of redis.asyncio for the limiter and broadcaster."""

    def __init__(self):
        self.zsets: dict[str, dict[str, float]] = {}
        self.published: list[tuple[str, str]] = []

    async def zremrangebyscore(self, key, low, high):
        zset = self.zsets.setdefault(key, {})
        for member, score in list(zset.items()):
            if low <= score <= high:
                del zset[member]

    async def zcard(self, key):
        return len(self.zsets.get(key, {}))

    async def zrange(self, key, start, end, withscores=False):
        items = sorted(self.zsets.get(key, {}).items(), key=lambda kv: kv[1])
        return items[start:end + 1]

    async def zadd(self, key, mapping):
        self.zsets.setdefault(key, {}).update(mapping)

    async def expire(self, key, seconds):
        return True

    async def publish(self, channel, message):
        self.published.append((channel, message))
        return 1


async def _unreachable():
    raise redis.ConnectionError("connection refused")


def _limited_app(**options) -> FastAPI:
    app = FastAPI()
    app.add_middleware(RateLimitMiddleware, **options)

    @app.get("/api/things")
    async def things():
        return {"ok": True}

    @app.post("/api/activity-logs/{log_id}/approve")
    async def approve(log_id: str):
        return {"ok": True}

    return app


@pytest.mark.integration
@pytest.mark.asyncio
class TestSecurityHeaders:

    async def test_headers_on_api_responses(self, client: AsyncClient):
        response = await client.get("/api/categories")

        assert response.headers["x-content-type-options"] == "nosniff"
        assert response.headers["x-frame-options"] == "DENY"
        assert response.headers["cache-control"] == "no-store"

    async def test_health(self, client: AsyncClient):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"
        assert "cache-control" not in response.headers


@pytest.mark.unit
@pytest.mark.asyncio
class TestRateLimit:

    async def test_review_routes_have_their_own_budget(self, monkeypatch):
        fake = FakeRedis()

        async def get_fake():
            return fake

        monkeypatch.setattr(rate_limit, "get_redis", get_fake)
        app = _limited_app(default_limit=100, review_limit=2)

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
            codes = [
                (await c.post("/api/activity-logs/abc/approve")).status_code
                for _ in range(3)
            ]
            other = await c.get("/api/things")

        assert codes == [200, 200, 429]
        assert other.status_code == 200
        assert other.headers["x-ratelimit-limit"] == "100"

    async def test_limited_response_uses_error_envelope(self, monkeypatch):
        fake = FakeRedis()

        async def get_fake():
            return fake

        monkeypatch.setattr(rate_limit, "get_redis", get_fake)
        app = _limited_app(default_limit=1)

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
            await c.get("/api/things")
            response = await c.get("/api/things")

        assert response.status_code == 429
        assert response.json()["error"]["code"] == "RATE_LIMITED"
        assert int(response.headers["retry-after"]) >= 1

    async def test_fails_open_without_redis(self, monkeypatch):
        monkeypatch.setattr(rate_limit, "get_redis", _unreachable)
        app = _limited_app(default_limit=1)

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
            codes = [(await c.get("/api/things")).status_code for _ in range(3)]

        assert codes == [200, 200, 200]

    async def test_disabled(self, monkeypatch):
        monkeypatch.setattr(rate_limit, "get_redis", _unreachable)
        app = _limited_app(default_limit=1, enabled=False)

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
            response = await c.get("/api/things")

        assert "x-ratelimit-limit" not in response.headers


@pytest.mark.unit
@pytest.mark.asyncio
class TestBroadcaster:

    async def test_publish_serializes_event(self, monkeypatch):
        fake = FakeRedis()

        async def get_fake():
            return fake

        monkeypatch.setattr(broadcast, "get_redis", get_fake)

        delivered = await Broadcaster(channel="events", enabled=True).publish(
            "product.created", {"id": "p1", "price": 10.5}
        )

        assert delivered is True
        [(channel, message)] = fake.published
        assert channel == "events"
        decoded = json.loads(message)
        assert decoded["event"] == "product.created"
        assert decoded["payload"] == {"id": "p1", "price": 10.5}
        assert "ts" in decoded

    async def test_redis_outage_is_swallowed(self, monkeypatch, caplog):
        monkeypatch.setattr(broadcast, "get_redis", _unreachable)

        delivered = await Broadcaster(channel="events", enabled=True).publish(
            "category.deleted", {"id": "c1"}
        )

        assert delivered is False
        assert "Broadcast of category.deleted failed" in caplog.text

    async def test_disabled_broadcaster_is_silent(self, monkeypatch):
        monkeypatch.setattr(broadcast, "get_redis", _unreachable)
        assert await Broadcaster(enabled=False).publish("x", {}) is False

    async def test_gated_mutation_announces_only_pending_logs(
        self, db_session, admin, make_log, broadcaster
    ):
        pending = await make_log(admin)
        reviewed = await make_log(admin, status="REJECTED")

        await announce_mutation(
            db_session, broadcaster, gated=True, log=reviewed,
            event="product.updated", payload={"id": "p1"},
        )
        assert broadcaster.events == []

        await announce_mutation(
            db_session, broadcaster, gated=True, log=pending,
            event="product.updated", payload={"id": "p1"},
        )
        assert broadcaster.names == ["activity_log.pending"]
        assert broadcaster.last("activity_log.pending")["pending_count"] == 1
