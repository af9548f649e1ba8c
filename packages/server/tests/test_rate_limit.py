"""Tests for the fixed-window rate limiter."""

from app.core.redis import MemoryCounterStore

LOGIN = {"email": "nobody@example.org", "password": "wrong"}


async def test_login_limited_after_five_attempts(client):
    for attempt in range(5):
        resp = await client.post("/api/v1/auth/login", json=LOGIN)
        assert resp.status_code == 401
        assert resp.headers["X-RateLimit-Limit"] == "5"
        assert resp.headers["X-RateLimit-Remaining"] == str(4 - attempt)

    resp = await client.post("/api/v1/auth/login", json=LOGIN)
    assert resp.status_code == 429
    body = resp.json()
    assert body["code"] == "RATE_LIMIT_EXCEEDED"
    assert body["details"]["retryAfter"] > 0
    assert int(resp.headers["Retry-After"]) == body["details"]["retryAfter"]
    assert resp.headers["X-RateLimit-Remaining"] == "0"


async def test_limits_are_per_client_ip(client):
    for _ in range(5):
        await client.post("/api/v1/auth/login", json=LOGIN, headers={"X-Forwarded-For": "10.0.0.1"})
    blocked = await client.post(
        "/api/v1/auth/login", json=LOGIN, headers={"X-Forwarded-For": "10.0.0.1"}
    )
    other = await client.post(
        "/api/v1/auth/login", json=LOGIN, headers={"X-Forwarded-For": "10.0.0.2"}
    )
    assert blocked.status_code == 429
    assert other.status_code == 401


async def test_public_and_standard_presets(client, site):
    public = await client.get(f"/api/public/sites/{site.id}/info")
    assert public.headers["X-RateLimit-Limit"] == "500"
    standard = await client.get("/api/v1/")
    assert standard.headers["X-RateLimit-Limit"] == "100"


async def test_health_is_not_limited(client):
    resp = await client.get("/health")
    assert "X-RateLimit-Limit" not in resp.headers


async def test_memory_counter_window():
    counters = MemoryCounterStore()
    assert (await counters.incr("k", 60))[0] == 1
    count, reset_in = await counters.incr("k", 60)
    assert count == 2
    assert 0 < reset_in <= 60
    await counters.reset()
    assert (await counters.incr("k", 60))[0] == 1
