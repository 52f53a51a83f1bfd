from __future__ import annotations

from redis.exceptions import RedisError

from drinkwise.config import get_settings
from drinkwise.dependencies import get_redis
from drinkwise.main import app
from tests.utils.auth import build_auth_headers


def test_rate_limit_user(client, headers, monkeypatch):
    monkeypatch.setattr(get_settings(), "rate_limit_per_minute", 5)
    for _ in range(5):
        resp = client.get("/api/sessions", headers=headers)
        assert resp.status_code == 200
    resp = client.get("/api/sessions", headers=headers)
    assert resp.status_code == 429
    assert resp.json() == {"error": "Rate limit exceeded", "code": "TOO_MANY_REQUESTS"}


def test_rate_limit_is_per_user(client, headers, other_user, fake_redis, monkeypatch):
    monkeypatch.setattr(get_settings(), "rate_limit_per_minute", 2)
    for _ in range(3):
        client.get("/api/sessions", headers=headers)
    resp = client.get("/api/sessions", headers=build_auth_headers(other_user.id))
    assert resp.status_code == 200
    assert fake_redis.store[f"rate:user:{other_user.id}"] == 1


def test_rate_limit_redis_unavailable(client, headers):
    class _RedisFail:
        def pipeline(self):
            raise RedisError

    app.dependency_overrides[get_redis] = lambda: _RedisFail()
    resp = client.get("/api/sessions", headers=headers)
    assert resp.status_code == 503
    assert resp.json()["code"] == "SERVICE_UNAVAILABLE"


def test_health_is_not_rate_limited(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}
