from starlette.applications import Starlette
from starlette.responses import JSONResponse
from starlette.routing import Route
from starlette.testclient import TestClient

from conftest import make_client, make_services

from rate_limiter import (
    InMemoryRateLimiter,
    RateLimitConfig,
    RateLimitMiddleware,
    RateLimitRule,
)


def _config(chat_limit=100, auth_limit=100, trusted_proxy_count=0, enabled=True) -> RateLimitConfig:
    return RateLimitConfig(
        enabled=enabled,
        chat=RateLimitRule(limit=chat_limit, window_seconds=60),
        auth=RateLimitRule(limit=auth_limit, window_seconds=60),
        max_cache_entries=100,
        trusted_proxy_count=trusted_proxy_count,
    )


def build_app(config: RateLimitConfig) -> Starlette:
    limiter = InMemoryRateLimiter(max_entries=config.max_cache_entries)

    def ok(request):
        return JSONResponse({"ok": True})

    app = Starlette(routes=[
        Route("/api/chat", ok, methods=["POST"]),
        Route("/api/auth/login", ok, methods=["POST"]),
        Route("/api/health", ok, methods=["GET"]),
    ])
    app.add_middleware(RateLimitMiddleware, limiter=limiter, config=config)

    return app


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_chat_limit_blocks_request_after_ceiling():
    client = TestClient(build_app(_config(chat_limit=2)))

    assert client.post("/api/chat").status_code == 200
    assert client.post("/api/chat").status_code == 200

    resp = client.post("/api/chat")
    assert resp.status_code == 429
    assert resp.json() == {
        "error": "rate_limit_exceeded",
        "message": "Too many requests, please try again later.",
    }
    assert "retry-after" in resp.headers


def test_auth_path_has_its_own_limit():
    client = TestClient(build_app(_config(auth_limit=1)))

    assert client.post("/api/auth/login").status_code == 200
    assert client.post("/api/auth/login").status_code == 429
    assert client.post("/api/chat").status_code == 200


def test_unguarded_paths_are_not_counted():
    client = TestClient(build_app(_config(chat_limit=1, auth_limit=1)))

    for _ in range(5):
        assert client.get("/api/health").status_code == 200


def test_disabled_limiter_passes_everything():
    client = TestClient(build_app(_config(chat_limit=1, enabled=False)))

    for _ in range(3):
        assert client.post("/api/chat").status_code == 200


def test_untrusted_proxy_ignores_forwarded_for():
    client = TestClient(build_app(_config(chat_limit=1)))

    headers_a = {"X-Forwarded-For": "203.0.113.10"}
    headers_b = {"X-Forwarded-For": "203.0.113.11"}

    assert client.post("/api/chat", headers=headers_a).status_code == 200
    assert client.post("/api/chat", headers=headers_b).status_code == 429


def test_trusted_proxy_uses_forwarded_for():
    client = TestClient(build_app(_config(chat_limit=1, trusted_proxy_count=1)))

    headers_a = {"X-Forwarded-For": "203.0.113.10, 10.0.0.1"}
    headers_b = {"X-Forwarded-For": "203.0.113.11, 10.0.0.1"}

    assert client.post("/api/chat", headers=headers_a).status_code == 200
    assert client.post("/api/chat", headers=headers_b).status_code == 200
    assert client.post("/api/chat", headers=headers_a).status_code == 429


def test_window_restarts_only_after_it_is_exceeded():
    clock = FakeClock()
    limiter = InMemoryRateLimiter(max_entries=10, clock=clock)
    rule = RateLimitRule(limit=2, window_seconds=60)

    assert [limiter.hit("ip", rule).allowed for _ in range(3)] == [True, True, False]
    clock.now += 59
    assert not limiter.hit("ip", rule).allowed
    assert limiter.hit("other-ip", rule).allowed

    clock.now += 1
    assert not limiter.hit("ip", rule).allowed

    clock.now += 1
    decision = limiter.hit("ip", rule)
    assert decision.allowed
    assert decision.count == 1


def test_oldest_keys_are_evicted():
    limiter = InMemoryRateLimiter(max_entries=2)
    rule = RateLimitRule(limit=1, window_seconds=60)

    limiter.hit("a", rule)
    limiter.hit("b", rule)
    limiter.hit("c", rule)

    assert limiter.hit("a", rule).allowed
    assert not limiter.hit("c", rule).allowed


def test_chat_api_is_rate_limited():
    with make_client(make_services(), rate_limit_config=_config(chat_limit=2)) as client:
        statuses = [client.post("/api/chat", json={"prompt": "hello"}).status_code for _ in range(3)]

    assert statuses == [200, 200, 429]
