"""
Fixed-window, per-client rate limiting for the chat and auth endpoints.

Counters live in process memory; there is no cross-process coordination.
"""

from __future__ import annotations

import json
import os
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Optional

import chatrelay.config as app_config


@dataclass(frozen=True)
class RateLimitRule:
    limit: int
    window_seconds: int


@dataclass(frozen=True)
class RateLimitConfig:
    enabled: bool
    chat: RateLimitRule
    auth: RateLimitRule
    max_cache_entries: int
    trusted_proxy_count: int
    chat_path: str = "/api/chat"
    auth_prefix: str = "/api/auth/"


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    count: int
    reset_after: int


def _get_int(env_name: str, default: int) -> int:
    value = os.environ.get(env_name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def load_rate_limit_config_from_env() -> RateLimitConfig:
    window = _get_int("RATE_LIMIT_WINDOW_SECONDS", 60)
    return RateLimitConfig(
        enabled=os.environ.get("RATE_LIMIT_ENABLED", "true").strip().lower() in {"1", "true", "yes", "on"},
        chat=RateLimitRule(limit=_get_int("RATE_LIMIT_CHAT_PER_WINDOW", 30), window_seconds=window),
        auth=RateLimitRule(limit=_get_int("RATE_LIMIT_AUTH_PER_WINDOW", 10), window_seconds=window),
        max_cache_entries=_get_int("RATE_LIMIT_MAX_CACHE_ENTRIES", 10000),
        trusted_proxy_count=_get_int("RATE_LIMIT_TRUSTED_PROXY_COUNT", 0),
    )


class InMemoryRateLimiter:
    """
    Fixed windows keyed by (bucket, client key).

    A window starts on the first request for a key; once more than
    `window_seconds` have passed the next request opens a new window with a
    count of 1. The oldest keys are evicted past `max_entries`.
    """

    def __init__(self, max_entries: int = 10000, clock: Optional[Callable[[], float]] = None):
        self.max_entries = max_entries
        self._clock = clock or time.monotonic
        self._lock = threading.Lock()
        self._windows: OrderedDict[str, tuple[float, int]] = OrderedDict()

    def hit(self, key: str, rule: RateLimitRule) -> RateLimitDecision:
        now = self._clock()
        with self._lock:
            window = self._windows.get(key)
            if window is None or now - window[0] > rule.window_seconds:
                start, count = now, 1
            else:
                start, count = window[0], window[1] + 1
            self._windows[key] = (start, count)
            self._windows.move_to_end(key)
            while len(self._windows) > self.max_entries:
                self._windows.popitem(last=False)

        reset_after = max(0, int(rule.window_seconds - (now - start)))
        return RateLimitDecision(allowed=count <= rule.limit, count=count, reset_after=reset_after)

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()

    async def close(self) -> None:
        self.reset()


def build_rate_limiter_from_env(config: RateLimitConfig) -> InMemoryRateLimiter:
    return InMemoryRateLimiter(max_entries=config.max_cache_entries)


def _client_ip(scope, headers: dict, trusted_proxy_count: int) -> str:
    if trusted_proxy_count > 0:
        forwarded = [part.strip() for part in headers.get("x-forwarded-for", "").split(",") if part.strip()]
        # each trusted proxy appends one hop; the client is the entry before them
        if len(forwarded) > trusted_proxy_count:
            return forwarded[-(trusted_proxy_count + 1)]
        if forwarded:
            return forwarded[0]
    client = scope.get("client")
    if client:
        return client[0]
    return "unknown"


class RateLimitMiddleware:
    def __init__(self, app, limiter: InMemoryRateLimiter, config: RateLimitConfig):
        self.app = app
        self.limiter = limiter
        self.config = config

    def _select_rule(self, path: str) -> Optional[tuple[str, RateLimitRule]]:
        if path.rstrip("/") == self.config.chat_path:
            return "chat", self.config.chat
        if path.startswith(self.config.auth_prefix):
            return "auth", self.config.auth
        return None

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http" or not self.config.enabled or scope.get("method") == "OPTIONS":
            await self.app(scope, receive, send)
            return

        selected = self._select_rule(scope.get("path", ""))
        if selected is None:
            await self.app(scope, receive, send)
            return

        headers = {}
        for header_name, header_value in scope.get("headers", []):
            headers[header_name.decode("latin1").lower()] = header_value.decode("latin1")

        bucket, rule = selected
        client_ip = _client_ip(scope, headers, self.config.trusted_proxy_count)
        decision = self.limiter.hit(f"{bucket}:{client_ip}", rule)
        if decision.allowed:
            await self.app(scope, receive, send)
            return

        app_config.logger.warning(
            "rate_limit_exceeded",
            extra={"bucket": bucket, "client_ip": client_ip, "count": decision.count},
        )
        await self._send_limited(send, decision)

    async def _send_limited(self, send, decision: RateLimitDecision):
        body = json.dumps({
            "error": "rate_limit_exceeded",
            "message": "Too many requests, please try again later.",
        }).encode("utf-8")
        await send({
            "type": "http.response.start",
            "status": 429,
            "headers": [
                [b"content-type", b"application/json"],
                [b"content-length", str(len(body)).encode("latin1")],
                [b"retry-after", str(decision.reset_after).encode("latin1")],
            ],
        })
        await send({"type": "http.response.body", "body": body})
