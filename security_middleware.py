"""
Security response headers and request body size limits.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from typing import Optional


def _get_bool(env_name: str, default: bool) -> bool:
    value = os.environ.get(env_name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int(env_name: str, default: int) -> int:
    value = os.environ.get(env_name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


@dataclass(frozen=True)
class SecurityHeadersConfig:
    enabled: bool
    enable_hsts: bool
    hsts_max_age: int
    hsts_include_subdomains: bool
    hsts_preload: bool
    referrer_policy: str
    frame_options: str
    permissions_policy: Optional[str]
    content_security_policy: Optional[str]


@dataclass(frozen=True)
class RequestSizeLimitConfig:
    enabled: bool
    max_body_bytes: int


def load_security_headers_config_from_env() -> SecurityHeadersConfig:
    return SecurityHeadersConfig(
        enabled=_get_bool("SECURITY_HEADERS_ENABLED", True),
        enable_hsts=_get_bool("SECURITY_HSTS_ENABLED", False),
        hsts_max_age=_get_int("SECURITY_HSTS_MAX_AGE", 31536000),
        hsts_include_subdomains=_get_bool("SECURITY_HSTS_INCLUDE_SUBDOMAINS", True),
        hsts_preload=_get_bool("SECURITY_HSTS_PRELOAD", False),
        referrer_policy=os.environ.get("SECURITY_REFERRER_POLICY", "no-referrer"),
        frame_options=os.environ.get("SECURITY_FRAME_OPTIONS", "DENY"),
        permissions_policy=os.environ.get("SECURITY_PERMISSIONS_POLICY") or None,
        content_security_policy=os.environ.get("SECURITY_CONTENT_SECURITY_POLICY") or None,
    )


def load_request_size_limit_config_from_env() -> RequestSizeLimitConfig:
    return RequestSizeLimitConfig(
        enabled=_get_bool("REQUEST_SIZE_LIMIT_ENABLED", True),
        max_body_bytes=_get_int("MAX_REQUEST_BODY_BYTES", 1024 * 1024),
    )


class SecurityHeadersMiddleware:
    def __init__(self, app, config: SecurityHeadersConfig):
        self.app = app
        self.config = config
        self._headers = self._build_headers(config)

    @staticmethod
    def _build_headers(config: SecurityHeadersConfig) -> list[tuple[bytes, bytes]]:
        headers = [
            ("x-content-type-options", "nosniff"),
            ("x-frame-options", config.frame_options),
            ("referrer-policy", config.referrer_policy),
        ]
        if config.permissions_policy:
            headers.append(("permissions-policy", config.permissions_policy))
        if config.content_security_policy:
            headers.append(("content-security-policy", config.content_security_policy))
        if config.enable_hsts:
            value = f"max-age={config.hsts_max_age}"
            if config.hsts_include_subdomains:
                value += "; includeSubDomains"
            if config.hsts_preload:
                value += "; preload"
            headers.append(("strict-transport-security", value))
        return [(name.encode("latin1"), value.encode("latin1")) for name, value in headers]

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http" or not self.config.enabled:
            await self.app(scope, receive, send)
            return

        async def send_with_headers(message):
            if message["type"] == "http.response.start":
                existing = {name.lower() for name, _ in message.get("headers", [])}
                extra = [(name, value) for name, value in self._headers if name not in existing]
                message["headers"] = list(message.get("headers", [])) + extra
            await send(message)

        await self.app(scope, receive, send_with_headers)


class _BodyTooLarge(Exception):
    pass


class RequestSizeLimitMiddleware:
    """Rejects bodies over the limit, by Content-Length or by streamed size."""

    def __init__(self, app, config: RequestSizeLimitConfig):
        self.app = app
        self.config = config

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http" or not self.config.enabled:
            await self.app(scope, receive, send)
            return

        limit = self.config.max_body_bytes
        for header_name, header_value in scope.get("headers", []):
            if header_name.lower() == b"content-length":
                try:
                    declared = int(header_value)
                except ValueError:
                    declared = 0
                if declared > limit:
                    await self._send_too_large(send)
                    return

        received = 0
        response_started = False

        async def limited_receive():
            nonlocal received
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > limit:
                    raise _BodyTooLarge()
            return message

        async def tracking_send(message):
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, limited_receive, tracking_send)
        except _BodyTooLarge:
            if response_started:
                raise
            await self._send_too_large(send)

    async def _send_too_large(self, send):
        body = json.dumps({
            "error": "request_too_large",
            "max_body_bytes": self.config.max_body_bytes,
        }).encode("utf-8")
        await send({
            "type": "http.response.start",
            "status": 413,
            "headers": [
                [b"content-type", b"application/json"],
                [b"content-length", str(len(body)).encode("latin1")],
            ],
        })
        await send({"type": "http.response.body", "body": body})
