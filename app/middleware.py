"""
ASGI middleware stack for the chat API.

Starlette runs the last middleware added first, so CORS ends up outermost and
decorates the 413/429 answers produced further in.
"""

from __future__ import annotations

import os
from typing import Optional

from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.trustedhost import TrustedHostMiddleware

from rate_limiter import (
    InMemoryRateLimiter,
    RateLimitConfig,
    RateLimitMiddleware,
    build_rate_limiter_from_env,
    load_rate_limit_config_from_env,
)
from security_middleware import (
    RequestSizeLimitMiddleware,
    SecurityHeadersMiddleware,
    load_request_size_limit_config_from_env,
    load_security_headers_config_from_env,
)


def _split_env_list(env_name: str, default: str = "") -> list[str]:
    return [item.strip() for item in os.environ.get(env_name, default).split(",") if item.strip()]


def configure_middleware(app, rate_limit_config: Optional[RateLimitConfig] = None) -> InMemoryRateLimiter:
    """Install body-size, rate-limit, header, host and CORS middleware; returns the limiter."""
    rate_limit_config = rate_limit_config or load_rate_limit_config_from_env()
    limiter = build_rate_limiter_from_env(rate_limit_config)

    # innermost: oversized prompts are refused before any route parses them
    app.add_middleware(RequestSizeLimitMiddleware, config=load_request_size_limit_config_from_env())
    # counts /api/chat and /api/auth/* per client address
    app.add_middleware(RateLimitMiddleware, limiter=limiter, config=rate_limit_config)
    app.add_middleware(SecurityHeadersMiddleware, config=load_security_headers_config_from_env())

    allowed_hosts = _split_env_list("TRUSTED_HOSTS")
    if allowed_hosts:
        app.add_middleware(TrustedHostMiddleware, allowed_hosts=allowed_hosts)

    origins = _split_env_list("CORS_ALLOWED_ORIGINS", "*") or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        # browsers refuse credentialed responses for a wildcard origin
        allow_credentials="*" not in origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    return limiter
