"""
FastAPI app wiring for chatrelay.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI

import chatrelay.config as config
from chatrelay.db import dispose_db
from chatrelay.services import Services, build_services
from rate_limiter import RateLimitConfig
from app.errors import register_exception_handlers
from app.middleware import configure_middleware
from app.routes.auth import router as auth_router
from app.routes.chat import router as chat_router
from app.routes.health import router as health_router
from app.routes.memory import router as memory_router
from app.routes.messages import router as messages_router
from app.routes.root import router as root_router
from app.routes.tool import router as tool_router


def create_app(
    services: Optional[Services] = None,
    rate_limit_config: Optional[RateLimitConfig] = None,
) -> FastAPI:
    """Build the app; `services` is built from configuration at startup when omitted."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Initialize on startup, cleanup on shutdown."""
        owns_services = getattr(app.state, "services", None) is None
        if owns_services:
            config.validate_and_prepare_config()
            app.state.services = build_services()
        await app.state.services.start()
        try:
            yield
        finally:
            await app.state.services.close()
            await app.state.rate_limiter.close()
            if owns_services:
                dispose_db()

    app = FastAPI(title="chatrelay", redirect_slashes=False, lifespan=lifespan)
    if services is not None:
        app.state.services = services
    app.state.rate_limiter = configure_middleware(app, rate_limit_config)
    register_exception_handlers(app)

    app.include_router(auth_router)
    app.include_router(chat_router)
    app.include_router(tool_router)
    app.include_router(messages_router)
    app.include_router(memory_router)
    app.include_router(health_router)
    app.include_router(root_router)
    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run("app.main:app", host="0.0.0.0", port=config.PORT)
