"""
Root endpoint with service metadata.
"""

from __future__ import annotations

from fastapi import APIRouter

import chatrelay.config as config


router = APIRouter()


@router.get("/")
async def root():
    """Root endpoint with service info."""
    return {
        "message": "Chat backend is running",
        "service": config.SERVICE_NAME,
        "version": config.SERVICE_VERSION,
        "endpoints": {
            "health": "/api/health",
            "chat": "/api/chat",
            "messages": "/api/messages",
            "tools": "/api/tool/{kind}",
            "memory": {
                "remember": "/api/memory",
                "recall": "/api/memory/{key}",
                "clear": "/api/memory/clear",
            },
            "auth": {
                "register": "/api/auth/register",
                "login": "/api/auth/login",
            },
        },
    }
