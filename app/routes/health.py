"""
Health endpoint.
"""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from chatrelay.services import Services
from app.deps import get_services


router = APIRouter()


@router.get("/api/health")
async def health(services: Services = Depends(get_services)):
    """Health check endpoint."""
    status = services.status()
    return {
        "status": "ok",
        "ai": status["ai"],
        "storage": status["storage"],
        "model": services.gateway.model,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
