"""
Registration and login endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from chatrelay.services import Services
from chatrelay.services.auth_service import pick_identity
from app.deps import get_services, read_json_body


router = APIRouter(prefix="/api/auth")


@router.post("/register")
async def register(request: Request, services: Services = Depends(get_services)):
    body = await read_json_body(request)
    result = await services.auth.register(
        pick_identity(body),
        body.get("password"),
        body.get("displayName"),
    )
    return result.to_dict()


@router.post("/login")
async def login(request: Request, services: Services = Depends(get_services)):
    body = await read_json_body(request)
    result = await services.auth.login(pick_identity(body), body.get("password"))
    return result.to_dict()
