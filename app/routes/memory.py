"""
Key-value memory endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from chatrelay.context import Caller
from chatrelay.errors import NotFoundError
from chatrelay.services import Services
from app.auth import require_caller
from app.deps import get_services, read_json_body


router = APIRouter(prefix="/api/memory")


@router.post("")
async def remember(
    request: Request,
    caller: Caller = Depends(require_caller),
    services: Services = Depends(get_services),
):
    body = await read_json_body(request)
    entry = await services.memory.remember(caller.user_id, body.get("key"), body.get("value"))
    return {"memory": entry.to_dict()}


@router.post("/clear")
async def clear(
    caller: Caller = Depends(require_caller),
    services: Services = Depends(get_services),
):
    deleted = await services.memory.forget_all(caller.user_id)
    return {"message": f"Cleared {deleted} memory entries", "deleted": deleted}


@router.get("/{key}")
async def recall(
    key: str,
    caller: Caller = Depends(require_caller),
    services: Services = Depends(get_services),
):
    entry = await services.memory.recall(caller.user_id, key)
    if entry is None:
        raise NotFoundError("Memory not found")
    return {"memory": entry.to_dict()}
