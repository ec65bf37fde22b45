"""
Conversation history endpoint.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends

from chatrelay.context import Caller
from chatrelay.errors import ValidationIssue
from chatrelay.services import Services
from app.auth import require_caller
from app.deps import get_services


router = APIRouter(prefix="/api")


def _parse_limit(n: Optional[str]) -> Optional[int]:
    if n is None or n == "":
        return None
    try:
        return int(n)
    except ValueError as exc:
        raise ValidationIssue("n must be an integer", field="n", error_type="invalid_type") from exc


@router.get("/messages")
async def list_messages(
    n: Optional[str] = None,
    caller: Caller = Depends(require_caller),
    services: Services = Depends(get_services),
):
    messages = await services.messages.history(caller, _parse_limit(n))
    return {"messages": [message.to_dict() for message in messages]}
