"""
Chat endpoint: rules first, model fallback second.

Every response body carries `text`, including validation and storage errors.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

import chatrelay.config as config
from chatrelay.context import Caller
from chatrelay.errors import StorageError, StorageUnavailable, ValidationIssue
from chatrelay.services import Services
from app.auth import get_optional_caller
from app.deps import get_services, read_json_body


router = APIRouter(prefix="/api")

STORAGE_FAILURE_TEXT = "Could not save your conversation. Please try again."


@router.post("/chat")
async def chat(
    request: Request,
    caller: Caller = Depends(get_optional_caller),
    services: Services = Depends(get_services),
):
    try:
        body = await read_json_body(request)
        reply = await services.chat.handle(caller, body.get("prompt"), body.get("history"))
    except ValidationIssue as exc:
        return JSONResponse(status_code=400, content={"text": str(exc), "field": exc.field})
    except (StorageError, StorageUnavailable) as exc:
        config.logger.error("chat_storage_failed", extra={"actor": caller.actor, "error": str(exc)})
        return JSONResponse(status_code=500, content={"text": STORAGE_FAILURE_TEXT})

    if not reply.ok:
        return JSONResponse(status_code=500, content={"text": reply.text})
    return {"text": reply.text, "source": reply.source}
