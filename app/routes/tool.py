"""
Transcript analysis tools.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from chatrelay.context import Caller
from chatrelay.errors import NotFoundError, ValidationIssue
from chatrelay.services import Services
from app.auth import require_caller
from app.deps import get_services, read_json_body


router = APIRouter(prefix="/api/tool")


@router.post("/{kind}")
async def run_tool(
    kind: str,
    request: Request,
    caller: Caller = Depends(require_caller),
    services: Services = Depends(get_services),
):
    try:
        body = await read_json_body(request)
        reply = await services.tools.run(caller, kind, body.get("history"))
    except NotFoundError as exc:
        return JSONResponse(status_code=404, content={"text": str(exc)})
    except ValidationIssue as exc:
        return JSONResponse(status_code=400, content={"text": str(exc), "field": exc.field})

    if not reply.ok:
        return JSONResponse(status_code=500, content={"text": reply.text})
    return {"text": reply.text}
