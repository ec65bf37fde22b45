"""
Exception handlers mapping service errors to JSON responses.
"""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

import chatrelay.config as config
from chatrelay.errors import (
    AuthError,
    ConflictError,
    NotFoundError,
    StorageError,
    StorageUnavailable,
    ValidationIssue,
)


async def _validation_issue(request: Request, exc: ValidationIssue):
    return JSONResponse(status_code=400, content={"error": str(exc), "field": exc.field})


async def _request_validation(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    field = "unknown"
    if errors:
        loc = [str(part) for part in errors[0].get("loc", ()) if part not in ("body", "query", "path")]
        field = ".".join(loc) or "body"
    return JSONResponse(status_code=400, content={"error": f"Invalid {field}", "field": field})


async def _auth_error(request: Request, exc: AuthError):
    return JSONResponse(
        status_code=401,
        content={"error": str(exc) or "Unauthorized"},
        headers={"WWW-Authenticate": "Bearer"},
    )


async def _conflict(request: Request, exc: ConflictError):
    return JSONResponse(status_code=409, content={"error": str(exc)})


async def _not_found(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"error": str(exc) or "Not found"})


async def _storage_unavailable(request: Request, exc: StorageUnavailable):
    config.logger.error("storage_unavailable", extra={"path": request.url.path})
    return JSONResponse(status_code=500, content={"error": str(exc)})


async def _storage_error(request: Request, exc: StorageError):
    config.logger.error("storage_error", extra={"path": request.url.path, "error": str(exc)})
    return JSONResponse(status_code=500, content={"error": "Storage error. Please try again."})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ValidationIssue, _validation_issue)
    app.add_exception_handler(RequestValidationError, _request_validation)
    app.add_exception_handler(AuthError, _auth_error)
    app.add_exception_handler(ConflictError, _conflict)
    app.add_exception_handler(NotFoundError, _not_found)
    app.add_exception_handler(StorageUnavailable, _storage_unavailable)
    app.add_exception_handler(StorageError, _storage_error)
