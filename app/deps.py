"""
Dependency helpers for the FastAPI app.
"""

from __future__ import annotations

from typing import Any

from fastapi import Request

from chatrelay.errors import ValidationIssue
from chatrelay.services import Services


def get_services(request: Request) -> Services:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise RuntimeError("Services not initialized")
    return services


async def read_json_body(request: Request) -> dict[str, Any]:
    """Parse the request body as a JSON object; an empty body is {}."""
    raw = await request.body()
    if not raw.strip():
        return {}
    try:
        payload = await request.json()
    except ValueError as exc:
        raise ValidationIssue("Request body must be valid JSON", field="body", error_type="invalid_json") from exc
    if not isinstance(payload, dict):
        raise ValidationIssue("Request body must be a JSON object", field="body", error_type="invalid_type")
    return payload
