"""
Bearer token dependencies.

Optional-auth endpoints treat a missing header as anonymous; a header that is
present but does not verify is always rejected.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, Request

from chatrelay.context import Caller, Claims
from chatrelay.errors import AuthError
from chatrelay.services import Services
from app.deps import get_services


def _bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("authorization")
    if header is None:
        return None
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthError("Invalid authorization header")
    return token.strip()


async def get_current_claims(
    request: Request,
    services: Services = Depends(get_services),
) -> Optional[Claims]:
    token = _bearer_token(request)
    if token is None:
        return None
    return await services.auth.verify(token)


async def get_optional_caller(
    claims: Optional[Claims] = Depends(get_current_claims),
) -> Caller:
    return Caller.from_claims(claims)


async def require_caller(
    caller: Caller = Depends(get_optional_caller),
) -> Caller:
    if caller.is_anonymous:
        raise AuthError("Authentication required")
    return caller
