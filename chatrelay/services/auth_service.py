"""
Registration, login and token verification.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Optional

import chatrelay.config as config
from chatrelay.context import Claims
from chatrelay.errors import AuthError
from chatrelay.security import TokenSigner, hash_password, verify_password
from chatrelay.storage.base import CredentialStore, User
from chatrelay.validators import (
    normalize_identity,
    validate_optional_text,
    validate_required_text,
)

logger = config.logger

INVALID_CREDENTIALS = "Invalid credentials"


@dataclass(frozen=True)
class AuthResult:
    token: str
    user: User

    def to_dict(self) -> dict:
        return {
            "token": self.token,
            "user": {
                "id": self.user.id,
                "identity": self.user.identity,
                "displayName": self.user.display_name,
            },
        }


def pick_identity(body: dict[str, Any]) -> Any:
    """First non-empty of identity, email, username."""
    for name in ("identity", "email", "username"):
        value = body.get(name)
        if isinstance(value, str) and value.strip():
            return value
    return body.get("identity")


class AuthService:
    def __init__(self, users: CredentialStore, signer: TokenSigner, persistent: bool = False):
        self.users = users
        self.signer = signer
        self.persistent = persistent
        self._dummy_hash: Optional[str] = None

    def _validate(self, identity: Any, password: Any) -> tuple[str, str]:
        identity = validate_required_text(identity, "identity", config.MAX_IDENTITY_LENGTH)
        password = validate_required_text(password, "password", config.MAX_PASSWORD_LENGTH)
        return normalize_identity(identity), password

    async def register(self, identity: Any, password: Any, display_name: Any = None) -> AuthResult:
        identity, password = self._validate(identity, password)
        display_name = validate_optional_text(display_name, "displayName", config.MAX_DISPLAY_NAME_LENGTH)
        display_name = (display_name or "").strip() or identity

        password_hash = await asyncio.to_thread(hash_password, password)
        user = await asyncio.to_thread(self.users.create_user, identity, password_hash, display_name)
        logger.info("user_registered", extra={"user_id": user.id})
        return AuthResult(token=self.signer.issue(user.id, user.identity), user=user)

    async def login(self, identity: Any, password: Any) -> AuthResult:
        identity, password = self._validate(identity, password)
        user = await asyncio.to_thread(self.users.get_by_identity, identity)
        if user is None:
            # burn a comparable amount of time so unknown identities are not distinguishable
            await asyncio.to_thread(verify_password, password, self._get_dummy_hash())
            raise AuthError(INVALID_CREDENTIALS)
        if not await asyncio.to_thread(verify_password, password, user.password_hash):
            logger.info("login_failed", extra={"user_id": user.id})
            raise AuthError(INVALID_CREDENTIALS)
        logger.info("login_ok", extra={"user_id": user.id})
        return AuthResult(token=self.signer.issue(user.id, user.identity), user=user)

    async def verify(self, token: str) -> Claims:
        claims = self.signer.verify(token)
        if self.persistent:
            user = await asyncio.to_thread(self.users.get_by_id, claims.user_id)
            if user is None:
                raise AuthError("Invalid token")
        return claims

    def _get_dummy_hash(self) -> str:
        if self._dummy_hash is None:
            self._dummy_hash = hash_password("chatrelay-dummy-password")
        return self._dummy_hash
