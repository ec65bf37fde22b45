"""
Password hashing and bearer token signing.
"""

from __future__ import annotations

import time
from typing import Optional

import bcrypt
import jwt
from jwt import ExpiredSignatureError, InvalidTokenError

import chatrelay.config as config
from chatrelay.context import Claims
from chatrelay.errors import AuthError


_BCRYPT_MAX_BYTES = 72


def _password_bytes(password: str) -> bytes:
    # bcrypt only reads the first 72 bytes; newer releases reject longer input
    return password.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def hash_password(password: str, rounds: Optional[int] = None) -> str:
    salt = bcrypt.gensalt(rounds=rounds or config.BCRYPT_ROUNDS)
    return bcrypt.hashpw(_password_bytes(password), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(_password_bytes(password), password_hash.encode("utf-8"))
    except ValueError:
        # malformed stored hash
        return False


class TokenSigner:
    """Issues and verifies HMAC-signed JWTs carrying {sub, identity}."""

    def __init__(
        self,
        secret: Optional[str] = None,
        algorithm: Optional[str] = None,
        ttl_seconds: Optional[int] = None,
    ):
        self.secret = secret or config.JWT_SECRET
        self.algorithm = algorithm or config.JWT_ALGORITHM
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else config.TOKEN_TTL_HOURS * 3600

    def issue(self, user_id: str, identity: str, now: Optional[int] = None) -> str:
        issued_at = int(now if now is not None else time.time())
        payload = {
            "sub": user_id,
            "identity": identity,
            "iat": issued_at,
            "exp": issued_at + self.ttl_seconds,
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def verify(self, token: str) -> Claims:
        if not token:
            raise AuthError("Token missing")
        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                options={"require": ["sub", "exp", "iat"]},
            )
        except ExpiredSignatureError as exc:
            raise AuthError("Token expired") from exc
        except InvalidTokenError as exc:
            raise AuthError("Invalid token") from exc

        user_id = payload.get("sub")
        identity = payload.get("identity")
        if not isinstance(user_id, str) or not isinstance(identity, str):
            raise AuthError("Invalid token")
        return Claims(
            user_id=user_id,
            identity=identity,
            issued_at=int(payload["iat"]),
            expires_at=int(payload["exp"]),
        )
