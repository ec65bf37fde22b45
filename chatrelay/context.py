"""
Request-scoped caller identity.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Claims:
    """Decoded, verified token payload."""

    user_id: str
    identity: str
    issued_at: int
    expires_at: int


@dataclass(frozen=True)
class Caller:
    user_id: Optional[str] = None
    identity: Optional[str] = None

    @property
    def is_anonymous(self) -> bool:
        return self.user_id is None

    @property
    def actor(self) -> str:
        return self.identity or "anonymous"

    @staticmethod
    def from_claims(claims: Optional[Claims]) -> "Caller":
        if claims is None:
            return Caller()
        return Caller(user_id=claims.user_id, identity=claims.identity)


__all__ = ["Claims", "Caller"]
