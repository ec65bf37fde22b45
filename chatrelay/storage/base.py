"""
Storage records and the interfaces both adapters implement.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol


@dataclass(frozen=True)
class User:
    id: str
    identity: str
    password_hash: str
    display_name: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class Message:
    user_id: Optional[str]
    role: str
    text: str
    timestamp: datetime

    def to_dict(self) -> dict:
        return {
            "role": self.role,
            "text": self.text,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class MemoryEntry:
    user_id: str
    key: str
    value: str
    updated_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "value": self.value,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }


class CredentialStore(Protocol):
    def create_user(self, identity: str, password_hash: str, display_name: Optional[str]) -> User:
        """Insert a user; raises ConflictError if the identity exists."""

    def get_by_identity(self, identity: str) -> Optional[User]: ...

    def get_by_id(self, user_id: str) -> Optional[User]: ...


class ConversationStore(Protocol):
    def append(self, user_id: Optional[str], role: str, text: str) -> Message: ...

    def recent(self, user_id: str, limit: int) -> list[Message]:
        """Return the newest `limit` turns, oldest first."""


class MemoryStore(Protocol):
    def upsert(self, user_id: str, key: str, value: str) -> MemoryEntry: ...

    def get(self, user_id: str, key: str) -> Optional[MemoryEntry]: ...

    def clear(self, user_id: str) -> int: ...


@dataclass
class Storage:
    users: CredentialStore
    messages: ConversationStore
    memories: MemoryStore
    mode: str

    @property
    def persistent(self) -> bool:
        return self.mode == "persistent"
