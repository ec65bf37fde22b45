"""
In-process storage: plain dicts that live as long as the process.
"""

from __future__ import annotations

import threading
import uuid
from collections import defaultdict
from datetime import datetime, timezone
from typing import Optional

from chatrelay.errors import ConflictError, StorageUnavailable
from chatrelay.storage.base import MemoryEntry, Message, Storage, User


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryCredentialStore:
    def __init__(self):
        self._lock = threading.Lock()
        self._by_identity: dict[str, User] = {}
        self._by_id: dict[str, User] = {}

    def create_user(self, identity: str, password_hash: str, display_name: Optional[str]) -> User:
        with self._lock:
            if identity in self._by_identity:
                raise ConflictError("User already exists")
            user = User(
                id=str(uuid.uuid4()),
                identity=identity,
                password_hash=password_hash,
                display_name=display_name,
                created_at=_utcnow(),
            )
            self._by_identity[identity] = user
            self._by_id[user.id] = user
            return user

    def get_by_identity(self, identity: str) -> Optional[User]:
        return self._by_identity.get(identity)

    def get_by_id(self, user_id: str) -> Optional[User]:
        return self._by_id.get(user_id)


class InMemoryConversationStore:
    def __init__(self):
        self._lock = threading.Lock()
        self._turns: dict[Optional[str], list[Message]] = defaultdict(list)

    def append(self, user_id: Optional[str], role: str, text: str) -> Message:
        message = Message(user_id=user_id, role=role, text=text, timestamp=_utcnow())
        with self._lock:
            self._turns[user_id].append(message)
        return message

    def recent(self, user_id: str, limit: int) -> list[Message]:
        if limit <= 0:
            return []
        with self._lock:
            return list(self._turns.get(user_id, [])[-limit:])


class InMemoryMemoryStore:
    def __init__(self):
        self._lock = threading.Lock()
        self._entries: dict[str, dict[str, MemoryEntry]] = defaultdict(dict)

    def upsert(self, user_id: str, key: str, value: str) -> MemoryEntry:
        entry = MemoryEntry(user_id=user_id, key=key, value=value, updated_at=_utcnow())
        with self._lock:
            self._entries[user_id][key] = entry
        return entry

    def get(self, user_id: str, key: str) -> Optional[MemoryEntry]:
        with self._lock:
            return self._entries.get(user_id, {}).get(key)

    def clear(self, user_id: str) -> int:
        with self._lock:
            removed = self._entries.pop(user_id, {})
        return len(removed)


class UnavailableMemoryStore:
    """Memory store used when key-value memory requires persistence that is absent."""

    def upsert(self, user_id: str, key: str, value: str) -> MemoryEntry:
        raise StorageUnavailable()

    def get(self, user_id: str, key: str) -> Optional[MemoryEntry]:
        raise StorageUnavailable()

    def clear(self, user_id: str) -> int:
        raise StorageUnavailable()


def build_in_memory_storage(memory_enabled: bool = True) -> Storage:
    return Storage(
        users=InMemoryCredentialStore(),
        messages=InMemoryConversationStore(),
        memories=InMemoryMemoryStore() if memory_enabled else UnavailableMemoryStore(),
        mode="memory",
    )
