"""
Key-value memory services shared by the chat rules and the memory API.
"""

from __future__ import annotations

import asyncio
from typing import Optional

import chatrelay.config as config
from chatrelay.errors import AuthError, ValidationIssue
from chatrelay.storage.base import MemoryEntry, MemoryStore
from chatrelay.validators import (
    normalize_memory_key,
    validate_required_text,
)

logger = config.logger


def _require_user(user_id: Optional[str]) -> str:
    if not user_id:
        raise AuthError("Authentication required for memory")
    return user_id


class MemoryService:
    def __init__(self, store: MemoryStore):
        self.store = store

    async def remember(self, user_id: Optional[str], key: str, value: str) -> MemoryEntry:
        """Upsert one entry; the latest write for a key wins."""
        user_id = _require_user(user_id)
        validate_required_text(key, "key", config.MAX_MEMORY_KEY_LENGTH)
        validate_required_text(value, "value", config.MAX_MEMORY_VALUE_LENGTH)
        normalized = normalize_memory_key(key)
        entry = await asyncio.to_thread(self.store.upsert, user_id, normalized, value.strip())
        logger.info("memory_upsert", extra={"user_id": user_id, "key": normalized})
        return entry

    async def recall(self, user_id: Optional[str], key: str) -> Optional[MemoryEntry]:
        user_id = _require_user(user_id)
        if not isinstance(key, str) or not key.strip():
            raise ValidationIssue("key is required", field="key", error_type="required")
        normalized = normalize_memory_key(key)
        if len(normalized) > config.MAX_MEMORY_KEY_LENGTH:
            return None
        return await asyncio.to_thread(self.store.get, user_id, normalized)

    async def forget_all(self, user_id: Optional[str]) -> int:
        user_id = _require_user(user_id)
        deleted = await asyncio.to_thread(self.store.clear, user_id)
        logger.info("memory_cleared", extra={"user_id": user_id, "deleted": deleted})
        return deleted
