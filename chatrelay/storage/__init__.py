"""
Pluggable storage for users, conversation turns and key-value memory.
"""

from chatrelay.storage.base import (
    ConversationStore,
    CredentialStore,
    MemoryEntry,
    MemoryStore,
    Message,
    Storage,
    User,
)
from chatrelay.storage.factory import build_storage

__all__ = [
    "ConversationStore",
    "CredentialStore",
    "MemoryEntry",
    "MemoryStore",
    "Message",
    "Storage",
    "User",
    "build_storage",
]
