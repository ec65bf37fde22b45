"""
Conversation history reads.
"""

from __future__ import annotations

import asyncio
from typing import Optional

import chatrelay.config as config
from chatrelay.context import Caller
from chatrelay.errors import AuthError
from chatrelay.storage.base import ConversationStore, Message
from chatrelay.validators import validate_limit


class MessageService:
    def __init__(self, messages: ConversationStore):
        self.messages = messages

    async def history(self, caller: Caller, limit: Optional[int] = None) -> list[Message]:
        if caller.is_anonymous:
            raise AuthError("Authentication required")
        limit = config.MESSAGES_DEFAULT_LIMIT if limit is None else limit
        validate_limit(limit, "n", config.MESSAGES_MAX_LIMIT)
        return await asyncio.to_thread(self.messages.recent, caller.user_id, limit)
