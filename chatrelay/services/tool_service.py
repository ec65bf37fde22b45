"""
Transcript analysis tools (summarize, next steps, task extraction).
"""

from __future__ import annotations

import asyncio
from typing import Optional

import chatrelay.config as config
from chatrelay.context import Caller
from chatrelay.errors import NotFoundError, ValidationIssue
from chatrelay.prompts import MIN_TOOL_TURNS, TOOL_TEMPLATES
from chatrelay.services.chat_service import BOT_ROLE, ChatReply, normalize_history
from chatrelay.services.model_gateway import ModelGateway
from chatrelay.storage.base import ConversationStore

logger = config.logger


class ToolService:
    def __init__(self, messages: ConversationStore, gateway: ModelGateway):
        self.messages = messages
        self.gateway = gateway

    async def run(self, caller: Caller, kind: str, history: Optional[list]) -> ChatReply:
        template = TOOL_TEMPLATES.get(kind)
        if template is None:
            raise NotFoundError(f"Unknown tool: {kind}")
        turns = normalize_history(history) or []
        turns = [t for t in turns if t["text"].strip()]
        if len(turns) < MIN_TOOL_TURNS:
            raise ValidationIssue(
                f"history needs at least {MIN_TOOL_TURNS} turns",
                field="history",
                error_type="insufficient",
            )

        result = await self.gateway.analyze(template, turns)
        logger.info("tool_run", extra={"tool": kind, "turns": len(turns), "ok": result.ok})
        await asyncio.to_thread(self.messages.append, caller.user_id, BOT_ROLE, result.text)
        return ChatReply(text=result.text, source=f"tool:{kind}", ok=result.ok)
