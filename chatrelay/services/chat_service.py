"""
Chat pipeline: context resolution, rule engine, model fallback, transcript.

Every processed prompt produces exactly one user turn followed by exactly one
bot turn, including when the model or a rule reports an error.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Optional

import chatrelay.config as config
from chatrelay.context import Caller
from chatrelay.services.model_gateway import ModelGateway
from chatrelay.services.rule_engine import SOURCE_MODEL, RuleEngine
from chatrelay.errors import ValidationIssue
from chatrelay.storage.base import ConversationStore
from chatrelay.validators import validate_required_text

logger = config.logger

USER_ROLE = "user"
BOT_ROLE = "bot"


@dataclass(frozen=True)
class ChatReply:
    text: str
    source: str
    ok: bool = True


def normalize_history(history: Optional[list]) -> Optional[list[dict]]:
    """Validate caller-supplied turns; keeps them verbatim apart from the cap."""
    if history is None:
        return None
    if not isinstance(history, list):
        raise ValidationIssue("history must be a list", field="history", error_type="invalid_type")
    turns = []
    for item in history[-config.MAX_HISTORY_ITEMS:]:
        if not isinstance(item, dict):
            raise ValidationIssue("history items must be objects", field="history", error_type="invalid_type")
        text = item.get("text", item.get("content"))
        if not isinstance(text, str):
            raise ValidationIssue("history items need a text field", field="history", error_type="required")
        role = item.get("role")
        turns.append({"role": role if isinstance(role, str) else USER_ROLE, "text": text})
    return turns


class ChatService:
    def __init__(
        self,
        messages: ConversationStore,
        engine: RuleEngine,
        gateway: ModelGateway,
        context_turns: Optional[int] = None,
    ):
        self.messages = messages
        self.engine = engine
        self.gateway = gateway
        self.context_turns = config.MODEL_CONTEXT_TURNS if context_turns is None else context_turns

    async def _prior_turns(self, caller: Caller, history: Optional[list[dict]]) -> list[dict]:
        # caller-supplied history and the stored window are never combined
        if history is not None:
            return history
        if caller.is_anonymous or self.context_turns <= 0:
            return []
        recent = await asyncio.to_thread(self.messages.recent, caller.user_id, self.context_turns)
        return [{"role": m.role, "text": m.text} for m in recent]

    async def handle(self, caller: Caller, prompt: Optional[str], history: Optional[list] = None) -> ChatReply:
        validate_required_text(prompt, "prompt", config.MAX_PROMPT_LENGTH)
        turns = normalize_history(history)

        prior = await self._prior_turns(caller, turns)
        await asyncio.to_thread(self.messages.append, caller.user_id, USER_ROLE, prompt)
        logger.info(
            "chat_request",
            extra={"actor": caller.actor, "prompt_length": len(prompt), "context_turns": len(prior)},
        )

        try:
            outcome = await self.engine.evaluate(prompt, caller)
            if outcome is not None:
                reply = ChatReply(text=outcome.text, source=outcome.source, ok=outcome.ok)
            else:
                result = await self.gateway.answer(prompt, prior)
                reply = ChatReply(text=result.text, source=SOURCE_MODEL, ok=result.ok)
        except Exception:
            logger.exception("chat_pipeline_failed")
            reply = ChatReply(text="Something went wrong while answering. Please try again.", source="error", ok=False)

        await asyncio.to_thread(self.messages.append, caller.user_id, BOT_ROLE, reply.text)
        return reply
