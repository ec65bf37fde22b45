"""
Service container assembled once per process.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import httpx

import chatrelay.config as config
from chatrelay.security import TokenSigner
from chatrelay.storage import Storage, build_storage
from chatrelay.tables import load_canned_responses, load_commands
from chatrelay.services.auth_service import AuthService
from chatrelay.services.chat_service import ChatService
from chatrelay.services.memory_service import MemoryService
from chatrelay.services.message_service import MessageService
from chatrelay.services.model_gateway import ModelGateway, build_model_gateway
from chatrelay.services.rule_engine import build_rule_engine
from chatrelay.services.tool_service import ToolService


@dataclass
class Services:
    storage: Storage
    gateway: ModelGateway
    auth: AuthService
    memory: MemoryService
    messages: MessageService
    chat: ChatService
    tools: ToolService

    def status(self) -> dict:
        return {"ai": self.gateway.available, "storage": self.storage.mode}

    async def start(self) -> None:
        await self.gateway.start()

    async def close(self) -> None:
        await self.gateway.close()


def build_services(
    storage: Optional[Storage] = None,
    gateway: Optional[ModelGateway] = None,
    signer: Optional[TokenSigner] = None,
    commands: Optional[dict[str, str]] = None,
    canned_responses: Optional[dict[str, str]] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    anonymous_mode: Optional[str] = None,
) -> Services:
    storage = storage if storage is not None else build_storage()
    gateway = gateway if gateway is not None else build_model_gateway(transport)
    signer = signer or TokenSigner()
    commands = load_commands() if commands is None else commands
    canned_responses = load_canned_responses() if canned_responses is None else canned_responses

    memory = MemoryService(storage.memories)

    def status_provider() -> dict:
        return {"ai": gateway.available, "storage": storage.mode}

    engine = build_rule_engine(memory, commands, canned_responses, status_provider, anonymous_mode)
    config.logger.info(
        "Services built",
        extra={"storage": storage.mode, "ai": gateway.available, "commands": len(commands)},
    )
    return Services(
        storage=storage,
        gateway=gateway,
        auth=AuthService(storage.users, signer, persistent=storage.persistent),
        memory=memory,
        messages=MessageService(storage.messages),
        chat=ChatService(storage.messages, engine, gateway),
        tools=ToolService(storage.messages, gateway),
    )
