"""
Ordered fallback chain that answers a chat message without the model.

Rules run in fixed priority order: slash-command, canned response, memory
write, memory read. The first rule that produces an outcome wins; when none
does, `RuleEngine.evaluate` returns None and the caller defers to the model.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

import chatrelay.config as config
from chatrelay.context import Caller
from chatrelay.errors import StorageUnavailable, ValidationIssue
from chatrelay.services.memory_service import MemoryService
from chatrelay.validators import normalize_phrase

COMMAND_MARKER = "/"

SOURCE_COMMAND = "command"
SOURCE_CANNED = "canned"
SOURCE_MEMORY_WRITE = "memory_write"
SOURCE_MEMORY_READ = "memory_read"
SOURCE_MODEL = "model"

ABOUT_TEXT = (
    f"{config.SERVICE_NAME} {config.SERVICE_VERSION}: a chat assistant that answers from "
    "commands, saved memory and a generative AI model."
)
SIGN_IN_FOR_MEMORY = "Sign in to use memory features."

_REMEMBER_RE = re.compile(r"^remember\s+(?:that\s+)?(?:my\s+)?(?P<key>[^:]+?)\s*:\s*(?P<value>.*?)\s*$", re.I | re.S)
_RECALL_RE = re.compile(r"^(?:what\s+is|what's|whats|show)\s+(?:my\s+)?(?P<key>.+?)[\s?.!]*$", re.I | re.S)


@dataclass(frozen=True)
class RuleOutcome:
    text: str
    source: str
    ok: bool = True


class Rule(Protocol):
    name: str

    async def evaluate(self, message: str, caller: Caller) -> Optional[RuleOutcome]: ...


def parse_command(message: str) -> Optional[tuple[str, str]]:
    """Return (name, argument text) for a command-marked message."""
    stripped = message.strip()
    if not stripped.startswith(COMMAND_MARKER):
        return None
    body = stripped[len(COMMAND_MARKER):]
    parts = body.split(None, 1)
    name = parts[0].lower() if parts else ""
    args = parts[1] if len(parts) > 1 else ""
    return name, args


def parse_remember(message: str) -> Optional[tuple[str, str]]:
    match = _REMEMBER_RE.match(message.strip())
    if not match:
        return None
    key = match.group("key").strip()
    value = match.group("value").strip()
    if not key or not value:
        return None
    return key, value


def parse_recall(message: str) -> Optional[str]:
    match = _RECALL_RE.match(message.strip())
    if not match:
        return None
    key = match.group("key").strip()
    return key or None


class CommandRule:
    """Slash-commands: built-ins first, then the loaded command table."""

    name = SOURCE_COMMAND

    def __init__(
        self,
        commands: dict[str, str],
        memory: MemoryService,
        status_provider: Callable[[], dict],
    ):
        self.commands = dict(commands)
        self.memory = memory
        self.status_provider = status_provider
        self.builtins = {
            "help": self._help,
            "about": self._about,
            "status": self._status,
            "clear": self._clear,
        }

    async def evaluate(self, message: str, caller: Caller) -> Optional[RuleOutcome]:
        parsed = parse_command(message)
        if parsed is None:
            return None
        name, _ = parsed
        builtin = self.builtins.get(name)
        if builtin is not None:
            try:
                text = await builtin(caller)
            except StorageUnavailable as exc:
                return RuleOutcome(text=str(exc), source=self.name, ok=False)
        elif name in self.commands:
            text = self.commands[name]
        else:
            shown = f"{COMMAND_MARKER}{name}" if name else COMMAND_MARKER
            text = f"Unknown command: {shown}. Type {COMMAND_MARKER}help to see available commands."
        return RuleOutcome(text=text, source=self.name)

    async def _help(self, caller: Caller) -> str:
        names = list(self.builtins) + sorted(n for n in self.commands if n not in self.builtins)
        listing = ", ".join(f"{COMMAND_MARKER}{n}" for n in names)
        return (
            f"Available commands: {listing}. "
            'You can also say "remember <key>: <value>" and later ask "what is my <key>".'
        )

    async def _about(self, caller: Caller) -> str:
        return ABOUT_TEXT

    async def _status(self, caller: Caller) -> str:
        status = self.status_provider()
        ai = "available" if status.get("ai") else "unavailable"
        return f"AI: {ai}. Storage: {status.get('storage', 'unknown')}."

    async def _clear(self, caller: Caller) -> str:
        if caller.is_anonymous:
            return SIGN_IN_FOR_MEMORY
        deleted = await self.memory.forget_all(caller.user_id)
        return f"Cleared {deleted} saved memory entr{'y' if deleted == 1 else 'ies'}."


class CannedResponseRule:
    name = SOURCE_CANNED

    def __init__(self, responses: dict[str, str]):
        self.responses = {normalize_phrase(k): v for k, v in responses.items()}

    async def evaluate(self, message: str, caller: Caller) -> Optional[RuleOutcome]:
        reply = self.responses.get(normalize_phrase(message))
        if reply is None:
            return None
        return RuleOutcome(text=reply, source=self.name)


class _MemoryRule:
    name = ""

    def __init__(self, memory: MemoryService, anonymous_mode: str = "skip"):
        self.memory = memory
        self.anonymous_mode = anonymous_mode

    def _anonymous_outcome(self) -> Optional[RuleOutcome]:
        if self.anonymous_mode == "report":
            return RuleOutcome(text=str(StorageUnavailable()), source=self.name, ok=False)
        return None


class MemoryWriteRule(_MemoryRule):
    name = SOURCE_MEMORY_WRITE

    async def evaluate(self, message: str, caller: Caller) -> Optional[RuleOutcome]:
        parsed = parse_remember(message)
        if parsed is None:
            return None
        if caller.is_anonymous:
            return self._anonymous_outcome()
        key, value = parsed
        try:
            entry = await self.memory.remember(caller.user_id, key, value)
        except StorageUnavailable as exc:
            return RuleOutcome(text=str(exc), source=self.name, ok=False)
        except ValidationIssue as exc:
            return RuleOutcome(text=f"I couldn't save that: {exc}.", source=self.name)
        return RuleOutcome(text=f'Got it! I\'ll remember "{entry.key}".', source=self.name)


class MemoryReadRule(_MemoryRule):
    name = SOURCE_MEMORY_READ

    async def evaluate(self, message: str, caller: Caller) -> Optional[RuleOutcome]:
        key = parse_recall(message)
        if key is None:
            return None
        if caller.is_anonymous:
            return self._anonymous_outcome()
        try:
            entry = await self.memory.recall(caller.user_id, key)
        except StorageUnavailable:
            entry = None
        if entry is None:
            # a failed recall is not an answer; the model gets a chance
            return None
        return RuleOutcome(text=f"{entry.key}: {entry.value}", source=self.name)


class RuleEngine:
    def __init__(self, rules: list[Rule]):
        self.rules = list(rules)

    async def evaluate(self, message: str, caller: Caller) -> Optional[RuleOutcome]:
        for rule in self.rules:
            outcome = await rule.evaluate(message, caller)
            if outcome is not None:
                return outcome
        return None


def build_rule_engine(
    memory: MemoryService,
    commands: dict[str, str],
    canned_responses: dict[str, str],
    status_provider: Callable[[], dict],
    anonymous_mode: Optional[str] = None,
) -> RuleEngine:
    anonymous_mode = anonymous_mode or config.ANONYMOUS_MEMORY_MODE
    return RuleEngine([
        CommandRule(commands, memory, status_provider),
        CannedResponseRule(canned_responses),
        MemoryWriteRule(memory, anonymous_mode),
        MemoryReadRule(memory, anonymous_mode),
    ])
