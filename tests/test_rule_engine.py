import asyncio

from chatrelay.context import Caller
from chatrelay.errors import StorageUnavailable
from chatrelay.services.memory_service import MemoryService
from chatrelay.services.rule_engine import (
    SOURCE_CANNED,
    SOURCE_COMMAND,
    SOURCE_MEMORY_READ,
    SOURCE_MEMORY_WRITE,
    build_rule_engine,
    parse_command,
    parse_recall,
    parse_remember,
)
from chatrelay.storage.memory import InMemoryMemoryStore, UnavailableMemoryStore

USER = Caller(user_id="user-1", identity="a@x.com")
ANONYMOUS_CALLER = Caller()


def _engine(store=None, anonymous_mode="skip", canned=None, commands=None):
    memory = MemoryService(store or InMemoryMemoryStore())
    return build_rule_engine(
        memory,
        commands if commands is not None else {"joke": "A joke."},
        canned if canned is not None else {"Hello": "Hi!"},
        lambda: {"ai": True, "storage": "memory"},
        anonymous_mode,
    )


def _evaluate(engine, message, caller=USER):
    return asyncio.run(engine.evaluate(message, caller))


def test_parsers():
    assert parse_command("  /Help me") == ("help", "me")
    assert parse_command("help") is None
    assert parse_remember("remember my name: Ada") == ("name", "Ada")
    assert parse_remember("Remember that favourite color : blue ") == ("favourite color", "blue")
    assert parse_remember("remember name:   ") is None
    assert parse_recall("What is my name?") == "name"
    assert parse_recall("what's favourite color") == "favourite color"
    assert parse_recall("tell me a story") is None


def test_builtin_and_table_commands():
    engine = _engine()

    help_outcome = _evaluate(engine, "/help")
    assert help_outcome.source == SOURCE_COMMAND
    assert "/joke" in help_outcome.text
    assert _evaluate(engine, "/JOKE").text == "A joke."
    assert _evaluate(engine, "/status").text == "AI: available. Storage: memory."


def test_unknown_command_does_not_fall_through():
    outcome = _evaluate(_engine(), "/dance now")

    assert outcome.source == SOURCE_COMMAND
    assert outcome.text == "Unknown command: /dance. Type /help to see available commands."


def test_command_wins_over_matching_canned_response():
    engine = _engine(canned={"/joke": "canned", "/nope": "canned"})

    assert _evaluate(engine, "/joke").text == "A joke."
    assert _evaluate(engine, "/nope").source == SOURCE_COMMAND


def test_canned_response_is_normalized_and_verbatim():
    engine = _engine(canned={"Good   Morning": "  Morning!  "})

    outcome = _evaluate(engine, "  good morning ")

    assert outcome.source == SOURCE_CANNED
    assert outcome.text == "  Morning!  "


def test_remember_then_recall_last_write_wins():
    engine = _engine()

    first = _evaluate(engine, "remember my name: Ada")
    _evaluate(engine, "remember name: Grace")
    recalled = _evaluate(engine, "what is my name?")

    assert first.source == SOURCE_MEMORY_WRITE
    assert first.text == 'Got it! I\'ll remember "name".'
    assert recalled.source == SOURCE_MEMORY_READ
    assert recalled.text == "name: Grace"


def test_recall_miss_falls_through():
    assert _evaluate(_engine(), "what is my name") is None


def test_memory_is_per_user():
    engine = _engine()
    _evaluate(engine, "remember city: Oslo")

    other = Caller(user_id="user-2", identity="b@x.com")
    assert _evaluate(engine, "what is my city", other) is None


def test_anonymous_memory_skip_and_report_modes():
    skip = _engine(anonymous_mode="skip")
    report = _engine(anonymous_mode="report")

    assert _evaluate(skip, "remember name: Ada", ANONYMOUS_CALLER) is None
    assert _evaluate(skip, "what is my name", ANONYMOUS_CALLER) is None
    reported = _evaluate(report, "remember name: Ada", ANONYMOUS_CALLER)
    assert reported.text == str(StorageUnavailable())
    assert not reported.ok


def test_unavailable_store_reports_configuration_error_as_failure():
    engine = _engine(store=UnavailableMemoryStore())

    saved = _evaluate(engine, "remember name: Ada")
    cleared = _evaluate(engine, "/clear")

    assert saved.text == str(StorageUnavailable())
    assert not saved.ok
    assert cleared.text == str(StorageUnavailable())
    assert not cleared.ok
    assert _evaluate(engine, "/help").ok


def test_unreadable_store_counts_as_recall_miss():
    engine = _engine(store=UnavailableMemoryStore())

    assert _evaluate(engine, "What is the capital of France?") is None


def test_clear_command_removes_memory_entries():
    engine = _engine()
    _evaluate(engine, "remember a: 1")
    _evaluate(engine, "remember b: 2")

    assert _evaluate(engine, "/clear").text == "Cleared 2 saved memory entries."
    assert _evaluate(engine, "what is a") is None
    assert _evaluate(engine, "/clear", ANONYMOUS_CALLER).text == "Sign in to use memory features."


def test_plain_message_defers_to_model():
    assert _evaluate(_engine(), "Explain recursion") is None
