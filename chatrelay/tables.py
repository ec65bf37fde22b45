"""
Loading of the slash-command and canned-response tables.

Both tables are flat JSON objects mapping a name or phrase to a reply.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import chatrelay.config as config
from chatrelay.validators import normalize_phrase

logger = config.logger


def _data_dir() -> Path:
    return Path(__file__).with_name("data")


def _load_table(path: Path) -> dict[str, str]:
    if not path.exists():
        logger.warning("Rule table not found: %s (using empty table)", path)
        return {}
    try:
        payload = json.loads(path.read_text(encoding="utf-8-sig"))
    except (OSError, json.JSONDecodeError) as exc:
        raise RuntimeError(f"Unable to read rule table {path}: {exc}") from exc
    if not isinstance(payload, dict):
        raise RuntimeError(f"Rule table root must be an object: {path}")

    table = {}
    for key, value in payload.items():
        if not isinstance(value, str) or not str(key).strip():
            logger.warning("Skipping invalid rule table entry %r in %s", key, path)
            continue
        table[str(key)] = value
    return table


def load_commands(path: Optional[str] = None) -> dict[str, str]:
    """Command name (without marker, lower-case) -> reply."""
    source = Path(path or config.COMMANDS_PATH or _data_dir() / "commands.json")
    table = {
        name.strip().lstrip("/").lower(): reply
        for name, reply in _load_table(source).items()
    }
    logger.info("Loaded %d commands from %s", len(table), source)
    return table


def load_canned_responses(path: Optional[str] = None) -> dict[str, str]:
    """Normalized phrase -> reply returned verbatim."""
    source = Path(path or config.CANNED_RESPONSES_PATH or _data_dir() / "canned_responses.json")
    table = {normalize_phrase(phrase): reply for phrase, reply in _load_table(source).items()}
    logger.info("Loaded %d canned responses from %s", len(table), source)
    return table
