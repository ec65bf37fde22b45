"""
Shared configuration for chatrelay.
"""

from __future__ import annotations

import logging
import os
import secrets

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("chatrelay")


def _get_bool(env_name: str, default: bool) -> bool:
    value = os.environ.get(env_name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int(env_name: str, default: int) -> int:
    value = os.environ.get(env_name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _get_float(env_name: str, default: float) -> float:
    value = os.environ.get(env_name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


SERVICE_NAME = "chatrelay"
SERVICE_VERSION = "0.1.0"
PORT = _get_int("PORT", 3000)

# External model settings
GEMINI_API_KEY = os.environ.get("GEMINI_API_KEY") or None
GEMINI_MODEL = os.environ.get("GEMINI_MODEL", "gemini-2.0-flash").strip()
GEMINI_BASE_URL = os.environ.get(
    "GEMINI_BASE_URL", "https://generativelanguage.googleapis.com"
).rstrip("/")
MODEL_TEMPERATURE = _get_float("MODEL_TEMPERATURE", 0.7)
MODEL_MAX_OUTPUT_TOKENS = _get_int("MODEL_MAX_OUTPUT_TOKENS", 1000)
MODEL_TOP_P = _get_float("MODEL_TOP_P", 0.95)
MODEL_TOP_K = _get_int("MODEL_TOP_K", 40)
MODEL_TIMEOUT_SECONDS = _get_float("MODEL_TIMEOUT_SECONDS", 30.0)
MODEL_CONTEXT_TURNS = _get_int("MODEL_CONTEXT_TURNS", 4)
MODEL_SYSTEM_INSTRUCTION = os.environ.get("MODEL_SYSTEM_INSTRUCTION") or None

# Token settings
_JWT_SECRET_ENV = os.environ.get("JWT_SECRET") or None
JWT_SECRET = _JWT_SECRET_ENV or secrets.token_urlsafe(48)
JWT_ALGORITHM = os.environ.get("JWT_ALGORITHM", "HS256").strip()
TOKEN_TTL_HOURS = _get_int("TOKEN_TTL_HOURS", 24)
BCRYPT_ROUNDS = _get_int("BCRYPT_ROUNDS", 12)

# Storage settings
DATABASE_URL = os.environ.get("DATABASE_URL") or None
AUTO_MIGRATE_ON_STARTUP = _get_bool("AUTO_MIGRATE_ON_STARTUP", True)
EPHEMERAL_MEMORY_ENABLED = _get_bool("EPHEMERAL_MEMORY_ENABLED", True)
ANONYMOUS_MEMORY_MODE = os.environ.get("ANONYMOUS_MEMORY_MODE", "skip").strip().lower()

# Rule tables
COMMANDS_PATH = os.environ.get("COMMANDS_PATH") or None
CANNED_RESPONSES_PATH = os.environ.get("CANNED_RESPONSES_PATH") or None

# Request/input limits
MESSAGES_DEFAULT_LIMIT = _get_int("MESSAGES_DEFAULT_LIMIT", 50)
MESSAGES_MAX_LIMIT = _get_int("MESSAGES_MAX_LIMIT", 100)
MAX_PROMPT_LENGTH = _get_int("MAX_PROMPT_LENGTH", 8000)
MAX_HISTORY_ITEMS = _get_int("MAX_HISTORY_ITEMS", 50)
MAX_MEMORY_KEY_LENGTH = _get_int("MAX_MEMORY_KEY_LENGTH", 100)
MAX_MEMORY_VALUE_LENGTH = _get_int("MAX_MEMORY_VALUE_LENGTH", 2000)
MAX_IDENTITY_LENGTH = _get_int("MAX_IDENTITY_LENGTH", 254)
MAX_DISPLAY_NAME_LENGTH = _get_int("MAX_DISPLAY_NAME_LENGTH", 100)
# bcrypt only looks at the first 72 bytes
MAX_PASSWORD_LENGTH = _get_int("MAX_PASSWORD_LENGTH", 72)

ANONYMOUS_MEMORY_MODES = {"skip", "report"}


def storage_mode() -> str:
    return "persistent" if DATABASE_URL else "memory"


def validate_and_prepare_config() -> None:
    """Validate configuration at startup."""
    errors = []
    if ANONYMOUS_MEMORY_MODE not in ANONYMOUS_MEMORY_MODES:
        errors.append("ANONYMOUS_MEMORY_MODE must be 'skip' or 'report'")
    if BCRYPT_ROUNDS < 4 or BCRYPT_ROUNDS > 31:
        errors.append("BCRYPT_ROUNDS must be between 4 and 31")
    if TOKEN_TTL_HOURS <= 0:
        errors.append("TOKEN_TTL_HOURS must be positive")
    if MODEL_TIMEOUT_SECONDS <= 0:
        errors.append("MODEL_TIMEOUT_SECONDS must be positive")
    if MODEL_CONTEXT_TURNS < 0:
        errors.append("MODEL_CONTEXT_TURNS must not be negative")
    if MESSAGES_DEFAULT_LIMIT <= 0 or MESSAGES_DEFAULT_LIMIT > MESSAGES_MAX_LIMIT:
        errors.append("MESSAGES_DEFAULT_LIMIT must be between 1 and MESSAGES_MAX_LIMIT")
    if not JWT_ALGORITHM.startswith("HS"):
        errors.append("JWT_ALGORITHM must be an HMAC algorithm (HS256/HS384/HS512)")

    if errors:
        raise RuntimeError("Configuration invalid: " + "; ".join(errors))

    if _JWT_SECRET_ENV is None:
        logger.warning("JWT_SECRET not set; using a per-process secret, tokens will not survive restarts")
    logger.info(
        "Configuration loaded",
        extra={
            "storage": storage_mode(),
            "model": GEMINI_MODEL,
            "api_key": "set" if GEMINI_API_KEY else "not set",
        },
    )
