"""
Storage selection, made once at process start.
"""

from __future__ import annotations

from typing import Optional

import chatrelay.config as config
from chatrelay.db import init_db
from chatrelay.storage.base import Storage
from chatrelay.storage.memory import build_in_memory_storage
from chatrelay.storage.sql import build_sql_storage


def build_storage(database_url: Optional[str] = None) -> Storage:
    """Return SQL storage when a connection string is configured, else in-process tables."""
    database_url = database_url if database_url is not None else config.DATABASE_URL
    if database_url:
        init_db(database_url)
        config.logger.info("Storage mode: persistent")
        return build_sql_storage()

    if not config.EPHEMERAL_MEMORY_ENABLED:
        config.logger.warning("No DATABASE_URL and EPHEMERAL_MEMORY_ENABLED=false; memory features disabled")
    config.logger.info("Storage mode: memory (data is discarded at process exit)")
    return build_in_memory_storage(memory_enabled=config.EPHEMERAL_MEMORY_ENABLED)
