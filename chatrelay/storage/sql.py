"""
Persistent storage backed by SQLAlchemy sessions.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Callable, Iterator, Optional

from sqlalchemy import desc
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

import chatrelay.config as config
from chatrelay.db import DB
from chatrelay.errors import ConflictError, StorageError
from chatrelay.models import MemoryRecord, MessageRecord, UserRecord
from chatrelay.storage.base import MemoryEntry, Message, Storage, User

logger = config.logger


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_user(row: UserRecord) -> User:
    return User(
        id=row.id,
        identity=row.identity,
        password_hash=row.password_hash,
        display_name=row.display_name,
        created_at=row.created_at,
    )


def _to_message(row: MessageRecord) -> Message:
    return Message(user_id=row.user_id, role=row.role, text=row.text, timestamp=row.created_at)


def _to_entry(row: MemoryRecord) -> MemoryEntry:
    return MemoryEntry(user_id=row.user_id, key=row.key, value=row.value, updated_at=row.updated_at)


class _SessionScope:
    def __init__(self, session_factory: Optional[Callable] = None):
        self._session_factory = session_factory

    @contextmanager
    def session(self) -> Iterator:
        factory = self._session_factory or DB.SessionLocal
        if factory is None:
            raise StorageError("Database not initialized - SessionLocal is None")
        db = factory()
        try:
            yield db
        except (ConflictError, StorageError):
            db.rollback()
            raise
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("storage_error", extra={"error_type": type(exc).__name__})
            raise StorageError("Storage operation failed") from exc
        finally:
            db.close()


class SqlCredentialStore(_SessionScope):
    def create_user(self, identity: str, password_hash: str, display_name: Optional[str]) -> User:
        with self.session() as db:
            row = UserRecord(
                identity=identity,
                password_hash=password_hash,
                display_name=display_name,
                created_at=_utcnow(),
            )
            db.add(row)
            try:
                db.commit()
            except IntegrityError as exc:
                raise ConflictError("User already exists") from exc
            return _to_user(row)

    def get_by_identity(self, identity: str) -> Optional[User]:
        with self.session() as db:
            row = db.query(UserRecord).filter(UserRecord.identity == identity).first()
            return _to_user(row) if row else None

    def get_by_id(self, user_id: str) -> Optional[User]:
        with self.session() as db:
            row = db.get(UserRecord, user_id)
            return _to_user(row) if row else None


class SqlConversationStore(_SessionScope):
    def append(self, user_id: Optional[str], role: str, text: str) -> Message:
        with self.session() as db:
            row = MessageRecord(user_id=user_id, role=role, text=text, created_at=_utcnow())
            db.add(row)
            db.commit()
            return _to_message(row)

    def recent(self, user_id: str, limit: int) -> list[Message]:
        if limit <= 0:
            return []
        with self.session() as db:
            rows = (
                db.query(MessageRecord)
                .filter(MessageRecord.user_id == user_id)
                .order_by(desc(MessageRecord.created_at), desc(MessageRecord.id))
                .limit(limit)
                .all()
            )
            return [_to_message(row) for row in reversed(rows)]


class SqlMemoryStore(_SessionScope):
    def upsert(self, user_id: str, key: str, value: str) -> MemoryEntry:
        with self.session() as db:
            # A concurrent insert of the same (user, key) trips the unique
            # constraint; the second pass turns it into an update.
            for attempt in range(2):
                row = (
                    db.query(MemoryRecord)
                    .filter(MemoryRecord.user_id == user_id)
                    .filter(MemoryRecord.key == key)
                    .first()
                )
                if row:
                    row.value = value
                    row.updated_at = _utcnow()
                else:
                    row = MemoryRecord(user_id=user_id, key=key, value=value, updated_at=_utcnow())
                    db.add(row)
                try:
                    db.commit()
                    return _to_entry(row)
                except IntegrityError as exc:
                    db.rollback()
                    if attempt:
                        raise StorageError("Memory upsert failed") from exc
            raise StorageError("Memory upsert failed")

    def get(self, user_id: str, key: str) -> Optional[MemoryEntry]:
        with self.session() as db:
            row = (
                db.query(MemoryRecord)
                .filter(MemoryRecord.user_id == user_id)
                .filter(MemoryRecord.key == key)
                .first()
            )
            return _to_entry(row) if row else None

    def clear(self, user_id: str) -> int:
        with self.session() as db:
            deleted = db.query(MemoryRecord).filter(MemoryRecord.user_id == user_id).delete()
            db.commit()
            return int(deleted or 0)


def build_sql_storage(session_factory: Optional[Callable] = None) -> Storage:
    return Storage(
        users=SqlCredentialStore(session_factory),
        messages=SqlConversationStore(session_factory),
        memories=SqlMemoryStore(session_factory),
        mode="persistent",
    )
