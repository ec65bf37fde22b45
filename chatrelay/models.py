"""
chatrelay database models
SQLAlchemy schema for the persistent storage mode
"""

from datetime import datetime, timezone
import uuid

from sqlalchemy import (
    Column, Integer, String, Text, DateTime, ForeignKey, CheckConstraint, Index, UniqueConstraint
)
from sqlalchemy.orm import declarative_base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _uuid_default() -> str:
    return str(uuid.uuid4())


Base = declarative_base()

MESSAGE_ROLES = ("user", "bot")


# =============================================================================
# Users
# =============================================================================

class UserRecord(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_uuid_default)
    identity = Column(String(254), nullable=False)
    display_name = Column(String(100))
    password_hash = Column(String(100), nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("identity", name="uq_users_identity"),
    )


# =============================================================================
# Conversation log
# =============================================================================

class MessageRecord(Base):
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=True)  # null = anonymous
    role = Column(String(10), nullable=False)
    text = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint(
            "role IN (" + ",".join(f"'{role}'" for role in MESSAGE_ROLES) + ")",
            name="ck_messages_role",
        ),
        Index("ix_messages_user_created", "user_id", "created_at"),
    )


# =============================================================================
# Key-value memory
# =============================================================================

class MemoryRecord(Base):
    __tablename__ = "memory_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    key = Column(String(100), nullable=False)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "key", name="uq_memory_entries_user_key"),
    )
