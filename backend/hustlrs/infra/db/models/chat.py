"""Chat database models: one chat per task, its two members, and messages."""
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint

from hustlrs.domain.chat.models import MessageType
from hustlrs.infra.db.base import Base


class ChatModel(Base):
    """Per-task chat between poster and hustler."""

    __tablename__ = "chats"

    id = Column(String, primary_key=True)
    task_id = Column(String, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, unique=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False)  # bumped on every message


class ChatMemberModel(Base):
    """Chat membership."""

    __tablename__ = "chat_members"

    chat_id = Column(String, ForeignKey("chats.id", ondelete="CASCADE"), primary_key=True)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    joined_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (Index("ix_chat_members_user_id", "user_id"),)


class MessageModel(Base):
    """Chat message. Immutable apart from is_read."""

    __tablename__ = "messages"

    id = Column(String, primary_key=True)
    chat_id = Column(String, ForeignKey("chats.id", ondelete="CASCADE"), nullable=False, index=True)
    sender_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    content = Column(Text, nullable=False, default="")
    type = Column(String, nullable=False, default=MessageType.TEXT.value)
    image_url = Column(String, nullable=True)
    is_read = Column(Boolean, default=False, nullable=False)
    sequence = Column(Integer, nullable=False)  # per-chat increment, tiebreak for created_at
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("chat_id", "sequence", name="uq_messages_chat_sequence"),
    )
