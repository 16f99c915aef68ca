"""Notification database model."""
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, String, Text

from hustlrs.infra.db.base import Base


class NotificationModel(Base):
    """User notification: task assignment, status changes, messages, reviews."""

    __tablename__ = "notifications"

    id = Column(String, primary_key=True)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String, nullable=False)
    title = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    # Lookup-only back references; no FK so deleting a task keeps the inbox intact.
    task_id = Column(String, nullable=True)
    chat_id = Column(String, nullable=True)
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (Index("ix_notifications_user_read", "user_id", "is_read"),)
