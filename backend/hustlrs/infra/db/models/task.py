"""Task database model."""
from datetime import datetime

from sqlalchemy import BigInteger, CheckConstraint, Column, DateTime, Float, ForeignKey, Index, String, Text

from hustlrs.domain.tasks.models import TaskPriority, TaskStatus
from hustlrs.infra.db.base import Base, JSONType


class TaskModel(Base):
    """A job posted by a customer, optionally taken by a hustler."""

    __tablename__ = "tasks"

    id = Column(String, primary_key=True)
    title = Column(String(100), nullable=False)
    description = Column(Text, nullable=False)
    category = Column(String, nullable=False, index=True)
    budget = Column(BigInteger, nullable=False)  # smallest currency unit
    status = Column(String, nullable=False, default=TaskStatus.OPEN.value, index=True)
    priority = Column(String, nullable=False, default=TaskPriority.NORMAL.value)
    deadline = Column(DateTime, nullable=True)

    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    address = Column(String, nullable=True)
    city = Column(String, nullable=True)
    state = Column(String, nullable=True)
    images = Column(JSONType, nullable=True)  # list of URLs

    poster_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    hustler_id = Column(String, ForeignKey("users.id"), nullable=True, index=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint(
            "(status = 'OPEN' AND hustler_id IS NULL) OR (status <> 'OPEN' AND hustler_id IS NOT NULL)",
            name="ck_tasks_open_iff_unassigned",
        ),
        Index("ix_tasks_status_created_at", "status", "created_at"),
    )
