"""Notification repository."""
from datetime import datetime
from typing import List, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from hustlrs.domain.common.types import generate_id
from hustlrs.infra.db.models.notification import NotificationModel


class NotificationRepository:
    """Notification repository. Every query is scoped to the owning user."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        user_id: str,
        type: str,
        title: str,
        message: str,
        task_id: Optional[str] = None,
        chat_id: Optional[str] = None,
    ) -> NotificationModel:
        model = NotificationModel(
            id=generate_id(),
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            task_id=task_id,
            chat_id=chat_id,
            is_read=False,
            created_at=datetime.utcnow(),
        )
        self.session.add(model)
        await self.session.flush()
        return model

    async def list_by_user(
        self,
        user_id: str,
        limit: int = 20,
        offset: int = 0,
        unread_only: bool = False,
    ) -> List[NotificationModel]:
        """Newest first."""
        q = select(NotificationModel).where(NotificationModel.user_id == user_id)
        if unread_only:
            q = q.where(NotificationModel.is_read.is_(False))
        q = q.order_by(NotificationModel.created_at.desc(), NotificationModel.id).limit(limit).offset(offset)
        result = await self.session.execute(q)
        return list(result.scalars().all())

    async def count(self, user_id: str, unread_only: bool = False) -> int:
        q = select(func.count()).select_from(NotificationModel).where(NotificationModel.user_id == user_id)
        if unread_only:
            q = q.where(NotificationModel.is_read.is_(False))
        result = await self.session.execute(q)
        return result.scalar() or 0

    async def count_unread(self, user_id: str) -> int:
        return await self.count(user_id, unread_only=True)

    async def get(self, notification_id: str, user_id: str) -> Optional[NotificationModel]:
        result = await self.session.execute(
            select(NotificationModel).where(
                NotificationModel.id == notification_id,
                NotificationModel.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def mark_read(self, notification_id: str, user_id: str) -> bool:
        """True if the notification exists and belongs to the user."""
        result = await self.session.execute(
            update(NotificationModel)
            .where(
                NotificationModel.id == notification_id,
                NotificationModel.user_id == user_id,
            )
            .values(is_read=True)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    async def mark_all_read(self, user_id: str) -> int:
        result = await self.session.execute(
            update(NotificationModel)
            .where(NotificationModel.user_id == user_id, NotificationModel.is_read.is_(False))
            .values(is_read=True)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    async def delete_for_user(self, notification_id: str, user_id: str) -> bool:
        result = await self.session.execute(
            delete(NotificationModel)
            .where(
                NotificationModel.id == notification_id,
                NotificationModel.user_id == user_id,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0
