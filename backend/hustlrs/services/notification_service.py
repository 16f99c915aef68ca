"""
Notification dispatcher: one place for inbox rows, WebSocket and push.

notify() only adds the row to the caller's transaction. Realtime and push
delivery for everything notified so far is handed to background delivery by
dispatch_pending(), which the caller invokes after its commit. A slow or
failing push backend therefore never blocks or rolls back the write.
"""
import logging
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from hustlrs.domain.common.errors import NotFoundError
from hustlrs.domain.notifications.models import NotificationType
from hustlrs.infra.db.models.notification import NotificationModel
from hustlrs.infra.db.repositories.notification_repo import NotificationRepository
from hustlrs.infra.push.sender import send_push_to_user
from hustlrs.infra.realtime.delivery import delivery
from hustlrs.infra.realtime.gateway import gateway
from hustlrs.services.serializers import notification_to_dict
from hustlrs.services.store import unit_of_work

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.repo = NotificationRepository(session)
        self._pending: list[dict[str, Any]] = []

    async def notify(
        self,
        user_id: str,
        type: NotificationType,
        title: str,
        message: str,
        *,
        task_id: Optional[str] = None,
        chat_id: Optional[str] = None,
    ) -> NotificationModel:
        notif = await self.repo.create(
            user_id=user_id,
            type=type.value,
            title=title,
            message=message,
            task_id=task_id,
            chat_id=chat_id,
        )
        self._pending.append({"user_id": user_id, **notification_to_dict(notif)})
        return notif

    def discard_pending(self) -> None:
        self._pending.clear()

    def dispatch_pending(self) -> int:
        """Queue realtime + push delivery for notifications created since the last call."""
        pending, self._pending = self._pending, []
        for payload in pending:
            user_id = payload.pop("user_id")
            delivery.spawn(
                gateway.emit_to_user(user_id, "notification.new", payload),
                label=f"notification.new {payload['id']} -> {user_id}",
            )
            delivery.spawn(
                send_push_to_user(
                    user_id,
                    payload["title"],
                    payload["message"],
                    {
                        "notificationId": payload["id"],
                        "type": payload["type"],
                        "taskId": payload["task_id"],
                        "chatId": payload["chat_id"],
                    },
                ),
                label=f"push {payload['id']} -> {user_id}",
            )
        return len(pending)

    # ---- Read side / owner mutations ----
    async def list_for_user(
        self,
        user_id: str,
        *,
        unread_only: bool = False,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[NotificationModel], int, int]:
        """(page newest first, total matching, unread count)."""
        items = await self.repo.list_by_user(user_id, limit=limit, offset=offset, unread_only=unread_only)
        total = await self.repo.count(user_id, unread_only=unread_only)
        unread = await self.repo.count_unread(user_id)
        return items, total, unread

    async def unread_count(self, user_id: str) -> int:
        return await self.repo.count_unread(user_id)

    async def mark_read(self, notification_id: str, user_id: str) -> None:
        """Another user's notification is reported as missing."""
        async with unit_of_work(self.session, "mark notification read"):
            if not await self.repo.mark_read(notification_id, user_id):
                raise NotFoundError("Notification", notification_id)
            await self.session.commit()

    async def mark_all_read(self, user_id: str) -> int:
        async with unit_of_work(self.session, "mark notifications read"):
            count = await self.repo.mark_all_read(user_id)
            await self.session.commit()
        return count

    async def delete(self, notification_id: str, user_id: str) -> None:
        async with unit_of_work(self.session, "delete notification"):
            if not await self.repo.delete_for_user(notification_id, user_id):
                raise NotFoundError("Notification", notification_id)
            await self.session.commit()
