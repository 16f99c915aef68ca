"""Chat coordinator: per-task chats, membership, and message ordering."""
import logging
from typing import Any, Iterable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from hustlrs.domain.chat.models import validate_message
from hustlrs.domain.common.errors import Forbidden, ValidationError
from hustlrs.domain.notifications.models import NotificationType
from hustlrs.infra.db.models.chat import ChatModel, MessageModel
from hustlrs.infra.db.models.user import UserModel
from hustlrs.infra.db.repositories.chat_repo import ChatRepository
from hustlrs.infra.db.repositories.task_repo import TaskRepository
from hustlrs.infra.db.repositories.user_repo import UserRepository
from hustlrs.infra.realtime.delivery import delivery
from hustlrs.infra.realtime.gateway import gateway
from hustlrs.services.notification_service import NotificationDispatcher
from hustlrs.services.serializers import message_to_dict, task_to_dict, user_summary
from hustlrs.services.store import unit_of_work
from hustlrs.settings import settings

logger = logging.getLogger(__name__)

NOT_A_MEMBER = "You are not a member of this chat"


class ChatCoordinator:
    def __init__(self, session: AsyncSession, notifications: Optional[NotificationDispatcher] = None):
        self.session = session
        self.chats = ChatRepository(session)
        self.tasks = TaskRepository(session)
        self.users = UserRepository(session)
        self.notifications = notifications or NotificationDispatcher(session)

    async def _require_member(self, chat_id: str, user_id: str) -> None:
        # A missing chat and a foreign chat look the same to the caller.
        if not await self.chats.is_member(chat_id, user_id):
            raise Forbidden(NOT_A_MEMBER)

    async def ensure_chat(self, task_id: str, member_ids: Iterable[str]) -> ChatModel:
        """Return the task's chat, creating it with de-duplicated members if absent.

        Flushes only; the caller's transaction decides whether it sticks.
        """
        existing = await self.chats.get_by_task(task_id)
        if existing is not None:
            return existing
        chat = await self.chats.create_chat(task_id)
        await self.chats.add_members(chat.id, list(dict.fromkeys(m for m in member_ids if m)))
        return chat

    async def post_message(
        self,
        chat_id: str,
        sender: UserModel,
        content: Optional[str],
        message_type: str = "TEXT",
        image_url: Optional[str] = None,
    ) -> MessageModel:
        await self._require_member(chat_id, sender.id)
        text, mtype = validate_message(
            content, message_type, image_url, max_length=settings.max_message_length
        )
        chat = await self.chats.get(chat_id)

        async with unit_of_work(self.session, "send message", on_rollback=self.notifications.discard_pending):
            msg = await self.chats.append_message(chat_id, sender.id, text, mtype.value, image_url)
            await self.chats.touch(chat_id, msg.created_at)
            for member_id in await self.chats.list_member_ids(chat_id):
                if member_id == sender.id:
                    continue
                await self.notifications.notify(
                    member_id,
                    NotificationType.NEW_MESSAGE,
                    "New Message",
                    f"{sender.first_name} sent you a message",
                    task_id=chat.task_id,
                    chat_id=chat_id,
                )
            await self.session.commit()

        logger.info("Message %s (#%d) posted in chat %s by %s", msg.id, msg.sequence, chat_id, sender.id)
        self.notifications.dispatch_pending()
        # Full membership, sender included, so clients can reconcile optimistic sends.
        delivery.spawn(
            gateway.broadcast_chat(chat_id, "new_message", message_to_dict(msg, sender)),
            label=f"new_message {msg.id} -> chat {chat_id}",
        )
        return msg

    async def list_messages(
        self,
        chat_id: str,
        requester_id: str,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[MessageModel], int]:
        """Page of messages in ascending order; offset 0 is the most recent page."""
        await self._require_member(chat_id, requester_id)
        if not 1 <= limit <= settings.message_page_size_max:
            raise ValidationError(f"limit must be between 1 and {settings.message_page_size_max}")
        if offset < 0:
            raise ValidationError("offset must not be negative")
        newest_first = await self.chats.list_messages(chat_id, limit=limit, offset=offset)
        total = await self.chats.count_messages(chat_id)
        return list(reversed(newest_first)), total

    async def mark_read(self, chat_id: str, requester_id: str) -> int:
        await self._require_member(chat_id, requester_id)
        async with unit_of_work(self.session, "mark messages read"):
            count = await self.chats.mark_read_for(chat_id, requester_id)
            await self.session.commit()
        return count

    async def list_chats(self, user_id: str) -> list[dict[str, Any]]:
        """Chats for the user, latest activity first, with task, other member, last message and unread count."""
        chats = await self.chats.list_for_user(user_id)
        out = []
        for chat in chats:
            task = await self.tasks.get(chat.task_id)
            member_ids = await self.chats.list_member_ids(chat.id)
            others = [m for m in member_ids if m != user_id]
            users = await self.users.get_many(others)
            last = await self.chats.last_message(chat.id)
            out.append(
                {
                    "id": chat.id,
                    "task": _task_summary(task),
                    "other_user": user_summary(users.get(others[0])) if others else None,
                    "last_message": message_to_dict(last) if last else None,
                    "unread_count": await self.chats.count_unread_for(chat.id, user_id),
                    "updated_at": chat.updated_at.isoformat() if chat.updated_at else None,
                }
            )
        return out

    async def get_chat(self, chat_id: str, requester_id: str, limit: int = 50) -> dict[str, Any]:
        await self._require_member(chat_id, requester_id)
        chat = await self.chats.get(chat_id)
        task = await self.tasks.get(chat.task_id)
        member_ids = await self.chats.list_member_ids(chat_id)
        users = await self.users.get_many(member_ids)
        messages, total = await self.list_messages(chat_id, requester_id, limit=limit)
        return {
            "id": chat.id,
            "task": task_to_dict(task) if task else None,
            "members": [user_summary(users[m]) for m in member_ids if m in users],
            "messages": [message_to_dict(m, users.get(m.sender_id)) for m in messages],
            "total_messages": total,
            "created_at": chat.created_at.isoformat() if chat.created_at else None,
            "updated_at": chat.updated_at.isoformat() if chat.updated_at else None,
        }


def _task_summary(task) -> Optional[dict[str, Any]]:
    if task is None:
        return None
    return {"id": task.id, "title": task.title, "status": task.status, "budget": task.budget}
