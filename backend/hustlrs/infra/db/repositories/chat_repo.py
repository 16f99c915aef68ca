"""Chat repository: chats, members, messages."""
from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from hustlrs.domain.common.types import generate_id
from hustlrs.infra.db.models.chat import ChatMemberModel, ChatModel, MessageModel


class ChatRepository:
    """Chat repository. Callers own the transaction."""

    def __init__(self, session: AsyncSession):
        self.session = session

    # ---- Chats ----
    async def get(self, chat_id: str) -> Optional[ChatModel]:
        result = await self.session.execute(select(ChatModel).where(ChatModel.id == chat_id))
        return result.scalar_one_or_none()

    async def get_by_task(self, task_id: str) -> Optional[ChatModel]:
        result = await self.session.execute(select(ChatModel).where(ChatModel.task_id == task_id))
        return result.scalar_one_or_none()

    async def create_chat(self, task_id: str) -> ChatModel:
        now = datetime.utcnow()
        chat = ChatModel(id=generate_id(), task_id=task_id, created_at=now, updated_at=now)
        self.session.add(chat)
        await self.session.flush()
        return chat

    async def touch(self, chat_id: str, at: datetime) -> None:
        await self.session.execute(
            update(ChatModel)
            .where(ChatModel.id == chat_id)
            .values(updated_at=at)
            .execution_options(synchronize_session=False)
        )

    async def list_for_user(self, user_id: str) -> list[ChatModel]:
        result = await self.session.execute(
            select(ChatModel)
            .join(ChatMemberModel, ChatModel.id == ChatMemberModel.chat_id)
            .where(ChatMemberModel.user_id == user_id)
            .order_by(ChatModel.updated_at.desc(), ChatModel.id)
        )
        return list(result.scalars().unique().all())

    # ---- Members ----
    async def add_members(self, chat_id: str, user_ids: Iterable[str]) -> list[ChatMemberModel]:
        now = datetime.utcnow()
        members = [ChatMemberModel(chat_id=chat_id, user_id=uid, joined_at=now) for uid in user_ids]
        self.session.add_all(members)
        await self.session.flush()
        return members

    async def list_member_ids(self, chat_id: str) -> list[str]:
        result = await self.session.execute(
            select(ChatMemberModel.user_id)
            .where(ChatMemberModel.chat_id == chat_id)
            .order_by(ChatMemberModel.joined_at, ChatMemberModel.user_id)
        )
        return list(result.scalars().all())

    async def is_member(self, chat_id: str, user_id: str) -> bool:
        result = await self.session.execute(
            select(ChatMemberModel.user_id).where(
                ChatMemberModel.chat_id == chat_id,
                ChatMemberModel.user_id == user_id,
            )
        )
        return result.first() is not None

    # ---- Messages ----
    async def lock_for_append(self, chat_id: str) -> None:
        """Take the chat row for writing until commit, so appenders read the last sequence one at a time.

        Row lock on PostgreSQL, the database write lock on SQLite.
        """
        await self.session.execute(
            update(ChatModel)
            .where(ChatModel.id == chat_id)
            .values(updated_at=ChatModel.updated_at)
            .execution_options(synchronize_session=False)
        )

    async def _last_marker(self, chat_id: str) -> tuple[int, Optional[datetime]]:
        """(sequence, created_at) of the newest message, or (0, None)."""
        result = await self.session.execute(
            select(MessageModel.sequence, MessageModel.created_at)
            .where(MessageModel.chat_id == chat_id)
            .order_by(MessageModel.sequence.desc())
            .limit(1)
        )
        row = result.first()
        if row is None:
            return 0, None
        return row[0], row[1]

    async def append_message(
        self,
        chat_id: str,
        sender_id: str,
        content: str,
        type: str,
        image_url: Optional[str] = None,
    ) -> MessageModel:
        """Insert with the next per-chat sequence. created_at never goes below the previous message."""
        await self.lock_for_append(chat_id)
        last_seq, last_at = await self._last_marker(chat_id)
        now = datetime.utcnow()
        if last_at is not None and now < last_at:
            now = last_at
        msg = MessageModel(
            id=generate_id(),
            chat_id=chat_id,
            sender_id=sender_id,
            content=content,
            type=type,
            image_url=image_url,
            is_read=False,
            sequence=last_seq + 1,
            created_at=now,
        )
        self.session.add(msg)
        await self.session.flush()
        return msg

    async def list_messages(self, chat_id: str, limit: int, offset: int = 0) -> list[MessageModel]:
        """Newest first; callers reverse for display."""
        result = await self.session.execute(
            select(MessageModel)
            .where(MessageModel.chat_id == chat_id)
            .order_by(MessageModel.sequence.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all())

    async def count_messages(self, chat_id: str) -> int:
        result = await self.session.execute(
            select(func.count()).select_from(MessageModel).where(MessageModel.chat_id == chat_id)
        )
        return result.scalar() or 0

    async def last_message(self, chat_id: str) -> Optional[MessageModel]:
        msgs = await self.list_messages(chat_id, limit=1)
        return msgs[0] if msgs else None

    async def count_unread_for(self, chat_id: str, user_id: str) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(MessageModel)
            .where(
                MessageModel.chat_id == chat_id,
                MessageModel.sender_id != user_id,
                MessageModel.is_read.is_(False),
            )
        )
        return result.scalar() or 0

    async def mark_read_for(self, chat_id: str, reader_id: str) -> int:
        """Mark messages authored by others as read. Returns count updated."""
        result = await self.session.execute(
            update(MessageModel)
            .where(
                MessageModel.chat_id == chat_id,
                MessageModel.sender_id != reader_id,
                MessageModel.is_read.is_(False),
            )
            .values(is_read=True)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0
