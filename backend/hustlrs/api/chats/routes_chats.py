"""Chat routes. Every chat endpoint is members-only."""
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from hustlrs.api.deps import get_current_user, get_db
from hustlrs.api.envelope import ok
from hustlrs.infra.db.models.user import UserModel
from hustlrs.services.chat_coordinator import ChatCoordinator
from hustlrs.services.serializers import message_to_dict

router = APIRouter()


class SendMessageRequest(BaseModel):
    content: Optional[str] = None
    type: str = "TEXT"
    image_url: Optional[str] = None


@router.get("")
async def list_my_chats(
    current_user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return ok(await ChatCoordinator(db).list_chats(current_user.id))


@router.get("/{chat_id}")
async def get_chat(
    chat_id: str,
    current_user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Chat with its task, members and the most recent page of messages (oldest first)."""
    return ok(await ChatCoordinator(db).get_chat(chat_id, current_user.id))


@router.get("/{chat_id}/messages")
async def list_messages(
    chat_id: str,
    limit: int = Query(default=50),
    offset: int = Query(default=0),
    current_user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """offset=0 is the most recent page; each page is returned oldest first."""
    messages, total = await ChatCoordinator(db).list_messages(chat_id, current_user.id, limit=limit, offset=offset)
    return ok(
        {
            "messages": [message_to_dict(m) for m in messages],
            "total": total,
            "limit": limit,
            "offset": offset,
        }
    )


@router.post("/{chat_id}/messages", status_code=status.HTTP_201_CREATED)
async def send_message(
    chat_id: str,
    request: SendMessageRequest,
    current_user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    msg = await ChatCoordinator(db).post_message(
        chat_id, current_user, request.content, request.type, request.image_url
    )
    return ok(message_to_dict(msg, current_user), message="Message sent")


@router.post("/{chat_id}/messages/read")
async def mark_messages_read(
    chat_id: str,
    current_user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    updated = await ChatCoordinator(db).mark_read(chat_id, current_user.id)
    return ok({"updated": updated})
