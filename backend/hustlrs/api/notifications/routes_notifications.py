"""Notification API routes."""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from hustlrs.api.deps import get_current_user, get_db
from hustlrs.api.envelope import ok
from hustlrs.infra.db.models.user import UserModel
from hustlrs.services.notification_service import NotificationDispatcher
from hustlrs.services.serializers import notification_to_dict, pagination

router = APIRouter()


@router.get("")
async def list_notifications(
    unread_only: bool = Query(default=False, alias="unreadOnly"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    current_user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Newest first, with the user's total unread count."""
    items, total, unread = await NotificationDispatcher(db).list_for_user(
        current_user.id, unread_only=unread_only, limit=limit, offset=(page - 1) * limit
    )
    return ok(
        {
            "notifications": [notification_to_dict(n) for n in items],
            "unread_count": unread,
            "pagination": pagination(page, limit, total),
        }
    )


@router.get("/unread-count")
async def get_unread_count(
    current_user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return ok({"unread_count": await NotificationDispatcher(db).unread_count(current_user.id)})


@router.put("/{notification_id}/read")
async def mark_notification_read(
    notification_id: str,
    current_user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await NotificationDispatcher(db).mark_read(notification_id, current_user.id)
    return ok(message="Notification marked as read")


@router.put("/read-all")
async def mark_all_notifications_read(
    current_user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    count = await NotificationDispatcher(db).mark_all_read(current_user.id)
    return ok({"updated": count}, message="All notifications marked as read")


@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: str,
    current_user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await NotificationDispatcher(db).delete(notification_id, current_user.id)
    return ok(message="Notification deleted")
