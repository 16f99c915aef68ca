"""Device management routes (push tokens)."""
import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from hustlrs.api.deps import get_current_user, get_db
from hustlrs.api.envelope import ok
from hustlrs.infra.db.models.user import UserModel
from hustlrs.services.account_service import AccountService

logger = logging.getLogger(__name__)

router = APIRouter()


class PushTokenRequest(BaseModel):
    token: str
    platform: str  # 'ios' or 'android'


@router.post("")
async def register_push_token(
    request: PushTokenRequest,
    current_user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Upserts by token (one device per token)."""
    platform = "ios" if (request.platform or "").lower() == "ios" else "android"
    await AccountService(db).register_device(current_user, request.token, platform)
    logger.info("Registered push token for user %s: platform=%s", current_user.id, platform)
    return ok(message="Device registered")


@router.delete("/{token}")
async def remove_push_token(
    token: str,
    current_user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await AccountService(db).remove_device(current_user, token)
    return ok(message="Device removed")
