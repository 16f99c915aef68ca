"""API dependencies."""
import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from hustlrs.infra.db.models.user import UserModel
from hustlrs.infra.db.repositories.user_repo import UserRepository
from hustlrs.infra.db.session import get_db
from hustlrs.infra.security.jwt import decode_token

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/v1/auth/login")

# last_activity_at is only rewritten when older than this
_ACTIVITY_RESOLUTION = timedelta(minutes=5)

__all__ = ["get_db", "get_current_user", "user_id_from_token"]


def user_id_from_token(token: Optional[str]) -> Optional[str]:
    """User id from an access token, or None if missing or invalid."""
    if not token:
        return None
    payload = decode_token(token)
    if not payload or payload.get("type") != "access":
        return None
    return payload.get("sub")


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> UserModel:
    """Authenticated, active user. Also records activity for the inactivity OTP check."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    user_id = user_id_from_token(token)
    if user_id is None:
        raise credentials_exception

    repo = UserRepository(db)
    user = await repo.get_by_id(user_id)
    if user is None or not user.is_active:
        raise credentials_exception

    now = datetime.utcnow()
    if user.last_activity_at is None or now - user.last_activity_at > _ACTIVITY_RESOLUTION:
        user.last_activity_at = now
        await db.commit()
    return user
