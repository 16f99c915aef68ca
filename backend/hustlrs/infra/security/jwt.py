"""JWT access and refresh tokens."""
from datetime import datetime, timedelta
from typing import Any, Optional

from jose import JWTError, jwt

from hustlrs.settings import settings


def _create_token(data: dict[str, Any], token_type: str, expires_delta: timedelta) -> str:
    to_encode = dict(data)
    now = datetime.utcnow()
    to_encode.update({"exp": now + expires_delta, "iat": now, "type": token_type})
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def create_access_token(data: dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    return _create_token(
        data,
        "access",
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes),
    )


def create_refresh_token(data: dict[str, Any]) -> str:
    return _create_token(data, "refresh", timedelta(days=settings.refresh_token_expire_days))


def decode_token(token: str) -> Optional[dict[str, Any]]:
    """Return the payload, or None if the token is malformed, forged or expired."""
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None
