"""Push notification sender via FCM (Firebase Cloud Messaging)."""
import asyncio
import logging
import os
from typing import Any

import firebase_admin
from firebase_admin import credentials, exceptions, messaging

from hustlrs.infra.db import base
from hustlrs.infra.db.repositories.device_repo import DeviceRepository
from hustlrs.settings import settings

logger = logging.getLogger(__name__)

_firebase_app = None


def _get_firebase_app():
    """Lazy-init Firebase default app. None when push is disabled or unconfigured."""
    global _firebase_app
    if _firebase_app is not None:
        return _firebase_app
    if not settings.push_enabled:
        return None
    cred_path = settings.google_application_credentials or os.environ.get("GOOGLE_APPLICATION_CREDENTIALS", "")
    if not cred_path:
        logger.debug("Push disabled: no service account configured")
        return None
    try:
        _firebase_app = firebase_admin.initialize_app(credentials.Certificate(cred_path))
    except (ValueError, OSError) as e:
        logger.warning("Firebase init failed (push disabled): %s", e)
        return None
    return _firebase_app


def push_configured() -> bool:
    return _get_firebase_app() is not None


async def send_push_to_user(user_id: str, title: str, body: str, data: dict[str, Any]) -> None:
    """Send to every registered device of the user. Uses its own session (runs after the request's commit)."""
    app = _get_firebase_app()
    if app is None or base.AsyncSessionLocal is None:
        return
    async with base.AsyncSessionLocal() as session:
        tokens = await DeviceRepository(session).list_tokens_by_user(user_id)
    if not tokens:
        logger.debug("No push tokens for user %s", user_id)
        return
    # FCM data payload values must be strings
    data_str = {k: str(v) for k, v in data.items() if v is not None}
    for token in tokens:
        message = messaging.Message(
            notification=messaging.Notification(title=title, body=body),
            data=data_str,
            token=token,
        )
        try:
            await asyncio.to_thread(messaging.send, message, app=app)
        except (exceptions.FirebaseError, ValueError) as e:
            logger.warning("Push send failed for token %s...: %s", token[:20], e)
