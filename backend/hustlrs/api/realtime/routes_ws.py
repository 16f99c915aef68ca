"""Realtime WebSocket endpoint.

Client frames (JSON): {"event": "join_chat", "chat_id": ...},
{"event": "leave_chat", "chat_id": ...}, {"event": "ping"}.
Server frames: {"event": <name>, "data": {...}}.
"""
import json
import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status
from sqlalchemy.ext.asyncio import AsyncSession

from hustlrs.api.deps import get_db, user_id_from_token
from hustlrs.domain.common.errors import ValidationError
from hustlrs.infra.db.repositories.chat_repo import ChatRepository
from hustlrs.infra.db.repositories.user_repo import UserRepository
from hustlrs.infra.realtime.gateway import Connection, gateway

logger = logging.getLogger(__name__)

router = APIRouter()


async def _send_error(websocket: WebSocket, message: str) -> None:
    await websocket.send_json({"event": "error", "data": {"message": message}})


async def _handle_frame(websocket: WebSocket, conn: Connection, raw: str, db: AsyncSession) -> None:
    if raw == "ping":
        await websocket.send_json({"event": "pong"})
        return
    try:
        frame = json.loads(raw)
    except json.JSONDecodeError:
        await _send_error(websocket, "Frames must be JSON")
        return
    if not isinstance(frame, dict):
        await _send_error(websocket, "Frames must be JSON objects")
        return

    event = frame.get("event")
    if event == "ping":
        await websocket.send_json({"event": "pong"})
    elif event == "join_chat":
        chat_id = str(frame.get("chat_id") or "")
        is_member = await ChatRepository(db).is_member(chat_id, conn.user_id) if chat_id else False
        await db.rollback()  # end the read transaction; the socket may stay open for hours
        if not is_member:
            await _send_error(websocket, "You are not a member of this chat")
            return
        try:
            gateway.join_chat(conn, chat_id)
        except ValidationError as e:
            await _send_error(websocket, e.message)
            return
        await websocket.send_json({"event": "joined_chat", "data": {"chat_id": chat_id}})
    elif event == "leave_chat":
        chat_id = str(frame.get("chat_id") or "")
        gateway.leave_chat(conn, chat_id)
        await websocket.send_json({"event": "left_chat", "data": {"chat_id": chat_id}})
    else:
        await _send_error(websocket, f"Unknown event: {event}")


@router.websocket("/ws")
async def realtime_ws(websocket: WebSocket, db: AsyncSession = Depends(get_db)):
    """Authenticated with ?token=<access token>. Subscribed to the caller's personal channel on connect."""
    user_id = user_id_from_token(websocket.query_params.get("token"))
    if not user_id:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Invalid token")
        return
    user = await UserRepository(db).get_by_id(user_id)
    active = user is not None and user.is_active
    await db.rollback()
    if not active:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Invalid token")
        return

    conn = await gateway.connect(websocket, user_id)
    try:
        while True:
            raw = await websocket.receive_text()
            await _handle_frame(websocket, conn, raw, db)
    except WebSocketDisconnect:
        pass
    except (RuntimeError, ConnectionError) as e:
        logger.info("Realtime socket for user %s closed: %s", user_id, e)
    finally:
        gateway.disconnect(conn)
