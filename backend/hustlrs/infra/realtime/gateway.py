"""Realtime gateway: chat_{id} and user_{id} channels over WebSocket.

A connection is always subscribed to its own user channel and joins chat
channels explicitly. Emits go through Redis when fan-out is enabled so every
API instance delivers to its local sockets; if publishing fails the event is
delivered locally only.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from fastapi import WebSocket
from starlette.websockets import WebSocketDisconnect

from hustlrs.domain.chat.models import chat_channel
from hustlrs.domain.common.errors import ValidationError
from hustlrs.domain.common.types import generate_id
from hustlrs.domain.notifications.models import user_channel
from hustlrs.settings import settings

logger = logging.getLogger(__name__)

REALTIME_EVENTS_CHANNEL = "realtime:events"


@dataclass(eq=False)
class Connection:
    user_id: str
    websocket: WebSocket
    id: str = field(default_factory=generate_id)
    chats: set[str] = field(default_factory=set)


class RealtimeGateway:
    """Per-instance channel registry: channel name -> connection id -> Connection."""

    def __init__(self) -> None:
        self.channels: Dict[str, Dict[str, Connection]] = {}
        self.connections: Dict[str, Connection] = {}

    def _subscribe(self, conn: Connection, channel: str) -> None:
        self.channels.setdefault(channel, {})[conn.id] = conn

    def _unsubscribe(self, conn: Connection, channel: str) -> None:
        members = self.channels.get(channel)
        if members is None:
            return
        members.pop(conn.id, None)
        if not members:
            del self.channels[channel]

    async def connect(self, websocket: WebSocket, user_id: str, already_accepted: bool = False) -> Connection:
        if not already_accepted:
            await websocket.accept()
        conn = Connection(user_id=user_id, websocket=websocket)
        self.connections[conn.id] = conn
        self._subscribe(conn, user_channel(user_id))
        await websocket.send_json({"event": "connection.established", "data": {"user_id": user_id}})
        logger.info("Realtime connected: user=%s conn=%s", user_id, conn.id)
        return conn

    def disconnect(self, conn: Connection) -> None:
        if self.connections.pop(conn.id, None) is None:
            return
        self._unsubscribe(conn, user_channel(conn.user_id))
        for chat_id in list(conn.chats):
            self._unsubscribe(conn, chat_channel(chat_id))
        conn.chats.clear()
        logger.info("Realtime disconnected: user=%s conn=%s", conn.user_id, conn.id)

    def join_chat(self, conn: Connection, chat_id: str, max_rooms: Optional[int] = None) -> None:
        """Subscribe to chat_{chat_id}. Membership must be checked by the caller."""
        if chat_id in conn.chats:
            return
        cap = max_rooms if max_rooms is not None else settings.ws_max_rooms_per_connection
        if len(conn.chats) >= cap:
            raise ValidationError(f"A connection can join at most {cap} chats")
        conn.chats.add(chat_id)
        self._subscribe(conn, chat_channel(chat_id))

    def leave_chat(self, conn: Connection, chat_id: str) -> None:
        conn.chats.discard(chat_id)
        self._unsubscribe(conn, chat_channel(chat_id))

    def subscriber_count(self, channel: str) -> int:
        return len(self.channels.get(channel, {}))

    async def deliver_local(self, channel: str, message: dict) -> None:
        """Send to this instance's sockets on channel. Dead sockets are dropped."""
        members = self.channels.get(channel)
        if not members:
            return
        dead = []
        for conn in list(members.values()):
            try:
                await conn.websocket.send_json(message)
            except (RuntimeError, ConnectionError, WebSocketDisconnect) as e:
                logger.warning("Realtime send failed on %s conn %s: %s", channel, conn.id, e)
                dead.append(conn)
        for conn in dead:
            self.disconnect(conn)

    async def publish(self, channel: str, event: str, data: dict[str, Any]) -> None:
        message = {"event": event, "data": data}
        if settings.realtime_redis_fanout:
            from hustlrs.infra.messaging.redis_bus import redis_bus
            try:
                await redis_bus.publish(REALTIME_EVENTS_CHANNEL, {"channel": channel, "message": message})
                return
            except Exception as e:
                logger.warning("Realtime Redis publish failed, delivering locally: %s", e)
        await self.deliver_local(channel, message)

    async def handle_bus_message(self, data: dict) -> None:
        """Redis subscriber callback."""
        await self.deliver_local(data["channel"], data["message"])

    async def broadcast_chat(self, chat_id: str, event: str, data: dict[str, Any]) -> None:
        await self.publish(chat_channel(chat_id), event, data)

    async def emit_to_user(self, user_id: str, event: str, data: dict[str, Any]) -> None:
        await self.publish(user_channel(user_id), event, data)


gateway = RealtimeGateway()
