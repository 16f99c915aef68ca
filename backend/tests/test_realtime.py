"""Realtime gateway and the WebSocket frame protocol."""
import json

import pytest

from conftest import FakeWebSocket, task_fields
from hustlrs.api.realtime.routes_ws import _handle_frame
from hustlrs.domain.common.errors import ValidationError
from hustlrs.infra.messaging.redis_bus import redis_bus
from hustlrs.infra.realtime.gateway import REALTIME_EVENTS_CHANNEL, RealtimeGateway, gateway
from hustlrs.services.task_lifecycle import TaskLifecycleService
from hustlrs.settings import get_config_store


class TestGateway:
    async def test_connect_subscribes_user_channel(self):
        gw = RealtimeGateway()
        ws = FakeWebSocket()
        conn = await gw.connect(ws, "u1")

        assert ws.accepted
        assert ws.events() == ["connection.established"]
        assert gw.subscriber_count("user_u1") == 1

        gw.disconnect(conn)
        assert gw.subscriber_count("user_u1") == 0
        assert gw.channels == {}

    async def test_join_is_idempotent_and_capped(self):
        gw = RealtimeGateway()
        conn = await gw.connect(FakeWebSocket(), "u1")
        gw.join_chat(conn, "c1", max_rooms=2)
        gw.join_chat(conn, "c1", max_rooms=2)
        gw.join_chat(conn, "c2", max_rooms=2)

        with pytest.raises(ValidationError):
            gw.join_chat(conn, "c3", max_rooms=2)
        assert conn.chats == {"c1", "c2"}
        assert gw.subscriber_count("chat_c1") == 1

        gw.leave_chat(conn, "c1")
        gw.join_chat(conn, "c3", max_rooms=2)
        assert conn.chats == {"c2", "c3"}

    async def test_disconnect_leaves_all_chats(self):
        gw = RealtimeGateway()
        conn = await gw.connect(FakeWebSocket(), "u1")
        gw.join_chat(conn, "c1")
        gw.join_chat(conn, "c2")
        gw.disconnect(conn)
        gw.disconnect(conn)
        assert gw.channels == {}
        assert gw.connections == {}

    async def test_dead_socket_is_dropped_others_still_delivered(self):
        gw = RealtimeGateway()
        alive, dead = FakeWebSocket(), FakeWebSocket()
        a = await gw.connect(alive, "u1")
        d = await gw.connect(dead, "u2")
        gw.join_chat(a, "c1")
        gw.join_chat(d, "c1")
        dead.fail = True

        await gw.broadcast_chat("c1", "new_message", {"id": "m1"})

        assert alive.frames("new_message") == [{"event": "new_message", "data": {"id": "m1"}}]
        assert gw.subscriber_count("chat_c1") == 1
        assert d.id not in gw.connections

    async def test_redis_failure_falls_back_to_local_delivery(self, monkeypatch):
        get_config_store().update({"realtime_redis_fanout": True})
        try:
            async def broken_publish(channel, message):
                raise ConnectionError("redis down")

            monkeypatch.setattr(redis_bus, "publish", broken_publish)
            gw = RealtimeGateway()
            ws = FakeWebSocket()
            await gw.connect(ws, "u1")

            await gw.emit_to_user("u1", "notification.new", {"id": "n1"})
        finally:
            get_config_store().update({"realtime_redis_fanout": False})

        assert ws.frames("notification.new") == [{"event": "notification.new", "data": {"id": "n1"}}]

    async def test_redis_fanout_publishes_envelope(self, monkeypatch):
        published = []

        async def fake_publish(channel, message):
            published.append((channel, message))

        get_config_store().update({"realtime_redis_fanout": True})
        try:
            monkeypatch.setattr(redis_bus, "publish", fake_publish)
            gw = RealtimeGateway()
            ws = FakeWebSocket()
            await gw.connect(ws, "u1")
            await gw.emit_to_user("u1", "pong", {})
        finally:
            get_config_store().update({"realtime_redis_fanout": False})

        assert published == [
            (REALTIME_EVENTS_CHANNEL, {"channel": "user_u1", "message": {"event": "pong", "data": {}}})
        ]
        # Delivered when the subscriber hands the message back
        assert ws.frames("pong") == []
        await gw.handle_bus_message(published[0][1])
        assert ws.frames("pong") == [{"event": "pong", "data": {}}]


class TestFrames:
    @pytest.fixture
    async def chat_id(self, session_factory, poster, hustler):
        async with session_factory() as s:
            task = await TaskLifecycleService(s).create(poster, task_fields())
        async with session_factory() as s:
            _, chat = await TaskLifecycleService(s).assign(task.id, hustler.id, hustler.id)
        return chat.id

    async def test_member_joins_and_leaves(self, session, chat_id, hustler):
        ws = FakeWebSocket()
        conn = await gateway.connect(ws, hustler.id)

        await _handle_frame(ws, conn, json.dumps({"event": "join_chat", "chat_id": chat_id}), session)
        assert ws.sent[-1] == {"event": "joined_chat", "data": {"chat_id": chat_id}}
        assert gateway.subscriber_count(f"chat_{chat_id}") == 1

        await _handle_frame(ws, conn, json.dumps({"event": "leave_chat", "chat_id": chat_id}), session)
        assert ws.sent[-1]["event"] == "left_chat"
        assert gateway.subscriber_count(f"chat_{chat_id}") == 0

    async def test_outsider_cannot_join(self, session, chat_id, make_user):
        outsider = await make_user("HUSTLER")
        ws = FakeWebSocket()
        conn = await gateway.connect(ws, outsider.id)

        await _handle_frame(ws, conn, json.dumps({"event": "join_chat", "chat_id": chat_id}), session)

        assert ws.sent[-1]["event"] == "error"
        assert conn.chats == set()

    @pytest.mark.parametrize("raw", ["ping", json.dumps({"event": "ping"})])
    async def test_ping(self, session, raw):
        ws = FakeWebSocket()
        conn = await gateway.connect(ws, "u1")
        await _handle_frame(ws, conn, raw, session)
        assert ws.sent[-1] == {"event": "pong"}

    @pytest.mark.parametrize("raw", ["{not json", "[1, 2]", json.dumps({"event": "dance"})])
    async def test_bad_frames_get_error(self, session, raw):
        ws = FakeWebSocket()
        conn = await gateway.connect(ws, "u1")
        await _handle_frame(ws, conn, raw, session)
        assert ws.sent[-1]["event"] == "error"
