"""Notification inbox: listing, unread counts, ownership and delivery."""
import pytest

from conftest import FakeWebSocket
from hustlrs.domain.common.errors import NotFoundError
from hustlrs.domain.notifications.models import NotificationType
from hustlrs.infra.realtime.delivery import delivery
from hustlrs.infra.realtime.gateway import gateway
from hustlrs.services.notification_service import NotificationDispatcher


async def _notify(session_factory, user, count=1):
    ids = []
    async with session_factory() as s:
        dispatcher = NotificationDispatcher(s)
        for i in range(count):
            n = await dispatcher.notify(
                user.id, NotificationType.TASK_ASSIGNED, "Task Assigned", f"Assigned #{i}", task_id=f"task-{i}"
            )
            ids.append(n.id)
        await s.commit()
        dispatcher.dispatch_pending()
    return ids


async def test_list_newest_first_with_unread_count(session_factory, poster):
    ids = await _notify(session_factory, poster, count=3)
    async with session_factory() as s:
        await NotificationDispatcher(s).mark_read(ids[0], poster.id)
        items, total, unread = await NotificationDispatcher(s).list_for_user(poster.id, limit=2)

    assert total == 3
    assert unread == 2
    assert len(items) == 2
    assert items[0].created_at >= items[1].created_at


async def test_unread_only(session_factory, poster):
    ids = await _notify(session_factory, poster, count=2)
    async with session_factory() as s:
        await NotificationDispatcher(s).mark_read(ids[1], poster.id)
        items, total, unread = await NotificationDispatcher(s).list_for_user(poster.id, unread_only=True)
    assert [n.id for n in items] == [ids[0]]
    assert total == unread == 1


async def test_mark_read_of_someone_elses_notification_is_not_found(session_factory, poster, hustler):
    ids = await _notify(session_factory, poster)
    async with session_factory() as s:
        with pytest.raises(NotFoundError):
            await NotificationDispatcher(s).mark_read(ids[0], hustler.id)
    async with session_factory() as s:
        assert await NotificationDispatcher(s).unread_count(poster.id) == 1


async def test_mark_all_read(session_factory, poster, hustler):
    await _notify(session_factory, poster, count=3)
    await _notify(session_factory, hustler, count=1)
    async with session_factory() as s:
        updated = await NotificationDispatcher(s).mark_all_read(poster.id)
    assert updated == 3
    async with session_factory() as s:
        dispatcher = NotificationDispatcher(s)
        assert await dispatcher.unread_count(poster.id) == 0
        assert await dispatcher.unread_count(hustler.id) == 1


async def test_delete_own_only(session_factory, poster, hustler):
    ids = await _notify(session_factory, poster, count=1)
    async with session_factory() as s:
        with pytest.raises(NotFoundError):
            await NotificationDispatcher(s).delete(ids[0], hustler.id)
    async with session_factory() as s:
        await NotificationDispatcher(s).delete(ids[0], poster.id)
        _, total, _ = await NotificationDispatcher(s).list_for_user(poster.id)
    assert total == 0


async def test_dispatch_sends_to_every_socket_of_the_user(session_factory, poster):
    phone, laptop = FakeWebSocket(), FakeWebSocket()
    await gateway.connect(phone, poster.id)
    await gateway.connect(laptop, poster.id)

    ids = await _notify(session_factory, poster)
    await delivery.drain()

    for ws in (phone, laptop):
        frames = ws.frames("notification.new")
        assert [f["data"]["id"] for f in frames] == ids
        assert frames[0]["data"]["type"] == "TASK_ASSIGNED"


async def test_discarded_notifications_are_not_delivered(session_factory, poster):
    ws = FakeWebSocket()
    await gateway.connect(ws, poster.id)
    async with session_factory() as s:
        dispatcher = NotificationDispatcher(s)
        await dispatcher.notify(poster.id, NotificationType.NEW_MESSAGE, "New Message", "hi")
        await s.rollback()
        dispatcher.discard_pending()
        assert dispatcher.dispatch_pending() == 0
    await delivery.drain()
    assert ws.frames("notification.new") == []
