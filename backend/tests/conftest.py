"""Pytest configuration: per-test SQLite database, user factory, fake sockets, API client."""
import os

# Realtime stays in-process and nothing is pushed or emailed during tests.
os.environ.setdefault("REALTIME_REDIS_FANOUT", "false")
os.environ.setdefault("PUSH_ENABLED", "false")
os.environ.setdefault("SENDGRID_API_KEY", "")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine

from hustlrs.domain.common.types import generate_id
from hustlrs.infra.db.base import Base, build_session_factory
from hustlrs.infra.db import models  # noqa: F401
from hustlrs.infra.db.repositories.user_repo import UserRepository
from hustlrs.infra.messaging.code_sender import CodeSender
from hustlrs.infra.realtime.delivery import delivery
from hustlrs.infra.realtime.gateway import gateway
from hustlrs.infra.security.jwt import create_access_token
from hustlrs.infra.security.password import get_password_hash

TEST_PASSWORD = "secret123"
_TEST_PASSWORD_HASH = get_password_hash(TEST_PASSWORD, rounds=4)


@pytest_asyncio.fixture
async def engine(tmp_path):
    """File-backed SQLite so separate sessions get separate connections (needed for race tests)."""
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'hustlrs.db'}")
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


@pytest_asyncio.fixture(autouse=True)
async def _reset_realtime():
    """Background deliveries finish inside the test; the gateway starts empty."""
    gateway.channels.clear()
    gateway.connections.clear()
    yield
    await delivery.drain()
    gateway.channels.clear()
    gateway.connections.clear()


@pytest.fixture
def make_user(session_factory):
    """Create and commit a user in its own session. Returns the detached model."""

    async def _make(user_type: str = "CUSTOMER", first_name: str = "Ada", **fields):
        suffix = generate_id()[:8]
        async with session_factory() as s:
            user = await UserRepository(s).create(
                email=fields.pop("email", f"user-{suffix}@example.com"),
                phone_number=fields.pop("phone_number", f"+234{suffix}"),
                password_hash=_TEST_PASSWORD_HASH,
                first_name=first_name,
                last_name=fields.pop("last_name", "Test"),
                user_type=user_type,
                is_verified=True,
                **fields,
            )
            await s.commit()
        return user

    return _make


@pytest_asyncio.fixture
async def poster(make_user):
    return await make_user("CUSTOMER", first_name="Chioma")


@pytest_asyncio.fixture
async def hustler(make_user):
    return await make_user("HUSTLER", first_name="Tunde")


def auth_headers(user) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(data={'sub': user.id})}"}


def task_fields(**overrides) -> dict:
    fields = {
        "title": "Pick up groceries",
        "description": "Buy rice, beans and plantain from the market",
        "category": "SHOPPING",
        "budget": 5000,
    }
    fields.update(overrides)
    return fields


class FakeWebSocket:
    """Records frames sent by the gateway. fail=True behaves like a dead socket."""

    def __init__(self, fail: bool = False):
        self.sent: list[dict] = []
        self.accepted = False
        self.closed_code = None
        self.fail = fail

    async def accept(self):
        self.accepted = True

    async def send_json(self, data):
        if self.fail:
            raise RuntimeError("Cannot call send once a close message has been sent")
        self.sent.append(data)

    async def close(self, code: int = 1000, reason: str | None = None):
        self.closed_code = code

    def events(self) -> list[str]:
        return [frame["event"] for frame in self.sent]

    def frames(self, event: str) -> list[dict]:
        return [frame for frame in self.sent if frame["event"] == event]


class RecordingCodeSender(CodeSender):
    """Keeps every code it is asked to send, keyed by recipient."""

    def __init__(self):
        self.sent: list[tuple[str, str, str]] = []

    async def send_code(self, to_email: str, code: str, purpose: str, ttl_minutes: int) -> None:
        self.sent.append((to_email, code, purpose))

    def last_code(self, to_email: str) -> str:
        return [code for email, code, _ in self.sent if email == to_email][-1]


@pytest.fixture
def code_sender(monkeypatch):
    sender = RecordingCodeSender()
    monkeypatch.setattr("hustlrs.services.account_service.get_code_sender", lambda: sender)
    return sender


@pytest_asyncio.fixture
async def client(session_factory, code_sender):
    """API client on the ASGI app with get_db bound to the test database."""
    from hustlrs.api.deps import get_db
    from hustlrs.main import app

    async def override_get_db():
        async with session_factory() as s:
            try:
                yield s
            except BaseException:
                await s.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
