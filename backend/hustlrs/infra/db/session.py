"""Request-scoped database sessions."""
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession

from hustlrs.infra.db import base


async def get_db() -> AsyncIterator[AsyncSession]:
    """Yield a session; anything left uncommitted is rolled back on exit."""
    async with base.AsyncSessionLocal() as session:
        try:
            yield session
        except BaseException:
            await session.rollback()
            raise
