"""Device repository for push tokens."""
from typing import List

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from hustlrs.domain.common.types import generate_id
from hustlrs.infra.db.models.device import DeviceModel


class DeviceRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def upsert_by_token(self, user_id: str, push_token: str, platform: str) -> DeviceModel:
        """A token re-registered by another user moves to that user."""
        existing = await self.session.execute(
            select(DeviceModel).where(DeviceModel.push_token == push_token)
        )
        row = existing.scalar_one_or_none()
        if row:
            row.user_id = user_id
            row.platform = platform
        else:
            row = DeviceModel(
                id=generate_id(),
                user_id=user_id,
                push_token=push_token,
                platform=platform,
            )
            self.session.add(row)
        await self.session.flush()
        return row

    async def delete_token(self, user_id: str, push_token: str) -> bool:
        result = await self.session.execute(
            delete(DeviceModel)
            .where(DeviceModel.user_id == user_id, DeviceModel.push_token == push_token)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    async def list_tokens_by_user(self, user_id: str) -> List[str]:
        result = await self.session.execute(
            select(DeviceModel.push_token).where(DeviceModel.user_id == user_id)
        )
        return list(result.scalars().all())

    async def delete_all_for_user(self, user_id: str) -> int:
        result = await self.session.execute(
            delete(DeviceModel)
            .where(DeviceModel.user_id == user_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount
