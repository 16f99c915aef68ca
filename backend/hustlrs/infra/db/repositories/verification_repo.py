"""Verification code repository."""
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from hustlrs.domain.common.types import generate_id
from hustlrs.infra.db.models.verification import VerificationCodeModel


class VerificationCodeRepository:
    """One live code per (identifier, purpose); issuing again replaces it."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, identifier: str, purpose: str) -> Optional[VerificationCodeModel]:
        result = await self.session.execute(
            select(VerificationCodeModel).where(
                VerificationCodeModel.identifier == identifier,
                VerificationCodeModel.purpose == purpose,
            )
        )
        return result.scalar_one_or_none()

    async def replace(
        self,
        identifier: str,
        purpose: str,
        code_hash: str,
        expires_at: datetime,
        payload: Optional[dict[str, Any]] = None,
    ) -> VerificationCodeModel:
        await self.delete(identifier, purpose)
        row = VerificationCodeModel(
            id=generate_id(),
            identifier=identifier,
            purpose=purpose,
            code_hash=code_hash,
            payload=payload,
            attempts=0,
            expires_at=expires_at,
            created_at=datetime.utcnow(),
        )
        self.session.add(row)
        await self.session.flush()
        return row

    async def record_failed_attempt(self, row_id: str) -> None:
        await self.session.execute(
            update(VerificationCodeModel)
            .where(VerificationCodeModel.id == row_id)
            .values(attempts=VerificationCodeModel.attempts + 1)
            .execution_options(synchronize_session=False)
        )

    async def delete(self, identifier: str, purpose: str) -> None:
        await self.session.execute(
            delete(VerificationCodeModel)
            .where(
                VerificationCodeModel.identifier == identifier,
                VerificationCodeModel.purpose == purpose,
            )
            .execution_options(synchronize_session=False)
        )

    async def purge_expired(self, now: Optional[datetime] = None) -> int:
        result = await self.session.execute(
            delete(VerificationCodeModel)
            .where(VerificationCodeModel.expires_at < (now or datetime.utcnow()))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0
