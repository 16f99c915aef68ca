"""Review repository."""
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hustlrs.domain.common.types import generate_id
from hustlrs.infra.db.models.review import ReviewModel


class ReviewRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def exists(self, task_id: str, author_id: str) -> bool:
        result = await self.session.execute(
            select(ReviewModel.id).where(
                ReviewModel.task_id == task_id,
                ReviewModel.author_id == author_id,
            )
        )
        return result.first() is not None

    async def create(
        self,
        task_id: str,
        author_id: str,
        target_id: str,
        rating: int,
        comment: Optional[str],
    ) -> ReviewModel:
        review = ReviewModel(
            id=generate_id(),
            task_id=task_id,
            author_id=author_id,
            target_id=target_id,
            rating=rating,
            comment=comment,
            created_at=datetime.utcnow(),
        )
        self.session.add(review)
        await self.session.flush()
        return review

    async def list_for_target(self, target_id: str, limit: int = 20, offset: int = 0) -> list[ReviewModel]:
        result = await self.session.execute(
            select(ReviewModel)
            .where(ReviewModel.target_id == target_id)
            .order_by(ReviewModel.created_at.desc(), ReviewModel.id)
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all())
