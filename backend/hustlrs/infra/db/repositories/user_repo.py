"""User repository."""
from datetime import datetime
from typing import Any, Iterable, Optional

from sqlalchemy import delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from hustlrs.domain.common.types import generate_id
from hustlrs.infra.db.models.task import TaskModel
from hustlrs.infra.db.models.user import UserModel

PROFILE_FIELDS = (
    "first_name",
    "last_name",
    "avatar_url",
    "user_type",
    "bio",
    "skills",
    "latitude",
    "longitude",
    "address",
    "city",
    "state",
    "country",
)


class UserRepository:
    """User repository. Counter updates are single UPDATE statements so concurrent writers add up."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, user_id: str) -> Optional[UserModel]:
        result = await self.session.execute(select(UserModel).where(UserModel.id == user_id))
        return result.scalar_one_or_none()

    async def get_many(self, user_ids: Iterable[str]) -> dict[str, UserModel]:
        ids = {i for i in user_ids if i}
        if not ids:
            return {}
        result = await self.session.execute(select(UserModel).where(UserModel.id.in_(ids)))
        return {u.id: u for u in result.scalars().all()}

    async def get_by_identifier(self, identifier: str) -> Optional[UserModel]:
        """Look up by email (case-insensitive) or phone number."""
        ident = identifier.strip()
        result = await self.session.execute(
            select(UserModel).where(
                or_(UserModel.email == ident.lower(), UserModel.phone_number == ident)
            )
        )
        return result.scalars().first()

    async def exists_with(self, email: str, phone_number: str) -> bool:
        result = await self.session.execute(
            select(UserModel.id).where(
                or_(UserModel.email == email.lower(), UserModel.phone_number == phone_number)
            )
        )
        return result.first() is not None

    async def create(self, **fields: Any) -> UserModel:
        now = datetime.utcnow()
        user = UserModel(
            id=generate_id(),
            created_at=now,
            updated_at=now,
            last_activity_at=now,
            **fields,
        )
        user.email = user.email.lower()
        self.session.add(user)
        await self.session.flush()
        return user

    async def update_profile(self, user: UserModel, changes: dict[str, Any]) -> UserModel:
        for key, value in changes.items():
            if key in PROFILE_FIELDS:
                setattr(user, key, value)
        user.updated_at = datetime.utcnow()
        await self.session.flush()
        return user

    async def touch_activity(self, user_id: str, *, login: bool = False) -> None:
        now = datetime.utcnow()
        values: dict[str, Any] = {"last_activity_at": now}
        if login:
            values["last_login_at"] = now
        await self.session.execute(
            update(UserModel)
            .where(UserModel.id == user_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )

    async def increment_tasks_posted(self, user_id: str) -> None:
        await self.session.execute(
            update(UserModel)
            .where(UserModel.id == user_id)
            .values(tasks_posted=UserModel.tasks_posted + 1)
            .execution_options(synchronize_session=False)
        )

    async def credit_completion(self, user_id: str, amount: int) -> None:
        await self.session.execute(
            update(UserModel)
            .where(UserModel.id == user_id)
            .values(
                tasks_completed=UserModel.tasks_completed + 1,
                total_earnings=UserModel.total_earnings + amount,
            )
            .execution_options(synchronize_session=False)
        )

    async def add_rating(self, user_id: str, stars: int) -> None:
        await self.session.execute(
            update(UserModel)
            .where(UserModel.id == user_id)
            .values(
                rating=UserModel.rating + stars,
                total_rating=UserModel.total_rating + 1,
            )
            .execution_options(synchronize_session=False)
        )

    async def deactivate(self, user_id: str) -> None:
        await self.session.execute(
            update(UserModel)
            .where(UserModel.id == user_id)
            .values(is_active=False, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )

    async def delete_if_unreferenced(self, user_id: str) -> bool:
        """Hard-delete the user unless a task names them as poster or hustler."""
        referenced = (
            select(TaskModel.id)
            .where(or_(TaskModel.poster_id == user_id, TaskModel.hustler_id == user_id))
            .exists()
        )
        result = await self.session.execute(
            delete(UserModel)
            .where(UserModel.id == user_id, ~referenced)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
