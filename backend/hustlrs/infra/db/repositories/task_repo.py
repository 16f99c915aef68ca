"""Task repository."""
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import case, delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from hustlrs.domain.common.types import generate_id
from hustlrs.domain.tasks.models import PRIORITY_RANK, TERMINAL_STATUSES, TaskStatus
from hustlrs.infra.db.models.task import TaskModel

_priority_order = case(
    {p.value: rank for p, rank in PRIORITY_RANK.items()},
    value=TaskModel.priority,
    else_=0,
)


class TaskRepository:
    """Task repository. State changes are conditional UPDATEs; rowcount 0 means another writer won."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, poster_id: str, fields: dict[str, Any]) -> TaskModel:
        now = datetime.utcnow()
        task = TaskModel(
            id=generate_id(),
            poster_id=poster_id,
            status=TaskStatus.OPEN.value,
            hustler_id=None,
            created_at=now,
            updated_at=now,
            **fields,
        )
        self.session.add(task)
        await self.session.flush()
        return task

    async def get(self, task_id: str) -> Optional[TaskModel]:
        result = await self.session.execute(select(TaskModel).where(TaskModel.id == task_id))
        return result.scalar_one_or_none()

    async def reload(self, task: TaskModel) -> TaskModel:
        await self.session.refresh(task)
        return task

    async def search(
        self,
        *,
        status: Optional[str] = None,
        category: Optional[str] = None,
        min_budget: Optional[int] = None,
        max_budget: Optional[int] = None,
        search: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[TaskModel], int]:
        """Filtered page ordered by priority then newest, plus the total match count."""
        conditions = []
        if status:
            conditions.append(TaskModel.status == status)
        if category:
            conditions.append(TaskModel.category == category)
        if min_budget is not None:
            conditions.append(TaskModel.budget >= min_budget)
        if max_budget is not None:
            conditions.append(TaskModel.budget <= max_budget)
        if search:
            pattern = f"%{search.lower()}%"
            conditions.append(
                or_(
                    func.lower(TaskModel.title).like(pattern),
                    func.lower(TaskModel.description).like(pattern),
                )
            )
        q = (
            select(TaskModel)
            .where(*conditions)
            .order_by(_priority_order.desc(), TaskModel.created_at.desc(), TaskModel.id)
            .limit(limit)
            .offset(offset)
        )
        total_q = select(func.count()).select_from(TaskModel).where(*conditions)
        tasks = list((await self.session.execute(q)).scalars().all())
        total = (await self.session.execute(total_q)).scalar() or 0
        return tasks, total

    async def list_for_party(
        self,
        *,
        poster_id: Optional[str] = None,
        hustler_id: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[TaskModel], int]:
        conditions = []
        if poster_id is not None:
            conditions.append(TaskModel.poster_id == poster_id)
        if hustler_id is not None:
            conditions.append(TaskModel.hustler_id == hustler_id)
        if status:
            conditions.append(TaskModel.status == status)
        q = (
            select(TaskModel)
            .where(*conditions)
            .order_by(TaskModel.created_at.desc(), TaskModel.id)
            .limit(limit)
            .offset(offset)
        )
        tasks = list((await self.session.execute(q)).scalars().all())
        total = (
            await self.session.execute(select(func.count()).select_from(TaskModel).where(*conditions))
        ).scalar() or 0
        return tasks, total

    async def count_active_for_user(self, user_id: str) -> int:
        """Tasks not yet COMPLETED or CANCELLED that the user posted or works on."""
        result = await self.session.execute(
            select(func.count())
            .select_from(TaskModel)
            .where(
                or_(TaskModel.poster_id == user_id, TaskModel.hustler_id == user_id),
                TaskModel.status.not_in([s.value for s in TERMINAL_STATUSES]),
            )
        )
        return result.scalar() or 0

    async def claim(self, task_id: str, hustler_id: str) -> bool:
        """OPEN -> ASSIGNED for hustler_id. False if the task is no longer OPEN."""
        result = await self.session.execute(
            update(TaskModel)
            .where(
                TaskModel.id == task_id,
                TaskModel.status == TaskStatus.OPEN.value,
                TaskModel.hustler_id.is_(None),
            )
            .values(
                status=TaskStatus.ASSIGNED.value,
                hustler_id=hustler_id,
                updated_at=datetime.utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def set_status(self, task_id: str, expected: str, new_status: str) -> bool:
        """Move expected -> new_status. False if the status changed underneath us."""
        result = await self.session.execute(
            update(TaskModel)
            .where(TaskModel.id == task_id, TaskModel.status == expected)
            .values(status=new_status, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def update_open(self, task_id: str, values: dict[str, Any]) -> bool:
        """Apply edited fields. False if the task left OPEN in the meantime."""
        result = await self.session.execute(
            update(TaskModel)
            .where(TaskModel.id == task_id, TaskModel.status == TaskStatus.OPEN.value)
            .values(**values, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def delete_open(self, task_id: str) -> bool:
        result = await self.session.execute(
            delete(TaskModel)
            .where(TaskModel.id == task_id, TaskModel.status == TaskStatus.OPEN.value)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
