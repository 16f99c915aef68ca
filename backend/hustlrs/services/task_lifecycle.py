"""Task lifecycle: create, edit, assign, status changes, deletion.

Every state change is a conditional UPDATE on the status the caller observed,
so of two concurrent writers exactly one sees rowcount 1 and the other is
rejected instead of overwriting. assign() writes the task, its chat, both
memberships and the poster's notification in one transaction; realtime
events go out only after that commit.
"""
import logging
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from hustlrs.domain.accounts.models import can_accept_tasks, can_post_tasks
from hustlrs.domain.common.errors import (
    Forbidden,
    InvalidState,
    InvalidTransition,
    NotFoundError,
    RoleViolation,
    SelfAssignment,
    ValidationError,
)
from hustlrs.domain.notifications.models import NotificationType
from hustlrs.domain.tasks.models import (
    TaskCategory,
    TaskStatus,
    check_transition,
    parse_enum,
    validate_new_task,
    validate_task_changes,
)
from hustlrs.infra.db.models.chat import ChatModel
from hustlrs.infra.db.models.task import TaskModel
from hustlrs.infra.db.models.user import UserModel
from hustlrs.infra.db.repositories.task_repo import TaskRepository
from hustlrs.infra.db.repositories.user_repo import UserRepository
from hustlrs.infra.realtime.delivery import delivery
from hustlrs.infra.realtime.gateway import gateway
from hustlrs.services.chat_coordinator import ChatCoordinator
from hustlrs.services.notification_service import NotificationDispatcher
from hustlrs.services.store import unit_of_work
from hustlrs.settings import settings

logger = logging.getLogger(__name__)

_STATUS_TITLES = {
    TaskStatus.IN_PROGRESS: "Task In Progress",
    TaskStatus.COMPLETED: "Task Completed",
    TaskStatus.CANCELLED: "Task Cancelled",
}


class TaskLifecycleService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.tasks = TaskRepository(session)
        self.users = UserRepository(session)
        self.notifications = NotificationDispatcher(session)
        self.chats = ChatCoordinator(session, notifications=self.notifications)

    async def _get_task(self, task_id: str) -> TaskModel:
        task = await self.tasks.get(task_id)
        if task is None:
            raise NotFoundError("Task", task_id)
        return task

    def _emit_status(self, task: TaskModel) -> None:
        data = {"task_id": task.id, "status": task.status, "hustler_id": task.hustler_id}
        for user_id in {task.poster_id, task.hustler_id} - {None}:
            delivery.spawn(
                gateway.emit_to_user(user_id, "task_status_changed", data),
                label=f"task_status_changed {task.id} -> {user_id}",
            )

    # ---- Create / read ----
    async def create(self, poster: UserModel, fields: dict[str, Any]) -> TaskModel:
        clean = validate_new_task(
            fields,
            min_budget=settings.min_task_budget,
            max_images=settings.max_task_images,
        )
        if not can_post_tasks(poster.user_type):
            raise RoleViolation("Only customers can post tasks")
        async with unit_of_work(self.session, "create task"):
            task = await self.tasks.create(poster.id, clean)
            await self.users.increment_tasks_posted(poster.id)
            await self.session.commit()
        logger.info("Task %s created by %s (budget %s)", task.id, poster.id, task.budget)
        return task

    async def get(self, task_id: str) -> tuple[TaskModel, Optional[UserModel], Optional[UserModel]]:
        task = await self._get_task(task_id)
        users = await self.users.get_many([task.poster_id, task.hustler_id])
        return task, users.get(task.poster_id), users.get(task.hustler_id)

    async def list_tasks(
        self,
        *,
        status: Optional[str] = TaskStatus.OPEN.value,
        category: Optional[str] = None,
        min_budget: Optional[int] = None,
        max_budget: Optional[int] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[TaskModel], int]:
        if status:
            status = parse_enum(TaskStatus, status, "status").value
        if category:
            category = parse_enum(TaskCategory, category, "category").value
        if min_budget is not None and max_budget is not None and min_budget > max_budget:
            raise ValidationError(
                "Invalid budget range",
                errors=[{"field": "min_budget", "message": "must not exceed max_budget"}],
            )
        if page < 1 or not 1 <= limit <= settings.task_page_size_max:
            raise ValidationError(f"page must be >= 1 and limit between 1 and {settings.task_page_size_max}")
        return await self.tasks.search(
            status=status,
            category=category,
            min_budget=min_budget,
            max_budget=max_budget,
            search=(search or "").strip() or None,
            limit=limit,
            offset=(page - 1) * limit,
        )

    async def list_posted(self, user_id: str, status: Optional[str] = None, page: int = 1, limit: int = 20):
        if status:
            status = parse_enum(TaskStatus, status, "status").value
        return await self.tasks.list_for_party(poster_id=user_id, status=status, limit=limit, offset=(page - 1) * limit)

    async def list_assigned(self, user_id: str, status: Optional[str] = None, page: int = 1, limit: int = 20):
        if status:
            status = parse_enum(TaskStatus, status, "status").value
        return await self.tasks.list_for_party(hustler_id=user_id, status=status, limit=limit, offset=(page - 1) * limit)

    # ---- Transitions ----
    async def assign(self, task_id: str, hustler_id: str, actor_id: str) -> tuple[TaskModel, ChatModel]:
        """OPEN -> ASSIGNED, creating the two-member chat and notifying the poster atomically."""
        if actor_id != hustler_id:
            raise Forbidden("You can only accept a task for yourself")
        task = await self._get_task(task_id)
        if task.status != TaskStatus.OPEN.value:
            raise InvalidState("Task is not available for assignment")
        if hustler_id == task.poster_id:
            raise SelfAssignment()
        hustler = await self.users.get_by_id(hustler_id)
        if hustler is None:
            raise NotFoundError("User", hustler_id)
        if not can_accept_tasks(hustler.user_type):
            raise RoleViolation("Only hustlers can accept tasks")

        async with unit_of_work(
            self.session, "assign task", atomic=True, on_rollback=self.notifications.discard_pending
        ):
            if not await self.tasks.claim(task_id, hustler_id):
                raise InvalidState("Task is not available for assignment")
            chat = await self.chats.ensure_chat(task_id, [task.poster_id, hustler_id])
            await self.notifications.notify(
                task.poster_id,
                NotificationType.TASK_ASSIGNED,
                "Task Assigned",
                f'Your task "{task.title}" has been assigned to {hustler.first_name}',
                task_id=task_id,
                chat_id=chat.id,
            )
            await self.session.commit()

        await self.tasks.reload(task)
        logger.info("Task %s assigned to %s (chat %s)", task_id, hustler_id, chat.id)
        self.notifications.dispatch_pending()
        self._emit_status(task)
        return task, chat

    async def update_status(self, task_id: str, new_status: str, actor_id: str) -> TaskModel:
        target = parse_enum(TaskStatus, new_status, "status")
        task = await self._get_task(task_id)
        if actor_id not in (task.poster_id, task.hustler_id):
            raise Forbidden("Not authorized to update this task")
        current = TaskStatus(task.status)
        check_transition(current, target)

        async with unit_of_work(
            self.session, "update task status", on_rollback=self.notifications.discard_pending
        ):
            if not await self.tasks.set_status(task_id, current.value, target.value):
                raise InvalidTransition(f"Task is no longer {current.value}")
            if target is TaskStatus.COMPLETED:
                await self.users.credit_completion(task.hustler_id, task.budget)
            if target is not current:
                other = task.hustler_id if actor_id == task.poster_id else task.poster_id
                ntype = (
                    NotificationType.TASK_COMPLETED
                    if target is TaskStatus.COMPLETED
                    else NotificationType.TASK_STATUS_CHANGED
                )
                await self.notifications.notify(
                    other,
                    ntype,
                    _STATUS_TITLES[target],
                    f'Task "{task.title}" is now {target.value.replace("_", " ").lower()}',
                    task_id=task_id,
                )
            await self.session.commit()

        await self.tasks.reload(task)
        logger.info("Task %s: %s -> %s by %s", task_id, current.value, target.value, actor_id)
        if target is not current:
            self.notifications.dispatch_pending()
            self._emit_status(task)
        return task

    async def update_details(self, task_id: str, actor_id: str, changes: dict[str, Any]) -> TaskModel:
        """Edit an OPEN task. Poster only; budget, status and hustler cannot be changed here."""
        task = await self._get_task(task_id)
        if task.poster_id != actor_id:
            raise Forbidden("Only the poster can edit this task")
        if task.status != TaskStatus.OPEN.value:
            raise InvalidState("Only open tasks can be edited")
        clean = validate_task_changes(changes, max_images=settings.max_task_images)
        async with unit_of_work(self.session, "edit task"):
            if not await self.tasks.update_open(task_id, clean):
                raise InvalidState("Only open tasks can be edited")
            await self.session.commit()
        await self.tasks.reload(task)
        logger.info("Task %s edited by %s: %s", task_id, actor_id, ", ".join(sorted(clean)))
        return task

    async def delete(self, task_id: str, actor_id: str) -> None:
        task = await self._get_task(task_id)
        if task.poster_id != actor_id:
            raise Forbidden("Only the poster can delete this task")
        if task.status != TaskStatus.OPEN.value:
            raise InvalidState("Only open tasks can be deleted")
        async with unit_of_work(self.session, "delete task"):
            if not await self.tasks.delete_open(task_id):
                raise InvalidState("Only open tasks can be deleted")
            await self.session.commit()
        logger.info("Task %s deleted by %s", task_id, actor_id)
