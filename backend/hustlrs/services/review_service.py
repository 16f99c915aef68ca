"""Reviews and the user rating aggregate.

Policy: users.rating is the running sum of stars and users.total_rating the
number of reviews, so the average is rating / total_rating.
"""
import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from hustlrs.domain.common.errors import DuplicateEntry, Forbidden, InvalidState, NotFoundError, ValidationError
from hustlrs.domain.notifications.models import NotificationType
from hustlrs.domain.tasks.models import TaskStatus
from hustlrs.infra.db.models.review import ReviewModel
from hustlrs.infra.db.models.user import UserModel
from hustlrs.infra.db.repositories.review_repo import ReviewRepository
from hustlrs.infra.db.repositories.task_repo import TaskRepository
from hustlrs.infra.db.repositories.user_repo import UserRepository
from hustlrs.services.notification_service import NotificationDispatcher
from hustlrs.services.store import unit_of_work

logger = logging.getLogger(__name__)


class ReviewService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.reviews = ReviewRepository(session)
        self.tasks = TaskRepository(session)
        self.users = UserRepository(session)
        self.notifications = NotificationDispatcher(session)

    async def create(self, task_id: str, author: UserModel, rating: int, comment: Optional[str] = None) -> ReviewModel:
        if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
            raise ValidationError("Rating must be an integer between 1 and 5")
        task = await self.tasks.get(task_id)
        if task is None:
            raise NotFoundError("Task", task_id)
        if author.id not in (task.poster_id, task.hustler_id):
            raise Forbidden("Only the poster or the hustler can review this task")
        if task.status != TaskStatus.COMPLETED.value:
            raise InvalidState("Only completed tasks can be reviewed")
        if await self.reviews.exists(task_id, author.id):
            raise DuplicateEntry("You have already reviewed this task")
        target_id = task.hustler_id if author.id == task.poster_id else task.poster_id

        async with unit_of_work(self.session, "create review", on_rollback=self.notifications.discard_pending):
            review = await self.reviews.create(task_id, author.id, target_id, rating, (comment or "").strip() or None)
            await self.users.add_rating(target_id, rating)
            await self.notifications.notify(
                target_id,
                NotificationType.REVIEW_RECEIVED,
                "New Review",
                f'{author.first_name} rated you {rating}/5 for "{task.title}"',
                task_id=task_id,
            )
            await self.session.commit()

        logger.info("Review %s: %s rated %s %d/5 on task %s", review.id, author.id, target_id, rating, task_id)
        self.notifications.dispatch_pending()
        return review

    async def list_for_user(self, user_id: str, limit: int = 20, offset: int = 0) -> list[tuple[ReviewModel, Optional[UserModel]]]:
        if await self.users.get_by_id(user_id) is None:
            raise NotFoundError("User", user_id)
        reviews = await self.reviews.list_for_target(user_id, limit=limit, offset=offset)
        authors = await self.users.get_many(r.author_id for r in reviews)
        return [(r, authors.get(r.author_id)) for r in reviews]
