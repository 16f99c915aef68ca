"""Task routes: create, browse, edit, assign, status changes, reviews."""
import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from hustlrs.api.deps import get_current_user, get_db
from hustlrs.api.envelope import ok
from hustlrs.infra.db.models.user import UserModel
from hustlrs.services.review_service import ReviewService
from hustlrs.services.serializers import pagination, review_to_dict, task_to_dict
from hustlrs.services.task_lifecycle import TaskLifecycleService

logger = logging.getLogger(__name__)

router = APIRouter()


class CreateTaskRequest(BaseModel):
    title: str
    description: str
    category: str
    budget: int
    priority: Optional[str] = None
    deadline: Optional[datetime] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    images: list[str] = Field(default_factory=list)


class UpdateTaskRequest(BaseModel):
    # Budget, status and hustler are not editable; unknown keys are a 400.
    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    priority: Optional[str] = None
    deadline: Optional[datetime] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    images: Optional[list[str]] = None


class UpdateStatusRequest(BaseModel):
    status: str


class ReviewRequest(BaseModel):
    rating: int
    comment: Optional[str] = Field(default=None, max_length=1000)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_task(
    request: CreateTaskRequest,
    current_user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    task = await TaskLifecycleService(db).create(current_user, request.model_dump())
    return ok(task_to_dict(task), message="Task created successfully")


@router.get("")
async def list_tasks(
    status: Optional[str] = "OPEN",
    category: Optional[str] = None,
    min_budget: Optional[int] = Query(default=None, alias="minBudget", ge=0),
    max_budget: Optional[int] = Query(default=None, alias="maxBudget", ge=0),
    search: Optional[str] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1),
    current_user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Browse tasks. Highest priority first, then newest."""
    tasks, total = await TaskLifecycleService(db).list_tasks(
        status=status,
        category=category,
        min_budget=min_budget,
        max_budget=max_budget,
        search=search,
        page=page,
        limit=limit,
    )
    return ok({"tasks": [task_to_dict(t) for t in tasks], "pagination": pagination(page, limit, total)})


@router.get("/user/posted")
async def my_posted_tasks(
    status: Optional[str] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=50),
    current_user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    tasks, total = await TaskLifecycleService(db).list_posted(current_user.id, status, page, limit)
    return ok({"tasks": [task_to_dict(t) for t in tasks], "pagination": pagination(page, limit, total)})


@router.get("/user/assigned")
async def my_assigned_tasks(
    status: Optional[str] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=50),
    current_user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    tasks, total = await TaskLifecycleService(db).list_assigned(current_user.id, status, page, limit)
    return ok({"tasks": [task_to_dict(t) for t in tasks], "pagination": pagination(page, limit, total)})


@router.get("/{task_id}")
async def get_task(
    task_id: str,
    current_user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    task, poster, hustler = await TaskLifecycleService(db).get(task_id)
    return ok(task_to_dict(task, poster, hustler))


@router.put("/{task_id}")
async def update_task(
    task_id: str,
    request: UpdateTaskRequest,
    current_user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    task = await TaskLifecycleService(db).update_details(
        task_id, current_user.id, request.model_dump(exclude_unset=True)
    )
    return ok(task_to_dict(task), message="Task updated successfully")


@router.put("/{task_id}/assign")
async def assign_task(
    task_id: str,
    current_user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """The caller takes the task as its hustler."""
    task, chat = await TaskLifecycleService(db).assign(task_id, current_user.id, current_user.id)
    return ok({**task_to_dict(task), "chat_id": chat.id}, message="Task assigned successfully")


@router.put("/{task_id}/status")
async def update_task_status(
    task_id: str,
    request: UpdateStatusRequest,
    current_user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    task = await TaskLifecycleService(db).update_status(task_id, request.status, current_user.id)
    return ok(task_to_dict(task), message="Task status updated successfully")


@router.delete("/{task_id}")
async def delete_task(
    task_id: str,
    current_user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await TaskLifecycleService(db).delete(task_id, current_user.id)
    return ok(message="Task deleted successfully")


@router.post("/{task_id}/reviews", status_code=status.HTTP_201_CREATED)
async def review_task(
    task_id: str,
    request: ReviewRequest,
    current_user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    review = await ReviewService(db).create(task_id, current_user, request.rating, request.comment)
    return ok(review_to_dict(review), message="Review submitted")
