"""Plain-dict views of models for API responses and realtime payloads."""
from datetime import datetime
from typing import Any, Optional

from hustlrs.infra.db.models.chat import MessageModel
from hustlrs.infra.db.models.notification import NotificationModel
from hustlrs.infra.db.models.review import ReviewModel
from hustlrs.infra.db.models.task import TaskModel
from hustlrs.infra.db.models.user import UserModel


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def user_summary(user: Optional[UserModel]) -> Optional[dict[str, Any]]:
    if user is None:
        return None
    return {
        "id": user.id,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "avatar_url": user.avatar_url,
        "user_type": user.user_type,
        "rating": user.average_rating,
        "total_rating": user.total_rating,
    }


def user_to_dict(user: UserModel, *, private: bool = False) -> dict[str, Any]:
    data = {
        **user_summary(user),
        "bio": user.bio,
        "skills": user.skills or [],
        "city": user.city,
        "state": user.state,
        "country": user.country,
        "is_verified": user.is_verified,
        "tasks_completed": user.tasks_completed,
        "tasks_posted": user.tasks_posted,
        "created_at": _iso(user.created_at),
    }
    if private:
        data.update(
            {
                "email": user.email,
                "phone_number": user.phone_number,
                "address": user.address,
                "latitude": user.latitude,
                "longitude": user.longitude,
                "total_earnings": user.total_earnings,
                "last_login_at": _iso(user.last_login_at),
            }
        )
    return data


def task_to_dict(
    task: TaskModel,
    poster: Optional[UserModel] = None,
    hustler: Optional[UserModel] = None,
) -> dict[str, Any]:
    data = {
        "id": task.id,
        "title": task.title,
        "description": task.description,
        "category": task.category,
        "budget": task.budget,
        "status": task.status,
        "priority": task.priority,
        "deadline": _iso(task.deadline),
        "latitude": task.latitude,
        "longitude": task.longitude,
        "address": task.address,
        "city": task.city,
        "state": task.state,
        "images": task.images or [],
        "poster_id": task.poster_id,
        "hustler_id": task.hustler_id,
        "created_at": _iso(task.created_at),
        "updated_at": _iso(task.updated_at),
    }
    if poster is not None:
        data["poster"] = user_summary(poster)
    if hustler is not None:
        data["hustler"] = user_summary(hustler)
    return data


def message_to_dict(msg: MessageModel, sender: Optional[UserModel] = None) -> dict[str, Any]:
    data = {
        "id": msg.id,
        "chat_id": msg.chat_id,
        "sender_id": msg.sender_id,
        "content": msg.content,
        "type": msg.type,
        "image_url": msg.image_url,
        "is_read": msg.is_read,
        "sequence": msg.sequence,
        "created_at": _iso(msg.created_at),
    }
    if sender is not None:
        data["sender"] = {
            "id": sender.id,
            "first_name": sender.first_name,
            "last_name": sender.last_name,
            "avatar_url": sender.avatar_url,
        }
    return data


def notification_to_dict(n: NotificationModel) -> dict[str, Any]:
    return {
        "id": n.id,
        "type": n.type,
        "title": n.title,
        "message": n.message,
        "task_id": n.task_id,
        "chat_id": n.chat_id,
        "is_read": n.is_read,
        "created_at": _iso(n.created_at),
    }


def review_to_dict(review: ReviewModel, author: Optional[UserModel] = None) -> dict[str, Any]:
    data = {
        "id": review.id,
        "task_id": review.task_id,
        "author_id": review.author_id,
        "target_id": review.target_id,
        "rating": review.rating,
        "comment": review.comment,
        "created_at": _iso(review.created_at),
    }
    if author is not None:
        data["author"] = user_summary(author)
    return data


def pagination(page: int, limit: int, total: int) -> dict[str, int]:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": (total + limit - 1) // limit if limit else 0,
    }
