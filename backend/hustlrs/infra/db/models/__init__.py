"""Database models."""
from hustlrs.infra.db.models.user import UserModel
from hustlrs.infra.db.models.task import TaskModel
from hustlrs.infra.db.models.chat import ChatModel, ChatMemberModel, MessageModel
from hustlrs.infra.db.models.notification import NotificationModel
from hustlrs.infra.db.models.review import ReviewModel
from hustlrs.infra.db.models.verification import VerificationCodeModel
from hustlrs.infra.db.models.device import DeviceModel

__all__ = [
    "UserModel",
    "TaskModel",
    "ChatModel",
    "ChatMemberModel",
    "MessageModel",
    "NotificationModel",
    "ReviewModel",
    "VerificationCodeModel",
    "DeviceModel",
]
