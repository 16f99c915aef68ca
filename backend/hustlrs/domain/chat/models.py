"""Chat domain: message types and content rules."""
import enum
from typing import Optional

from hustlrs.domain.common.errors import InvalidContent


class MessageType(str, enum.Enum):
    TEXT = "TEXT"
    IMAGE = "IMAGE"
    SYSTEM = "SYSTEM"


CLIENT_MESSAGE_TYPES = frozenset({MessageType.TEXT, MessageType.IMAGE})


def chat_channel(chat_id: str) -> str:
    return f"chat_{chat_id}"


def validate_message(
    content: Optional[str],
    message_type: str,
    image_url: Optional[str],
    *,
    max_length: int,
) -> tuple[str, MessageType]:
    """Return (trimmed content, type) or raise InvalidContent."""
    try:
        mtype = MessageType(str(message_type).upper())
    except ValueError:
        raise InvalidContent(f"Unsupported message type: {message_type}")
    if mtype not in CLIENT_MESSAGE_TYPES:
        raise InvalidContent(f"{mtype.value} messages cannot be sent by users")

    text = (content or "").strip()
    if len(text) > max_length:
        raise InvalidContent(f"Message must be at most {max_length} characters")
    if mtype is MessageType.TEXT and not text:
        raise InvalidContent("Message content is required")
    if mtype is MessageType.IMAGE and not image_url:
        raise InvalidContent("Image messages require an image URL")
    return text, mtype
