"""Task domain: enums, the status transition table, and field validation."""
import enum
from datetime import datetime, timezone
from typing import Any, Optional

from hustlrs.domain.common.errors import InvalidTransition, ValidationError


class TaskCategory(str, enum.Enum):
    SHOPPING = "SHOPPING"
    CLEANING = "CLEANING"
    BARBING = "BARBING"
    WRITING = "WRITING"
    DELIVERY = "DELIVERY"
    REPAIRS = "REPAIRS"
    OTHER = "OTHER"


class TaskStatus(str, enum.Enum):
    OPEN = "OPEN"
    ASSIGNED = "ASSIGNED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class TaskPriority(str, enum.Enum):
    LOW = "LOW"
    NORMAL = "NORMAL"
    HIGH = "HIGH"
    URGENT = "URGENT"


# Higher rank lists first.
PRIORITY_RANK: dict[TaskPriority, int] = {
    TaskPriority.LOW: 0,
    TaskPriority.NORMAL: 1,
    TaskPriority.HIGH: 2,
    TaskPriority.URGENT: 3,
}

TERMINAL_STATUSES = frozenset({TaskStatus.COMPLETED, TaskStatus.CANCELLED})

# OPEN leaves only through assign(); terminal states never leave.
ALLOWED_TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.OPEN: frozenset(),
    TaskStatus.ASSIGNED: frozenset({TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED, TaskStatus.CANCELLED}),
    TaskStatus.IN_PROGRESS: frozenset({TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED, TaskStatus.CANCELLED}),
    TaskStatus.COMPLETED: frozenset(),
    TaskStatus.CANCELLED: frozenset(),
}


def check_transition(current: TaskStatus, target: TaskStatus) -> None:
    """Raise InvalidTransition unless current -> target is in the table."""
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTransition(f"Cannot change task status from {current.value} to {target.value}")


def parse_enum(enum_cls: type[enum.Enum], value: Any, field: str) -> Any:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).upper())
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(
            f"Invalid {field}",
            errors=[{"field": field, "message": f"must be one of {allowed}"}],
        )


# Fields a poster may change on an OPEN task. Budget, status and hustler are fixed.
EDITABLE_TASK_FIELDS = frozenset(
    {
        "title",
        "description",
        "category",
        "priority",
        "deadline",
        "latitude",
        "longitude",
        "address",
        "city",
        "state",
        "images",
    }
)


def _bounded_text(value: Any, field: str, low: int, high: int, errors: list[dict[str, str]]) -> str:
    text = (value or "").strip()
    if not low <= len(text) <= high:
        errors.append({"field": field, "message": f"must be between {low} and {high} characters"})
    return text


def _enum_value(enum_cls: type[enum.Enum], value: Any, field: str, errors: list[dict[str, str]]) -> Optional[str]:
    try:
        return parse_enum(enum_cls, value, field).value
    except ValidationError as e:
        errors.extend(e.errors or [])
        return None


def _check_coordinates(fields: dict[str, Any], errors: list[dict[str, str]]) -> None:
    latitude = fields.get("latitude")
    longitude = fields.get("longitude")
    if latitude is not None and not -90 <= latitude <= 90:
        errors.append({"field": "latitude", "message": "must be between -90 and 90"})
    if longitude is not None and not -180 <= longitude <= 180:
        errors.append({"field": "longitude", "message": "must be between -180 and 180"})


def _check_images(value: Any, max_images: int, errors: list[dict[str, str]]) -> list[str]:
    images = list(value or [])
    if len(images) > max_images:
        errors.append({"field": "images", "message": f"at most {max_images} images"})
    return images


def _naive_utc(deadline: Optional[datetime]) -> Optional[datetime]:
    if deadline is not None and deadline.tzinfo is not None:
        return deadline.astimezone(timezone.utc).replace(tzinfo=None)
    return deadline


def validate_new_task(
    fields: dict[str, Any],
    *,
    min_budget: int,
    max_images: int,
) -> dict[str, Any]:
    """Check and normalize task creation fields. All problems are reported together."""
    errors: list[dict[str, str]] = []

    title = _bounded_text(fields.get("title"), "title", 5, 100, errors)
    description = _bounded_text(fields.get("description"), "description", 10, 1000, errors)
    category = _enum_value(TaskCategory, fields.get("category"), "category", errors)
    priority = _enum_value(TaskPriority, fields.get("priority") or TaskPriority.NORMAL, "priority", errors)

    budget = fields.get("budget")
    if isinstance(budget, bool) or not isinstance(budget, int):
        errors.append({"field": "budget", "message": "must be an integer"})
    elif budget < min_budget:
        errors.append({"field": "budget", "message": f"must be at least {min_budget}"})

    _check_coordinates(fields, errors)
    images = _check_images(fields.get("images"), max_images, errors)

    if errors:
        raise ValidationError("Validation failed", errors=errors)

    return {
        "title": title,
        "description": description,
        "category": category,
        "priority": priority,
        "budget": budget,
        "latitude": fields.get("latitude"),
        "longitude": fields.get("longitude"),
        "address": fields.get("address"),
        "city": fields.get("city"),
        "state": fields.get("state"),
        "images": images,
        "deadline": _naive_utc(fields.get("deadline")),
    }


def validate_task_changes(changes: dict[str, Any], *, max_images: int) -> dict[str, Any]:
    """Check and normalize an edit of an OPEN task.

    Only the keys present are checked and returned, with the same rules as
    creation. Any key outside EDITABLE_TASK_FIELDS (budget, status,
    hustler_id, ...) is reported as a field error.
    """
    if not changes:
        raise ValidationError("No changes provided")
    errors: list[dict[str, str]] = [
        {"field": field, "message": "cannot be changed"}
        for field in sorted(set(changes) - EDITABLE_TASK_FIELDS)
    ]
    clean: dict[str, Any] = {}

    if "title" in changes:
        clean["title"] = _bounded_text(changes["title"], "title", 5, 100, errors)
    if "description" in changes:
        clean["description"] = _bounded_text(changes["description"], "description", 10, 1000, errors)
    if "category" in changes:
        clean["category"] = _enum_value(TaskCategory, changes["category"], "category", errors)
    if "priority" in changes:
        clean["priority"] = _enum_value(TaskPriority, changes["priority"], "priority", errors)
    if "images" in changes:
        clean["images"] = _check_images(changes["images"], max_images, errors)
    if "deadline" in changes:
        clean["deadline"] = _naive_utc(changes["deadline"])
    _check_coordinates(changes, errors)
    for field in ("latitude", "longitude", "address", "city", "state"):
        if field in changes:
            clean[field] = changes[field]

    if errors:
        raise ValidationError("Validation failed", errors=errors)
    return clean
