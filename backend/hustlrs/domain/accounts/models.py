"""Account roles and the role policies built on them."""
import enum


class UserType(str, enum.Enum):
    """Marketplace role of a user."""

    CUSTOMER = "CUSTOMER"
    HUSTLER = "HUSTLER"
    BOTH = "BOTH"


class VerificationPurpose(str, enum.Enum):
    """Why a verification code was issued."""

    REGISTRATION = "registration"
    INACTIVITY = "inactivity"


# Each policy must decide every UserType; _check_exhaustive runs at import.
_CAN_POST_TASKS: dict[UserType, bool] = {
    UserType.CUSTOMER: True,
    UserType.HUSTLER: False,
    UserType.BOTH: True,
}

_CAN_ACCEPT_TASKS: dict[UserType, bool] = {
    UserType.CUSTOMER: False,
    UserType.HUSTLER: True,
    UserType.BOTH: True,
}


def _check_exhaustive(name: str, policy: dict[UserType, bool]) -> None:
    missing = set(UserType) - set(policy)
    if missing:
        raise RuntimeError(f"{name} has no decision for {sorted(m.value for m in missing)}")


_check_exhaustive("can_post_tasks", _CAN_POST_TASKS)
_check_exhaustive("can_accept_tasks", _CAN_ACCEPT_TASKS)


def parse_user_type(value) -> UserType:
    """Coerce a stored or submitted role to UserType. Unknown values raise ValueError."""
    if isinstance(value, UserType):
        return value
    return UserType(str(value).upper())


def can_post_tasks(user_type) -> bool:
    return _CAN_POST_TASKS[parse_user_type(user_type)]


def can_accept_tasks(user_type) -> bool:
    return _CAN_ACCEPT_TASKS[parse_user_type(user_type)]
