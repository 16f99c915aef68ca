"""Domain error types.

Every error carries the HTTP status it is rendered with, so routes can let
them propagate and the exception handlers in main.py build the envelope.
"""
from typing import Any, Optional


class DomainError(Exception):
    """Base domain error."""

    status_code: int = 400

    def __init__(self, message: str, errors: Optional[list[Any]] = None):
        self.message = message
        self.errors = errors
        super().__init__(message)


class ValidationError(DomainError):
    """Malformed or out-of-range input."""

    status_code = 400


class InvalidContent(ValidationError):
    """Message content empty, too long, or of a type clients may not send."""


class SelfAssignment(ValidationError):
    """A poster tried to take their own task."""

    def __init__(self, message: str = "You cannot assign your own task"):
        super().__init__(message)


class Unauthorized(DomainError):
    """Missing or invalid identity."""

    status_code = 401

    def __init__(self, message: str = "Could not validate credentials"):
        super().__init__(message)


class Forbidden(DomainError):
    """Identity is known but not allowed to act on the resource."""

    status_code = 403

    def __init__(self, message: str = "Not authorized"):
        super().__init__(message)


class RoleViolation(Forbidden):
    """The user's role does not permit the operation."""


class NotFoundError(DomainError):
    """Resource not found."""

    status_code = 404

    def __init__(self, resource: str, identifier: str):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} not found")


class InvalidState(DomainError):
    """Operation not legal in the task's current state."""

    status_code = 400


class InvalidTransition(InvalidState):
    """Requested status change is not in the transition table."""


class DuplicateEntry(DomainError):
    """Unique constraint violation."""

    status_code = 409

    def __init__(self, message: str = "Duplicate entry"):
        super().__init__(message)


class ConsistencyError(DomainError):
    """A multi-step write failed part way and was rolled back."""

    status_code = 500


class UpstreamUnavailable(DomainError):
    """Store or identity provider unreachable."""

    status_code = 503

    def __init__(self, message: str = "Service temporarily unavailable"):
        super().__init__(message)
