"""
tabroom/exceptions.py
Typed exceptions for the draw, allocation and role reservation engines.

Every domain error carries an HTTP status, a machine-readable code and a
retryable flag so callers can branch on the kind of failure:
- client-fixable input problems (ValidationError)
- access problems (ForbiddenError, NotFoundError)
- roster state problems (CapacityError, RoundPublishedError)
- lost races (ReservationConflictError, RoleTakenError) -> retry
- storage failures (StorageFailureError) -> generic, logged
"""


class TabroomError(Exception):
    """Base exception for the tabroom engine"""
    status_code: int = 500
    code: str = "TABROOM_ERROR"
    retryable: bool = False

    def __init__(self, message: str, status_code: int = None, code: str = None):
        self.message = message
        if status_code:
            self.status_code = status_code
        if code:
            self.code = code
        super().__init__(self.message)


class ValidationError(TabroomError):
    """
    Raised when a request is malformed.

    Examples:
    - Empty or unknown role list
    - REPLY_SPEAKER requested together with THIRD_SPEAKER
    - A judge asking for a speaking role
    """
    status_code = 400
    code = "VALIDATION_ERROR"

    def __init__(self, message: str = "Invalid request"):
        super().__init__(message)


class ForbiddenError(TabroomError):
    """Raised when the requester is neither a judge nor a debater in the debate."""
    status_code = 403
    code = "NOT_ASSIGNED"

    def __init__(self, message: str = "You are not assigned to this debate"):
        super().__init__(message)


class NotFoundError(TabroomError):
    """
    Raised when requested resource doesn't exist.
    """
    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, resource: str, identifier=None):
        message = f"{resource} not found"
        if identifier is not None:
            message = f"{resource} {identifier} not found"
        super().__init__(message)


class CapacityError(TabroomError):
    """Raised when the team already has three debaters in the room."""
    status_code = 409
    code = "TEAM_FULL"

    def __init__(self, max_debaters: int = 3):
        super().__init__(f"Your team already has {max_debaters} debaters in this room")


class ReservationConflictError(TabroomError):
    """Raised when a concurrent reservation won the race. Safe to retry."""
    status_code = 409
    code = "RESERVATION_CONFLICT"
    retryable = True

    def __init__(self, message: str = "The debate roster changed while joining. Please try again."):
        super().__init__(message)


class RoleTakenError(ReservationConflictError):
    """Raised when another team member already holds the requested role."""
    code = "ROLE_TAKEN"

    def __init__(self, role=None):
        if role is not None:
            label = getattr(role, "value", role)
            message = f"{label} is already taken by another team member. Please choose another role."
        else:
            message = "That role was just taken by another user. Please choose another role."
        super().__init__(message)
        self.role = role


class InsufficientTeamsError(TabroomError):
    """Raised when fewer than two teams are available for a draw."""
    status_code = 400
    code = "INSUFFICIENT_TEAMS"

    def __init__(self, message: str = "At least 2 teams are required for a draw"):
        super().__init__(message)


class RoundPublishedError(TabroomError):
    """Raised when trying to regenerate or reallocate a published round."""
    status_code = 423
    code = "ROUND_PUBLISHED"

    def __init__(self, message: str = "Cannot modify a published round"):
        super().__init__(message)


class StorageFailureError(TabroomError):
    """Raised when the database fails for a reason that is not a domain rule."""
    status_code = 500
    code = "STORAGE_FAILURE"

    def __init__(self, message: str = "Failed to reserve role"):
        super().__init__(message)
