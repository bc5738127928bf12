"""
Service-level error taxonomy.

Services raise these; the HTTP layer maps them to status codes
(see the exception handlers registered in todo_api.main).
"""


class TodoApiError(Exception):
    """Base class for errors raised by application services."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(TodoApiError):
    """Referenced feature, override, rule or owner does not exist."""


class ValidationError(TodoApiError):
    """Input rejected before anything was persisted."""


class InvalidCronExpression(ValidationError):
    """Cron expression could not be parsed."""

    def __init__(self, expression: str, reason: str = ""):
        message = f"Invalid cron expression: {expression!r}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)
        self.expression = expression


class ConcurrentUpdateConflict(TodoApiError):
    """Optimistic concurrency check failed; re-read and recompute before retrying."""
