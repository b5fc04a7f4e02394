"""Request context management using contextvars.

Each request gets a unique ID, and progression calls bind the enrollment
key (user_id, course_id) they are working on, so every log line emitted
while a pointer is advanced can be traced back to its enrollment without
passing those values through every call.
"""

from contextvars import ContextVar, Token
from typing import Any
from uuid import UUID, uuid4


# Context variables for request tracking
request_id_var: ContextVar[str] = ContextVar("request_id", default="")
user_id_var: ContextVar[str | None] = ContextVar("user_id", default=None)
course_id_var: ContextVar[str | None] = ContextVar("course_id", default=None)
correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)


def generate_request_id() -> str:
    """Generate a new unique request ID."""
    return str(uuid4())


def get_request_id() -> str:
    """Get the current request ID."""
    return request_id_var.get()


def set_request_id(request_id: str | None = None) -> str:
    """Set the request ID for the current context.

    Args:
        request_id: Optional request ID. If not provided, generates a new one.

    Returns:
        The request ID that was set.
    """
    rid = request_id or generate_request_id()
    request_id_var.set(rid)
    return rid


def get_user_id() -> str | None:
    """Get the current user ID."""
    return user_id_var.get()


def set_user_id(user_id: str | UUID | None) -> None:
    """Set the user ID for the current context."""
    user_id_var.set(str(user_id) if user_id is not None else None)


def get_course_id() -> str | None:
    """Get the current course ID."""
    return course_id_var.get()


def set_course_id(course_id: str | UUID | None) -> None:
    """Set the course ID for the current context."""
    course_id_var.set(str(course_id) if course_id is not None else None)


def get_correlation_id() -> str | None:
    """Get the current correlation ID."""
    return correlation_id_var.get()


def set_correlation_id(correlation_id: str | None) -> None:
    """Set the correlation ID for the current context."""
    correlation_id_var.set(correlation_id)


def get_context() -> dict[str, Any]:
    """Get all non-empty context variables as a dictionary."""
    context: dict[str, Any] = {}

    request_id = get_request_id()
    if request_id:
        context["request_id"] = request_id

    user_id = get_user_id()
    if user_id:
        context["user_id"] = user_id

    course_id = get_course_id()
    if course_id:
        context["course_id"] = course_id

    correlation_id = get_correlation_id()
    if correlation_id:
        context["correlation_id"] = correlation_id

    return context


def clear_context() -> None:
    """Clear all context variables.

    Called at the end of each request so values never leak between requests.
    """
    request_id_var.set("")
    user_id_var.set(None)
    course_id_var.set(None)
    correlation_id_var.set(None)


class EnrollmentContext:
    """Bind an enrollment key to the log context for a block of work.

    Usage:
        with EnrollmentContext(user_id, course_id):
            logger.info("enrollment_pointer_advanced")  # includes both ids

    Previous values are restored on exit, so nested blocks for different
    enrollments behave.
    """

    def __init__(self, user_id: UUID, course_id: UUID) -> None:
        self.user_id = user_id
        self.course_id = course_id
        self._user_token: Token[str | None] | None = None
        self._course_token: Token[str | None] | None = None

    def __enter__(self) -> "EnrollmentContext":
        self._user_token = user_id_var.set(str(self.user_id))
        self._course_token = course_id_var.set(str(self.course_id))
        return self

    def __exit__(self, *_: object) -> None:
        if self._course_token is not None:
            course_id_var.reset(self._course_token)
        if self._user_token is not None:
            user_id_var.reset(self._user_token)
