"""Request middleware: request ids, enrollment keys and access logs."""

import time
from collections.abc import Awaitable, Callable
from uuid import UUID

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from src.core.context import (
    clear_context,
    set_correlation_id,
    set_course_id,
    set_request_id,
    set_user_id,
)


logger = structlog.get_logger(__name__)

ENROLLMENTS_PREFIX = "/v1/enrollments/"
DEFAULT_EXCLUDED_PATHS = ("/health",)


def enrollment_key_from_path(path: str) -> tuple[UUID, UUID] | None:
    """Return (user_id, course_id) for /v1/enrollments/{user}/{course}/... paths."""
    if not path.startswith(ENROLLMENTS_PREFIX):
        return None
    segments = path[len(ENROLLMENTS_PREFIX) :].split("/")
    if len(segments) < 2:
        return None
    try:
        return UUID(segments[0]), UUID(segments[1])
    except ValueError:
        return None


def client_address(request: Request) -> str | None:
    """Client IP, preferring the reverse proxy headers."""
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    return request.headers.get("x-real-ip") or (
        request.client.host if request.client else None
    )


def elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Binds per-request context for structured logs.

    The request id comes from X-Request-ID (or is generated) and is echoed
    back. X-Correlation-ID is bound when present. Requests addressing a
    single enrollment also bind its user and course ids.
    """

    REQUEST_ID_HEADER = "X-Request-ID"
    CORRELATION_ID_HEADER = "X-Correlation-ID"

    def __init__(
        self,
        app: ASGIApp,
        log_requests: bool = True,
        exclude_paths: list[str] | None = None,
    ) -> None:
        super().__init__(app)
        self.log_requests = log_requests
        self.exclude_paths = tuple(exclude_paths or DEFAULT_EXCLUDED_PATHS)

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        started = time.perf_counter()
        path = request.url.path

        request.state.request_id = set_request_id(
            request.headers.get(self.REQUEST_ID_HEADER)
        )
        set_correlation_id(request.headers.get(self.CORRELATION_ID_HEADER))
        key = enrollment_key_from_path(path)
        if key is not None:
            set_user_id(key[0])
            set_course_id(key[1])

        access_log = self.log_requests and not path.startswith(self.exclude_paths)
        if access_log:
            logger.info(
                "request_started",
                method=request.method,
                path=path,
                client_ip=client_address(request),
            )

        try:
            response = await call_next(request)
            if access_log:
                log = logger.warning if response.status_code >= 400 else logger.info
                log(
                    "request_completed",
                    method=request.method,
                    path=path,
                    status_code=response.status_code,
                    duration_ms=elapsed_ms(started),
                )
            response.headers[self.REQUEST_ID_HEADER] = request.state.request_id
            return response
        except Exception as e:
            logger.exception(
                "request_failed",
                method=request.method,
                path=path,
                error_type=type(e).__name__,
                duration_ms=elapsed_ms(started),
            )
            raise
        finally:
            clear_context()


__all__ = ["RequestContextMiddleware", "enrollment_key_from_path"]
