"""
Execution and request context.

ExecutionContext is passed explicitly into policy resolution, so whether
the caller runs as a console process or is in the middle of a restore is
never read from process-wide state.
"""
import uuid
from contextvars import ContextVar
from dataclasses import dataclass, replace
from typing import Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware


@dataclass(frozen=True)
class ExecutionContext:
    """Per-call auditing context."""
    running_in_console: bool = False
    restoring: bool = False

    @classmethod
    def detect(cls) -> "ExecutionContext":
        """Treat calls made outside an HTTP request as console calls."""
        return cls(running_in_console=get_current_request() is None)

    def for_restore(self) -> "ExecutionContext":
        return replace(self, restoring=True)


# Request being served by the current task, if any
request_ctx: ContextVar[Optional[Request]] = ContextVar("audit_request", default=None)
request_id_ctx: ContextVar[str] = ContextVar("audit_request_id", default="")


def get_current_request() -> Optional[Request]:
    return request_ctx.get()


def get_request_id() -> str:
    return request_id_ctx.get()


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Expose the current request to the context resolvers.

    Honours an incoming X-Request-ID header or generates one, and echoes it
    back on the response.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("x-request-id", str(uuid.uuid4()))

        request_token = request_ctx.set(request)
        id_token = request_id_ctx.set(request_id)
        try:
            response = await call_next(request)
        finally:
            request_ctx.reset(request_token)
            request_id_ctx.reset(id_token)

        response.headers["X-Request-ID"] = request_id
        return response
