"""
Request Correlation Middleware.

Adds correlation IDs to every HTTP request so log lines produced while
handling one webhook delivery can be grouped together.
"""

import uuid
from contextvars import ContextVar
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

request_id_var: ContextVar[str] = ContextVar("request_id", default="")


def get_request_id() -> str:
    """Get the current request ID."""
    return request_id_var.get()


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """
    Middleware to add correlation IDs to all requests.

    - Uses X-Request-ID if the caller sent one
    - Falls back to X-GitHub-Delivery so webhook logs match the provider's delivery log
    - Otherwise generates a new UUID
    - Returns the ID in the X-Request-ID response header
    """

    HEADER_NAME = "X-Request-ID"
    DELIVERY_HEADER = "X-GitHub-Delivery"

    async def dispatch(
        self,
        request: Request,
        call_next: Callable,
    ) -> Response:
        request_id = (
            request.headers.get(self.HEADER_NAME)
            or request.headers.get(self.DELIVERY_HEADER)
            or str(uuid.uuid4())
        )

        token = request_id_var.set(request_id)
        try:
            request.state.request_id = request_id
            response = await call_next(request)
            response.headers[self.HEADER_NAME] = request_id
            return response
        finally:
            request_id_var.reset(token)


class CorrelationIdFilter:
    """
    Logging filter that adds request_id to log records.

    Usage:
        handler = logging.StreamHandler()
        handler.addFilter(CorrelationIdFilter())
    """

    def filter(self, record) -> bool:
        record.request_id = request_id_var.get() or "-"
        return True
