"""
Utilities module: Exceptions and schemas.
"""

from shared.utils.exceptions import (
    AppException,
    UnauthorizedError,
    WebhookRejectedError,
    MalformedPayloadError,
    NotFoundError,
)

__all__ = [
    "AppException",
    "UnauthorizedError",
    "WebhookRejectedError",
    "MalformedPayloadError",
    "NotFoundError",
]
