"""
Rate limiting utilities using slowapi.
Protects the public webhook endpoint from abuse.

Usage in a router:
    from shared.security.rate_limit import limiter

    @router.post("/webhook")
    @limiter.limit(settings.webhook_rate_limit)
    async def webhook(request: Request): ...
"""

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from shared.config.logging import get_logger

logger = get_logger(__name__)

# Limiter keyed by client IP (in-memory storage)
limiter = Limiter(key_func=get_remote_address)


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """
    Handler for rate limit exceeded errors.
    Returns a JSON response with retry information.
    """
    logger.warning(
        "Rate limit exceeded",
        path=request.url.path,
        client=get_remote_address(request),
        limit=str(exc.detail),
    )
    return JSONResponse(
        status_code=429,
        content={
            "detail": "Rate limit exceeded. Try again later.",
            "limit": str(exc.detail),
        },
        headers={"Retry-After": str(exc.limit.limit.get_expiry())},
    )
