"""
Security module: Token authentication, request contexts, webhook signatures, rate limiting.
"""

from shared.security.auth import (
    Principal,
    TokenAuthenticator,
    extract_token,
    get_authenticator,
    sign_jwt,
    verify_jwt,
    current_principal,
)
from shared.security.context import (
    AuthenticatedContext,
    GuestContext,
    RequestContext,
    authenticated_context,
    guest_context,
)
from shared.security.webhook_signing import (
    WebhookEvent,
    WebhookVerifier,
    create_webhook_verifier,
    select_signature_header,
)
from shared.security.rate_limit import limiter, rate_limit_exceeded_handler

__all__ = [
    # auth
    "Principal",
    "TokenAuthenticator",
    "extract_token",
    "get_authenticator",
    "sign_jwt",
    "verify_jwt",
    "current_principal",
    # context
    "AuthenticatedContext",
    "GuestContext",
    "RequestContext",
    "authenticated_context",
    "guest_context",
    # webhook signatures
    "WebhookEvent",
    "WebhookVerifier",
    "create_webhook_verifier",
    "select_signature_header",
    # rate_limit
    "limiter",
    "rate_limit_exceeded_handler",
]
