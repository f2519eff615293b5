"""
Authentication utilities.
Handles signed JWT credentials for API requests and subscription handshakes.

A token encodes a principal in the "sub" claim and an optional expiry in
"exp". Tokens are verified, never stored: the server keeps no session state.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass
from typing import Any

import jwt
from fastapi import Header

from shared.config.settings import get_settings
from shared.config.logging import get_logger
from shared.utils.exceptions import UnauthorizedError

logger = get_logger(__name__)

BEARER_PREFIX = "bearer "


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated identity behind a request or subscription connection."""

    id: str

    def __str__(self) -> str:
        return self.id


class TokenAuthenticator:
    """
    Verifies signed credentials and extracts the principal they carry.

    Stateless: the same instance is safe to share between request handlers
    and subscription handshakes. Signature comparison is delegated to PyJWT,
    which uses hmac.compare_digest.

    Usage:
        authenticator = TokenAuthenticator(settings.jwt_secret)
        principal = authenticator.verify(raw_token)
    """

    ALGORITHM = "HS256"

    def __init__(self, secret: str, default_ttl_seconds: int | None = None) -> None:
        self._secret = secret
        self._default_ttl = default_ttl_seconds

    def sign(
        self,
        principal_id: int | str,
        ttl_seconds: int | None = None,
        extra_claims: dict[str, Any] | None = None,
    ) -> str:
        """
        Issue a token for a principal.

        Args:
            principal_id: Identity to encode in the "sub" claim.
            ttl_seconds: Token lifetime. None falls back to the default TTL;
                a default of None produces a token without expiry.
            extra_claims: Additional claims to embed.

        Returns:
            Signed JWT string.
        """
        if ttl_seconds is None:
            ttl_seconds = self._default_ttl

        now = int(time.time())
        data: dict[str, Any] = {
            **(extra_claims or {}),
            "sub": str(principal_id),
            "iat": now,
            "jti": str(uuid.uuid4()),
        }
        if ttl_seconds is not None:
            data["exp"] = now + ttl_seconds
        return jwt.encode(data, self._secret, algorithm=self.ALGORITHM)

    def verify(self, raw_token: str | None) -> Principal:
        """
        Verify a credential and return its principal.

        Accepts the bare token or an "Authorization" style value
        ("Bearer <token>").

        Raises:
            UnauthorizedError: Token is absent, malformed, has an invalid
                signature, has expired, or carries no subject.
        """
        token = extract_token(raw_token)
        if not token:
            raise UnauthorizedError("Missing credential")

        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self.ALGORITHM],
                options={"require": ["sub"]},
            )
        except jwt.ExpiredSignatureError:
            raise UnauthorizedError("Token has expired")
        except jwt.InvalidTokenError as e:
            # Log the actual error, return a generic message to the client
            logger.warning("JWT validation failed", error=str(e))
            raise UnauthorizedError("Invalid token")

        subject = payload.get("sub")
        if not isinstance(subject, str) or not subject.strip():
            raise UnauthorizedError("Invalid token: malformed subject claim")

        return Principal(id=subject)


def extract_token(value: str | None) -> str | None:
    """
    Strip an optional "Bearer " prefix from a credential value.

    Returns None for absent or blank values.
    """
    if value is None:
        return None
    value = value.strip()
    if value.lower().startswith(BEARER_PREFIX):
        value = value[len(BEARER_PREFIX):].strip()
    return value or None


def get_authenticator() -> TokenAuthenticator:
    """Authenticator configured from settings."""
    settings = get_settings()
    return TokenAuthenticator(
        settings.jwt_secret,
        default_ttl_seconds=settings.jwt_access_token_expire_minutes * 60,
    )


def sign_jwt(principal_id: int | str, ttl_seconds: int | None = None) -> str:
    """Issue a token signed with the configured secret."""
    return get_authenticator().sign(principal_id, ttl_seconds=ttl_seconds)


def verify_jwt(raw_token: str | None) -> Principal:
    """Verify a token signed with the configured secret."""
    return get_authenticator().verify(raw_token)


def current_principal(
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> Principal:
    """
    FastAPI dependency resolving the principal from the Authorization header.

    Usage:
        @router.get("/protected")
        def protected_endpoint(principal: Principal = Depends(current_principal)):
            ...
    """
    return verify_jwt(authorization)
