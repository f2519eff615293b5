"""
Request contexts for the game API.

Two capability sets exist: an authenticated context carrying the caller's
principal, and a guest context with no identity. Routes depend on exactly
the variant they accept, so an operation restricted to authenticated
callers cannot be reached with a guest context.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from fastapi import Depends
from sqlalchemy.orm import Session

from shared.infrastructure.db import get_db
from shared.security.auth import Principal, current_principal


@dataclass(frozen=True, slots=True)
class AuthenticatedContext:
    """Context for callers that presented a valid token."""

    principal: Principal
    db: Session


@dataclass(frozen=True, slots=True)
class GuestContext:
    """Context for anonymous callers."""

    db: Session


RequestContext = Union[AuthenticatedContext, GuestContext]


def authenticated_context(
    principal: Principal = Depends(current_principal),
    db: Session = Depends(get_db),
) -> AuthenticatedContext:
    """FastAPI dependency: 401 unless the request carries a valid token."""
    return AuthenticatedContext(principal=principal, db=db)


def guest_context(db: Session = Depends(get_db)) -> GuestContext:
    """FastAPI dependency for routes open to anonymous callers."""
    return GuestContext(db=db)
