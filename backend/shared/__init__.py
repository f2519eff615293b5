"""
Shared module for common utilities across the REST API and the WS gateway.

STRUCTURE:
- shared.security: Authentication, request contexts, webhook signatures
  - auth.py: JWT signing/verification, current_principal
  - context.py: AuthenticatedContext / GuestContext dependencies
  - webhook_signing.py: GitHub HMAC verification, sender authorization
  - rate_limit.py: slowapi limiter for the webhook

- shared.infrastructure: Database and request correlation
  - db.py: SQLAlchemy sessions, safe_commit()
  - correlation.py: X-Request-ID middleware and log filter

- shared.config: Configuration
  - settings.py: Environment config (Pydantic)
  - logging.py: Structured logging, security audit helpers
  - constants.py: Limits, webhook header names

- shared.utils: Utilities
  - exceptions.py: HTTP exceptions with auto-logging
  - schemas.py: Shared Pydantic schemas

IMPORT EXAMPLES:
    from shared.security.auth import verify_jwt, current_principal
    from shared.infrastructure.db import get_db, safe_commit
    from shared.config.settings import settings
    from shared.utils.exceptions import NotFoundError, UnauthorizedError
"""
