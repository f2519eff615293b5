"""
Domain Services - application layer.

Structure:
    Router (thin controller)
        ↓
    Service (business logic)  ← YOU ARE HERE
        ↓
    Model (entity)

Usage:
    from rest_api.services.domain import WebhookService

    # In router
    notification = await run_in_threadpool(WebhookService(db).apply, event)
"""

from .game_service import GameAlreadyExistsError, GameSpec, GameStore
from .webhook_service import (
    CreateGame,
    DeleteGame,
    DomainAction,
    NoOp,
    PayloadTranslator,
    WebhookService,
    derive_game_spec,
    parse_issue_form,
)

__all__ = [
    "GameAlreadyExistsError",
    "GameSpec",
    "GameStore",
    "CreateGame",
    "DeleteGame",
    "DomainAction",
    "NoOp",
    "PayloadTranslator",
    "WebhookService",
    "derive_game_spec",
    "parse_issue_form",
]
