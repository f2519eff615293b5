"""
Webhook Domain Service.

Turns a verified GitHub issue event into exactly one domain action and
applies it to the game store:

    closed   -> CreateGame(derive_game_spec(payload))
    reopened -> DeleteGame(game created from the same issue)
    other    -> NoOp

Idempotency: a game is keyed by the issue it came from, so a redelivered
"closed" event for an issue that already has a game is a NoOp, and a
"reopened" event for an issue without a game is a NoOp.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Union

from sqlalchemy.orm import Session

from shared.config.constants import Limits
from shared.config.logging import get_logger
from shared.security.webhook_signing import WebhookEvent
from shared.utils.schemas import GameOutput, GithubWebhookPayload
from rest_api.services.domain.game_service import (
    GameAlreadyExistsError,
    GameSpec,
    GameStore,
)
from ws_gateway.components.events.types import (
    GameCreated,
    GameDeleted,
    NotificationMessage,
)

logger = get_logger(__name__)


# =============================================================================
# Domain actions
# =============================================================================


@dataclass(frozen=True, slots=True)
class CreateGame:
    spec: GameSpec


@dataclass(frozen=True, slots=True)
class DeleteGame:
    game_id: int


@dataclass(frozen=True, slots=True)
class NoOp:
    """Recognized but inactionable event. Not an error."""

    reason: str


DomainAction = Union[CreateGame, DeleteGame, NoOp]


# =============================================================================
# Issue form parsing
# =============================================================================

_HEADING_PATTERN = re.compile(r"^###\s+(?P<heading>.+?)\s*$", re.MULTILINE)
_LINK_PATTERN = re.compile(r"!?\[[^\]]*\]\((?P<url>[^)\s]+)\)")
_NO_RESPONSE = "_No response_"

# Issue form headings -> GameSpec fields
_FIELD_ALIASES = {
    "description": "description",
    "preview": "preview",
    "screenshot": "preview",
    "rom": "rom",
    "kind": "kind",
    "series": "series",
    "max player": "max_player",
    "max players": "max_player",
    "players": "max_player",
}


def parse_issue_form(body: str | None) -> dict[str, str]:
    """
    Parse a GitHub issue-form body into {heading: value}.

    Issue forms render every field as "### Heading" followed by the value.
    Empty fields ("_No response_") are left out. Headings are lower-cased.
    """
    if not body:
        return {}

    sections: dict[str, str] = {}
    matches = list(_HEADING_PATTERN.finditer(body))
    for i, match in enumerate(matches):
        end = matches[i + 1].start() if i + 1 < len(matches) else len(body)
        value = body[match.end():end].strip()
        if value and value != _NO_RESPONSE:
            sections[match.group("heading").strip().lower()] = value
    return sections


def _extract_link(value: str | None) -> str | None:
    """Return the target of a markdown link/image, or the value itself."""
    if value is None:
        return None
    match = _LINK_PATTERN.search(value)
    return match.group("url") if match else value.strip()


def _parse_player_count(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        count = int(value.strip())
    except ValueError:
        return None
    if not 1 <= count <= Limits.MAX_PLAYER_COUNT:
        return None
    return count


def derive_game_spec(payload: GithubWebhookPayload) -> GameSpec:
    """
    Derive the game to create from a closed issue.

    The issue title is the game name. Structured fields come from the issue
    form; a body that is not an issue form becomes the description.
    """
    issue = payload.issue
    sections = parse_issue_form(issue.body)

    fields: dict[str, str] = {}
    for heading, value in sections.items():
        field_name = _FIELD_ALIASES.get(heading)
        if field_name and field_name not in fields:
            fields[field_name] = value

    description = fields.get("description")
    if not sections and issue.body and issue.body.strip():
        description = issue.body.strip()

    kind = fields.get("kind")
    return GameSpec(
        issue_id=issue.id,
        name=issue.title.strip(),
        description=description,
        preview=_extract_link(fields.get("preview")),
        rom=_extract_link(fields.get("rom")),
        kind=kind.upper() if kind else None,
        series=fields.get("series"),
        max_player=_parse_player_count(fields.get("max_player")),
    )


# =============================================================================
# Translator and service
# =============================================================================


class PayloadTranslator:
    """
    Maps a verified webhook onto one domain action.

    Read-only: looks games up but never mutates the store.
    """

    def __init__(self, store: GameStore):
        self._store = store

    def lookup_game_id(self, issue_reference: int) -> int | None:
        game = self._store.find_by_issue(issue_reference)
        return game.id if game else None

    def translate(self, event: WebhookEvent) -> DomainAction:
        if event.action == "closed":
            existing = self.lookup_game_id(event.issue_reference)
            if existing is not None:
                return NoOp("game_exists")
            return CreateGame(derive_game_spec(event.payload))

        if event.action == "reopened":
            game_id = self.lookup_game_id(event.issue_reference)
            if game_id is None:
                return NoOp("game_not_found")
            return DeleteGame(game_id)

        return NoOp(f"unhandled_action:{event.raw_action}")


class WebhookService:
    """
    Applies verified webhook events to the game store.

    Synchronous: callers on the event loop run apply() in the threadpool.
    Returns the notification to broadcast, or None for a no-op.
    """

    def __init__(self, db: Session):
        self._store = GameStore(db)
        self._translator = PayloadTranslator(self._store)

    def apply(self, event: WebhookEvent) -> NotificationMessage | None:
        action = self._translator.translate(event)

        if isinstance(action, CreateGame):
            try:
                game = self._store.create_game(action.spec)
            except GameAlreadyExistsError:
                logger.info("Duplicate closed event ignored", issue_id=event.issue_reference)
                return None
            return GameCreated.from_game(GameOutput.model_validate(game).model_dump(mode="json"))

        if isinstance(action, DeleteGame):
            if not self._store.delete_game(action.game_id):
                logger.info("Game already gone", game_id=action.game_id)
                return None
            return GameDeleted(id=action.game_id)

        logger.debug(
            "Webhook produced no action",
            reason=action.reason,
            issue_id=event.issue_reference,
        )
        return None
