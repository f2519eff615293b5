"""
Game Domain Service.

Persists game creation and deletion. The webhook pipeline calls into this
store as an opaque collaborator; it never touches the broker.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from shared.config.logging import get_logger
from shared.infrastructure.db import safe_commit
from rest_api.models import Game

logger = get_logger(__name__)


class GameAlreadyExistsError(Exception):
    """A game already exists for the issue (idempotency)."""

    def __init__(self, issue_id: int):
        self.issue_id = issue_id
        super().__init__(f"Game for issue {issue_id} already exists")


@dataclass(frozen=True, slots=True)
class GameSpec:
    """Everything needed to create a game record."""

    issue_id: int
    name: str
    description: str | None = None
    preview: str | None = None
    rom: str | None = None
    kind: str | None = None
    series: str | None = None
    max_player: int | None = None


class GameStore:
    """
    Domain service for Game persistence.

    Owns every mutation of Game rows.
    """

    def __init__(self, db: Session):
        self._db = db

    def get_game(self, game_id: int) -> Game | None:
        return self._db.get(Game, game_id)

    def find_by_issue(self, issue_id: int) -> Game | None:
        """Find the game created from an issue."""
        return self._db.scalar(select(Game).where(Game.issue_id == issue_id))

    def list_games(self, limit: int | None = None, offset: int = 0) -> list[Game]:
        query = select(Game).order_by(Game.id).offset(offset)
        if limit is not None:
            query = query.limit(limit)
        return list(self._db.scalars(query))

    def count_games(self) -> int:
        return self._db.scalar(select(func.count()).select_from(Game)) or 0

    def create_game(self, spec: GameSpec) -> Game:
        """
        Create a game from a spec.

        Raises:
            GameAlreadyExistsError: A game for the same issue already exists.
        """
        game = Game(
            issue_id=spec.issue_id,
            name=spec.name,
            description=spec.description,
            preview=spec.preview,
            rom=spec.rom,
            kind=spec.kind,
            series=spec.series,
            max_player=spec.max_player,
        )
        self._db.add(game)
        try:
            safe_commit(self._db)
        except IntegrityError:
            # Concurrent redelivery won the unique(issue_id) race
            raise GameAlreadyExistsError(spec.issue_id)
        self._db.refresh(game)

        logger.info("Game created", game_id=game.id, issue_id=game.issue_id, name=game.name)
        return game

    def delete_game(self, game_id: int) -> bool:
        """
        Delete a game.

        Returns:
            True if a record was deleted, False if it did not exist.
        """
        game = self.get_game(game_id)
        if game is None:
            return False

        self._db.delete(game)
        safe_commit(self._db)

        logger.info("Game deleted", game_id=game_id)
        return True
