"""
Notification Value Objects for the subscription gateway.

A notification is an immutable tagged variant: GameCreated carries a
snapshot of the new game, GameDeleted carries only its id. The same
instance is handed to every subscriber at publish time.

Wire shape:
    {"type": "game_created", "game": {"id": 1, "name": "Foo", ...}}
    {"type": "game_deleted", "id": 1}
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Union


class NotificationType(str, Enum):
    """Valid notification types pushed to subscribers."""

    GAME_CREATED = "game_created"
    GAME_DELETED = "game_deleted"


@dataclass(frozen=True, slots=True)
class GameCreated:
    """A game was created from a closed issue."""

    game: Mapping[str, Any]

    @classmethod
    def from_game(cls, game: Mapping[str, Any]) -> "GameCreated":
        """Snapshot a game dict so later changes to it cannot leak into the message."""
        return cls(game=MappingProxyType(dict(game)))

    @property
    def type(self) -> NotificationType:
        return NotificationType.GAME_CREATED

    @property
    def game_id(self) -> int | None:
        return self.game.get("id")

    def to_wire(self) -> dict[str, Any]:
        return {"type": self.type.value, "game": dict(self.game)}


@dataclass(frozen=True, slots=True)
class GameDeleted:
    """A game was removed because its issue was reopened."""

    id: int

    @property
    def type(self) -> NotificationType:
        return NotificationType.GAME_DELETED

    @property
    def game_id(self) -> int:
        return self.id

    def to_wire(self) -> dict[str, Any]:
        return {"type": self.type.value, "id": self.id}


NotificationMessage = Union[GameCreated, GameDeleted]
