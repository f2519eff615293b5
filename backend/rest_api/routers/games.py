"""
Game catalogue read endpoints.

Authenticated callers can list and fetch games; guests get the public
listing only.
"""

from typing import Any

from fastapi import APIRouter, Depends

from shared.security.context import (
    AuthenticatedContext,
    GuestContext,
    authenticated_context,
    guest_context,
)
from shared.utils.exceptions import NotFoundError
from shared.utils.schemas import GameOutput
from rest_api.routers._common.pagination import (
    PaginatedResponse,
    Pagination,
    get_pagination,
)
from rest_api.services.domain.game_service import GameStore

router = APIRouter(prefix="/api", tags=["games"])


def _game_page(store: GameStore, pagination: Pagination) -> dict[str, Any]:
    games = store.list_games(limit=pagination.limit, offset=pagination.offset)
    return PaginatedResponse(
        items=[GameOutput.model_validate(g) for g in games],
        pagination=pagination,
        total=store.count_games(),
    ).to_dict()


@router.get("/games")
def list_games(
    ctx: AuthenticatedContext = Depends(authenticated_context),
    pagination: Pagination = Depends(get_pagination),
) -> dict[str, Any]:
    """List games, oldest first."""
    return _game_page(GameStore(ctx.db), pagination)


@router.get("/games/{game_id}", response_model=GameOutput)
def get_game(
    game_id: int,
    ctx: AuthenticatedContext = Depends(authenticated_context),
) -> GameOutput:
    game = GameStore(ctx.db).get_game(game_id)
    if game is None:
        raise NotFoundError("Game", game_id)
    return GameOutput.model_validate(game)


@router.get("/guest/games")
def list_games_as_guest(
    ctx: GuestContext = Depends(guest_context),
    pagination: Pagination = Depends(get_pagination),
) -> dict[str, Any]:
    """Public game listing, no credential required."""
    return _game_page(GameStore(ctx.db), pagination)
