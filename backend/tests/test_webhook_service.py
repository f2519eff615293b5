"""
Tests for webhook translation and the game store.
"""

import pytest

from rest_api.models import Game
from rest_api.services.domain.game_service import (
    GameAlreadyExistsError,
    GameSpec,
    GameStore,
)
from rest_api.services.domain.webhook_service import (
    CreateGame,
    DeleteGame,
    NoOp,
    PayloadTranslator,
    WebhookService,
    derive_game_spec,
    parse_issue_form,
)
from shared.security.webhook_signing import WebhookEvent, normalize_action
from shared.utils.schemas import GithubWebhookPayload
from ws_gateway.components.events.types import GameCreated, GameDeleted


def _event(payload: dict) -> WebhookEvent:
    parsed = GithubWebhookPayload.model_validate(payload)
    return WebhookEvent(
        action=normalize_action(parsed.action),
        issue_reference=parsed.issue.id,
        is_authorized_sender=True,
        payload=parsed,
    )


class TestIssueForm:
    """Tests for issue-form body parsing."""

    def test_parses_sections(self, issue_form_body):
        sections = parse_issue_form(issue_form_body)
        assert sections["description"] == "A tiny platformer."
        assert sections["kind"] == "action"
        assert sections["max player"] == "2"

    def test_no_response_is_skipped(self, issue_form_body):
        assert "series" not in parse_issue_form(issue_form_body)

    def test_plain_body_has_no_sections(self):
        assert parse_issue_form("Just some text") == {}

    def test_empty_body(self):
        assert parse_issue_form(None) == {}
        assert parse_issue_form("") == {}


class TestDeriveGameSpec:
    """Tests for building a game from a closed issue."""

    def test_title_is_name(self, make_payload):
        spec = derive_game_spec(GithubWebhookPayload.model_validate(make_payload(title="  Foo  ")))
        assert spec.name == "Foo"
        assert spec.issue_id == 42

    def test_issue_form_fields(self, make_payload, issue_form_body):
        payload = GithubWebhookPayload.model_validate(make_payload(body=issue_form_body))
        spec = derive_game_spec(payload)

        assert spec.description == "A tiny platformer."
        assert spec.preview == "https://example.com/foo.png"
        assert spec.rom == "https://example.com/foo.nes"
        assert spec.kind == "ACTION"
        assert spec.series is None
        assert spec.max_player == 2

    def test_plain_body_becomes_description(self, make_payload):
        payload = GithubWebhookPayload.model_validate(make_payload(body="  A puzzle game.  "))
        spec = derive_game_spec(payload)
        assert spec.description == "A puzzle game."
        assert spec.rom is None

    def test_non_numeric_players_ignored(self, make_payload):
        body = "### Max Player\n\nlots\n"
        spec = derive_game_spec(GithubWebhookPayload.model_validate(make_payload(body=body)))
        assert spec.max_player is None

    @pytest.mark.parametrize("players", ["99999999999999999999999", "2147483648", "0", "-3"])
    def test_out_of_range_players_ignored(self, make_payload, players):
        body = f"### Max player\n\n{players}\n"
        spec = derive_game_spec(GithubWebhookPayload.model_validate(make_payload(body=body)))
        assert spec.max_player is None

    def test_largest_player_count_kept(self, make_payload):
        body = "### Max player\n\n2147483647\n"
        spec = derive_game_spec(GithubWebhookPayload.model_validate(make_payload(body=body)))
        assert spec.max_player == 2147483647


class TestPayloadTranslator:
    """Tests for mapping events onto domain actions."""

    def test_closed_creates_game(self, db_session, make_payload):
        action = PayloadTranslator(GameStore(db_session)).translate(_event(make_payload("closed")))
        assert isinstance(action, CreateGame)
        assert action.spec.name == "Foo"

    def test_closed_with_existing_game_is_noop(self, db_session, make_payload):
        store = GameStore(db_session)
        store.create_game(GameSpec(issue_id=42, name="Foo"))

        action = PayloadTranslator(store).translate(_event(make_payload("closed")))
        assert action == NoOp("game_exists")

    def test_reopened_deletes_game(self, db_session, make_payload):
        store = GameStore(db_session)
        game = store.create_game(GameSpec(issue_id=42, name="Foo"))

        action = PayloadTranslator(store).translate(_event(make_payload("reopened")))
        assert action == DeleteGame(game.id)

    def test_reopened_without_game_is_noop(self, db_session, make_payload):
        action = PayloadTranslator(GameStore(db_session)).translate(_event(make_payload("reopened")))
        assert action == NoOp("game_not_found")

    @pytest.mark.parametrize("action", ["opened", "edited", "labeled", "deleted"])
    def test_other_actions_are_noop(self, db_session, make_payload, action):
        result = PayloadTranslator(GameStore(db_session)).translate(_event(make_payload(action)))
        assert isinstance(result, NoOp)
        assert action in result.reason

    def test_translate_does_not_mutate(self, db_session, make_payload):
        store = GameStore(db_session)
        PayloadTranslator(store).translate(_event(make_payload("closed")))
        assert store.count_games() == 0


class TestWebhookService:
    """Tests for applying events to the store."""

    def test_closed_then_reopened(self, db_session, make_payload):
        service = WebhookService(db_session)

        created = service.apply(_event(make_payload("closed")))
        assert isinstance(created, GameCreated)
        assert created.game["name"] == "Foo"
        assert created.game["issue_id"] == 42

        deleted = service.apply(_event(make_payload("reopened")))
        assert deleted == GameDeleted(id=created.game_id)
        assert db_session.query(Game).count() == 0

    def test_redelivered_closed_is_idempotent(self, db_session, make_payload):
        service = WebhookService(db_session)
        assert service.apply(_event(make_payload("closed"))) is not None
        assert service.apply(_event(make_payload("closed"))) is None
        assert db_session.query(Game).count() == 1

    def test_noop_returns_none(self, db_session, make_payload):
        assert WebhookService(db_session).apply(_event(make_payload("edited"))) is None

    def test_created_notification_is_a_snapshot(self, db_session, make_payload):
        created = WebhookService(db_session).apply(_event(make_payload("closed")))
        with pytest.raises(TypeError):
            created.game["name"] = "Bar"


class TestGameStore:
    """Tests for game persistence."""

    def test_duplicate_issue_raises(self, db_session):
        store = GameStore(db_session)
        store.create_game(GameSpec(issue_id=1, name="Foo"))
        with pytest.raises(GameAlreadyExistsError):
            store.create_game(GameSpec(issue_id=1, name="Foo again"))
        # Session still usable after the rollback
        assert store.count_games() == 1

    def test_delete_unknown_game(self, db_session):
        assert GameStore(db_session).delete_game(999) is False

    def test_list_is_paginated(self, db_session):
        store = GameStore(db_session)
        for i in range(5):
            store.create_game(GameSpec(issue_id=i, name=f"Game {i}"))

        page = store.list_games(limit=2, offset=2)
        assert [g.name for g in page] == ["Game 2", "Game 3"]

