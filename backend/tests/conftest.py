"""
Pytest configuration and fixtures for backend tests.
"""

import os

# Must be set before the application modules read settings
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("JWT_SECRET", "test-jwt-secret-for-the-test-suite-only")
os.environ.setdefault("WEBHOOK_SECRET", "test-webhook-secret")

import asyncio
import json
from typing import Any

import pytest
from fastapi import WebSocketDisconnect
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from rest_api.main import create_app
from rest_api.models import Base
from shared.infrastructure.db import get_db
from shared.security.auth import TokenAuthenticator, get_authenticator
from shared.security.rate_limit import limiter
from shared.security.webhook_signing import WebhookVerifier, create_webhook_verifier


# SQLite in-memory database for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session():
    """
    Create a fresh database session for each test.
    Uses SQLite in-memory for isolation.
    """
    Base.metadata.create_all(bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    """The limiter keeps in-memory counters across tests."""
    limiter.reset()
    yield
    limiter.reset()


@pytest.fixture(scope="function")
def app():
    """Fresh application (and broker) per test."""
    return create_app()


@pytest.fixture(scope="function")
def client(app, db_session):
    """
    Create a test client with database session override.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def broker(app):
    return app.state.broker


# =============================================================================
# Credentials
# =============================================================================


@pytest.fixture
def authenticator() -> TokenAuthenticator:
    return get_authenticator()


@pytest.fixture
def token(authenticator) -> str:
    return authenticator.sign("octocat")


@pytest.fixture
def auth_headers(token) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def verifier() -> WebhookVerifier:
    return create_webhook_verifier()


# =============================================================================
# Webhook payloads
# =============================================================================


ISSUE_FORM_BODY = """### Description

A tiny platformer.

### Preview

![preview](https://example.com/foo.png)

### ROM

[foo.nes](https://example.com/foo.nes)

### Kind

action

### Series

_No response_

### Max Player

2
"""


@pytest.fixture
def issue_form_body() -> str:
    return ISSUE_FORM_BODY


@pytest.fixture
def make_payload():
    """Factory for GitHub `issues` webhook payloads."""

    def _make(
        action: str = "closed",
        issue_id: int = 42,
        title: str = "Foo",
        body: str | None = None,
        sender: str = "octocat",
        owner: str = "octocat",
    ) -> dict[str, Any]:
        return {
            "action": action,
            "issue": {
                "id": issue_id,
                "number": 7,
                "title": title,
                "body": body,
                "html_url": "https://github.com/octocat/games/issues/7",
                "labels": [],
            },
            "sender": {"login": sender, "id": 1},
            "repository": {"full_name": f"{owner}/games", "owner": {"login": owner, "id": 1}},
        }

    return _make


@pytest.fixture
def send_webhook(client, verifier):
    """Post a payload with a valid signature (unless headers are given)."""

    def _send(payload: dict[str, Any] | bytes, headers: dict[str, str] | None = None):
        body = payload if isinstance(payload, bytes) else json.dumps(payload).encode()
        if headers is None:
            headers = verifier.get_headers(body)
        headers = {"Content-Type": "application/json", "X-GitHub-Event": "issues", **headers}
        return client.post("/webhook", content=body, headers=headers)

    return _send


# =============================================================================
# WebSocket fake
# =============================================================================


class FakeWebSocket:
    """
    In-memory stand-in for a Starlette WebSocket.

    Incoming frames are fed with feed(); disconnect() makes the next
    receive raise WebSocketDisconnect.
    """

    def __init__(
        self,
        query_params: dict[str, str] | None = None,
        headers: dict[str, str] | None = None,
        fail_send: bool = False,
        block_send: bool = False,
        support_denial: bool = True,
    ):
        self.query_params = query_params or {}
        self.headers = headers or {}
        self.fail_send = fail_send
        self.support_denial = support_denial

        self.accepted = False
        self.sent: list[Any] = []
        self.close_code: int | None = None
        self.denial_status: int | None = None

        self._incoming: asyncio.Queue[str | None] = asyncio.Queue()
        self._unblock = asyncio.Event()
        if not block_send:
            self._unblock.set()

    async def accept(self) -> None:
        self.accepted = True

    async def _send(self, data: Any) -> None:
        await self._unblock.wait()
        if self.fail_send:
            raise RuntimeError("socket closed")
        self.sent.append(data)

    async def send_json(self, data: Any) -> None:
        await self._send(data)

    async def send_text(self, data: str) -> None:
        await self._send(json.loads(data))

    async def receive_text(self) -> str:
        message = await self._incoming.get()
        if message is None:
            raise WebSocketDisconnect(code=1000)
        return message

    async def close(self, code: int = 1000, reason: str | None = None) -> None:
        self.close_code = code

    async def send_denial_response(self, response) -> None:
        if not self.support_denial:
            raise RuntimeError("denial response not supported")
        self.denial_status = response.status_code

    def feed(self, text: str) -> None:
        self._incoming.put_nowait(text)

    def disconnect(self) -> None:
        self._incoming.put_nowait(None)

    def unblock(self) -> None:
        self._unblock.set()


@pytest.fixture
def fake_websocket():
    """Factory for FakeWebSocket instances."""
    return FakeWebSocket


async def settle(rounds: int = 5) -> None:
    """Let background connection tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0.01)


@pytest.fixture
def wait_for_tasks():
    return settle
