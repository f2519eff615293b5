"""
Shared Pydantic schemas used across the application.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Common Types
# =============================================================================

WebhookAction = Literal["closed", "reopened", "other"]


# =============================================================================
# GitHub Webhook Schemas
# =============================================================================


class GithubUser(BaseModel):
    """Account that appears in a webhook payload (sender, repository owner)."""

    model_config = ConfigDict(extra="allow")

    login: str
    id: int | None = None


class GithubLabel(BaseModel):
    """Issue label."""

    model_config = ConfigDict(extra="allow")

    name: str


class GithubIssue(BaseModel):
    """Issue referenced by an `issues` webhook event."""

    model_config = ConfigDict(extra="allow")

    id: int
    title: str = Field(min_length=1)
    number: int | None = None
    body: str | None = None
    html_url: str | None = None
    labels: list[GithubLabel] = Field(default_factory=list)


class GithubRepository(BaseModel):
    """Repository that emitted the webhook."""

    model_config = ConfigDict(extra="allow")

    full_name: str | None = None
    owner: GithubUser


class GithubWebhookPayload(BaseModel):
    """
    Body of an `issues` webhook delivery.

    Unknown fields are preserved so the payload can be echoed back verbatim.
    """

    model_config = ConfigDict(extra="allow")

    action: str
    issue: GithubIssue
    sender: GithubUser | None = None
    repository: GithubRepository | None = None

    def is_owner(self) -> bool:
        """True when the sender is the owner of the repository."""
        if self.sender is None or self.repository is None:
            return False
        return self.sender.login.lower() == self.repository.owner.login.lower()


# =============================================================================
# Game Schemas
# =============================================================================


class GameOutput(BaseModel):
    """Game as exposed to API clients and subscribers."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    issue_id: int
    name: str
    description: str | None = None
    preview: str | None = None
    rom: str | None = None
    kind: str | None = None
    series: str | None = None
    max_player: int | None = None
    created_at: datetime | None = None


# =============================================================================
# Health Schemas
# =============================================================================


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    service: str
    version: str
    environment: str
    subscriptions: dict[str, int | str]
