"""
SQLAlchemy ORM models for the game catalogue.

Games are created from closed GitHub issues and removed again when the
issue is reopened. Each game remembers the issue it came from, which is
what makes webhook redeliveries idempotent.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    BigInteger,
    DateTime,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from shared.config.constants import Limits

# SQLite only autoincrements INTEGER PRIMARY KEY columns
PrimaryKey = BigInteger().with_variant(Integer, "sqlite")


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class Game(Base):
    """A playable game published through the issue tracker."""

    __tablename__ = "game"

    id: Mapped[int] = mapped_column(PrimaryKey, primary_key=True, autoincrement=True)
    # Provider id of the issue that introduced the game
    issue_id: Mapped[int] = mapped_column(BigInteger, unique=True, index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(Limits.MAX_NAME_LENGTH), index=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    preview: Mapped[Optional[str]] = mapped_column(String(Limits.MAX_URL_LENGTH), nullable=True)
    rom: Mapped[Optional[str]] = mapped_column(String(Limits.MAX_URL_LENGTH), nullable=True)
    kind: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    series: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    max_player: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<Game id={self.id} issue_id={self.issue_id} name={self.name!r}>"
