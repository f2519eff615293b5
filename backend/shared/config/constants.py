"""
Application-wide constants.
"""

from typing import Final


class Limits:
    """Validation limits."""

    # Pagination defaults
    DEFAULT_PAGE_SIZE: Final[int] = 50
    MAX_PAGE_SIZE: Final[int] = 200
    DEFAULT_OFFSET: Final[int] = 0

    # String lengths (Game columns)
    MAX_NAME_LENGTH: Final[int] = 255
    MAX_URL_LENGTH: Final[int] = 2048

    # Game.max_player is a 32-bit INTEGER column
    MAX_PLAYER_COUNT: Final[int] = 2**31 - 1


class WebhookHeaders:
    """Headers sent by GitHub with every webhook delivery."""

    SIGNATURE_256: Final[str] = "X-Hub-Signature-256"
    SIGNATURE_SHA1: Final[str] = "X-Hub-Signature"
    EVENT: Final[str] = "X-GitHub-Event"
    DELIVERY: Final[str] = "X-GitHub-Delivery"
