"""
Webhook signature verification.

HMAC verification for GitHub `issues` webhook deliveries. GitHub signs the
raw request body with the shared webhook secret and sends the hex digest in
`X-Hub-Signature-256: sha256=<hex>` (legacy deliveries use
`X-Hub-Signature: sha1=<hex>`).

A delivery is accepted only when the signature matches AND the sender is
authorized; a valid signature alone is not enough.
"""

from __future__ import annotations

import hashlib
import hmac
import re
from dataclasses import dataclass
from typing import Callable

from pydantic import ValidationError

from shared.config.constants import WebhookHeaders
from shared.config.logging import get_logger
from shared.utils.exceptions import MalformedPayloadError, WebhookRejectedError
from shared.utils.schemas import GithubWebhookPayload, WebhookAction

logger = get_logger(__name__)

_HEX_DIGEST = re.compile(r"[0-9a-fA-F]+")


@dataclass(frozen=True, slots=True)
class WebhookEvent:
    """
    Verified webhook, derived once per inbound request and never persisted.

    Attributes:
        action: Normalized action (closed, reopened, other).
        issue_reference: Provider id of the issue the event refers to.
        is_authorized_sender: Always True for events returned by verify().
        payload: Parsed payload, echoed back to the provider.
    """

    action: WebhookAction
    issue_reference: int
    is_authorized_sender: bool
    payload: GithubWebhookPayload

    @property
    def raw_action(self) -> str:
        return self.payload.action


def normalize_action(action: str) -> WebhookAction:
    """Map the provider's action string onto the actions the service handles."""
    if action == "closed":
        return "closed"
    if action == "reopened":
        return "reopened"
    return "other"


class WebhookVerifier:
    """
    Validates that a webhook was produced by the trusted source and that the
    acting party is authorized.

    Usage (verification):
        verifier = WebhookVerifier(secret="your-secret", allowed_senders={"octocat"})
        event = verifier.verify(body, request.headers.get("X-Hub-Signature-256"))

    Usage (signing, for tests and tooling):
        headers = verifier.get_headers(body)
    """

    HEADER_SIGNATURE_256 = WebhookHeaders.SIGNATURE_256
    HEADER_SIGNATURE_SHA1 = WebhookHeaders.SIGNATURE_SHA1

    ALGORITHMS: dict[str, Callable] = {
        "sha256": hashlib.sha256,
        "sha1": hashlib.sha1,
    }

    def __init__(
        self,
        secret: str,
        allowed_senders: frozenset[str] | set[str] | None = None,
    ) -> None:
        """
        Initialize the verifier.

        Args:
            secret: Shared webhook secret.
            allowed_senders: Logins allowed to trigger mutations. When empty,
                only the repository owner is authorized.
        """
        self._secret = secret.encode()
        self._allowed_senders = frozenset(s.lower() for s in (allowed_senders or ()))

    def sign(self, body: bytes | str, algorithm: str = "sha256") -> str:
        """
        Compute the signature header value for a body.

        Returns "<algorithm>=<hexdigest>".
        """
        if isinstance(body, str):
            body = body.encode()
        digest = hmac.new(self._secret, body, self.ALGORITHMS[algorithm]).hexdigest()
        return f"{algorithm}={digest}"

    def get_headers(self, body: bytes | str) -> dict[str, str]:
        """Generate the signature header GitHub would send for a body."""
        return {self.HEADER_SIGNATURE_256: self.sign(body)}

    def verify_signature(self, body: bytes, signature_header: str | None) -> bool:
        """
        Check a signature header against the body.

        Returns True only for a well-formed header whose digest matches.
        """
        if not self._secret:
            logger.error("Webhook secret not configured - rejecting delivery")
            return False

        if not signature_header:
            logger.warning("Webhook missing signature header")
            return False

        algorithm, sep, received = signature_header.strip().partition("=")
        algorithm = algorithm.lower()
        if not sep or algorithm not in self.ALGORITHMS or not _HEX_DIGEST.fullmatch(received):
            logger.warning("Webhook signature malformed", algorithm=algorithm or None)
            return False

        expected = self.sign(body, algorithm)

        # Constant-time comparison to prevent timing attacks
        if not hmac.compare_digest(expected.encode(), f"{algorithm}={received.lower()}".encode()):
            logger.warning("Webhook signature mismatch", algorithm=algorithm)
            return False

        return True

    def parse(self, body: bytes) -> GithubWebhookPayload:
        """
        Parse a webhook body.

        Raises:
            MalformedPayloadError: Body is not JSON or does not match the schema.
        """
        try:
            return GithubWebhookPayload.model_validate_json(body)
        except ValidationError as e:
            fields = [".".join(str(p) for p in err["loc"]) or "body" for err in e.errors()]
            raise MalformedPayloadError(
                "Malformed webhook payload",
                error_count=e.error_count(),
                fields=fields[:5],
            )

    def is_authorized_sender(self, payload: GithubWebhookPayload) -> bool:
        """
        Check the declared actor against the allow-list.

        With no configured allow-list the sender must own the repository.
        """
        if self._allowed_senders:
            return payload.sender is not None and payload.sender.login.lower() in self._allowed_senders
        return payload.is_owner()

    def verify(self, body: bytes, signature_header: str | None) -> WebhookEvent:
        """
        Verify a webhook delivery.

        The signature is checked before the body is parsed, so an
        unauthenticated caller never learns anything about the schema.

        Raises:
            WebhookRejectedError: Bad signature or unauthorized sender.
            MalformedPayloadError: Signed body that cannot be parsed.
        """
        if not self.verify_signature(body, signature_header):
            raise WebhookRejectedError("invalid_signature")

        payload = self.parse(body)

        if not self.is_authorized_sender(payload):
            raise WebhookRejectedError(
                "unauthorized_sender",
                sender=payload.sender.login if payload.sender else None,
            )

        return WebhookEvent(
            action=normalize_action(payload.action),
            issue_reference=payload.issue.id,
            is_authorized_sender=True,
            payload=payload,
        )


def select_signature_header(headers) -> str | None:
    """Prefer the sha256 header, falling back to the legacy sha1 one."""
    return headers.get(WebhookVerifier.HEADER_SIGNATURE_256) or headers.get(
        WebhookVerifier.HEADER_SIGNATURE_SHA1
    )


def create_webhook_verifier() -> WebhookVerifier:
    """Create a verifier from settings."""
    from shared.config.settings import get_settings

    settings = get_settings()
    return WebhookVerifier(settings.webhook_secret, settings.allowed_sender_set)
