"""
GitHub issues webhook.

A closed issue becomes a game, a reopened issue removes it again, and
every open subscription is told about the change.

Pipeline per delivery:
    verify signature -> parse -> authorize sender
        -> translate + apply to the game store (threadpool)
        -> publish notification
        -> 200 with the payload echoed back

Nothing is mutated or published unless verification succeeded.
"""

from typing import Any

from fastapi import APIRouter, Depends, Request
from slowapi.util import get_remote_address
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from shared.config.constants import WebhookHeaders
from shared.config.logging import audit_webhook_event, webhook_logger as logger
from shared.config.settings import get_settings
from shared.infrastructure.db import get_db
from shared.security.rate_limit import limiter
from shared.security.webhook_signing import (
    WebhookVerifier,
    create_webhook_verifier,
    select_signature_header,
)
from shared.utils.exceptions import MalformedPayloadError, WebhookRejectedError
from rest_api.services.domain.webhook_service import WebhookService
from ws_gateway.broker import NotificationBroker
from ws_gateway.components.core.dependencies import get_broker

router = APIRouter(tags=["webhook"])


def get_webhook_verifier() -> WebhookVerifier:
    """FastAPI dependency for the configured webhook verifier."""
    return create_webhook_verifier()


def _webhook_rate_limit() -> str:
    return get_settings().webhook_rate_limit


@router.post("/webhook")
@limiter.limit(_webhook_rate_limit)
async def receive_webhook(
    request: Request,
    db: Session = Depends(get_db),
    broker: NotificationBroker = Depends(get_broker),
    verifier: WebhookVerifier = Depends(get_webhook_verifier),
) -> dict[str, Any]:
    """
    Receive a GitHub `issues` event.

    Responses:
    - 200: payload echoed back, also when the event required no action
    - 400: signed body that is not a valid issues payload
    - 401: bad signature or unauthorized sender
    """
    body = await request.body()
    delivery_id = request.headers.get(WebhookHeaders.DELIVERY)
    client_ip = get_remote_address(request)

    try:
        event = verifier.verify(body, select_signature_header(request.headers))
    except WebhookRejectedError as e:
        audit_webhook_event(
            "REJECTED",
            delivery_id=delivery_id,
            success=False,
            reason=e.reason,
            ip_address=client_ip,
        )
        raise
    except MalformedPayloadError:
        audit_webhook_event(
            "MALFORMED",
            delivery_id=delivery_id,
            success=False,
            reason="malformed_payload",
            ip_address=client_ip,
        )
        raise

    audit_webhook_event(
        "ACCEPTED",
        delivery_id=delivery_id,
        action=event.raw_action,
        sender=event.payload.sender.login if event.payload.sender else None,
        ip_address=client_ip,
        issue_id=event.issue_reference,
    )

    # Store calls are blocking; no broker lock is held while they run
    notification = await run_in_threadpool(WebhookService(db).apply, event)

    if notification is not None:
        result = broker.publish(notification)
        logger.info(
            "Webhook applied",
            action=event.action,
            issue_id=event.issue_reference,
            notification=notification.type.value,
            game_id=notification.game_id,
            subscribers=result.recipients,
        )
    else:
        logger.info("Webhook required no action", action=event.raw_action, issue_id=event.issue_reference)

    return event.payload.model_dump(mode="json", exclude_unset=True)
