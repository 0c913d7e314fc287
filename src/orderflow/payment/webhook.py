"""Inbound gateway webhooks.

The signature over the raw body is checked before the body is even parsed;
an unsigned or tampered delivery raises ``AuthenticityError`` and touches
nothing. Authentic deliveries are mapped onto the reconciler's outcome shape.
Reconciliation problems (unknown reference, amount mismatch, closed payment)
are logged and acknowledged so the gateway stops redelivering.
"""

import json

import structlog

from orderflow.gateway import get_gateway
from orderflow.gateway.port import OutcomeStatus, parse_timestamp
from orderflow.payment.reconciliation import OutcomeSource, apply_outcome
from orderflow.shared.errors import AuthenticityError, ConflictError, OrderNotFoundError

logger = structlog.get_logger(__name__)

EVENT_OUTCOMES = {
    "charge.success": OutcomeStatus.SUCCESS,
    "charge.failed": OutcomeStatus.FAILED,
}


def handle_webhook(body: bytes, signature: str | None) -> dict:
    """Verify, parse and reconcile one webhook delivery. Returns the acknowledgement body."""
    if not get_gateway().verify_webhook_signature(body, signature):
        logger.warning("Rejected webhook with invalid signature", has_signature=bool(signature))
        raise AuthenticityError()

    try:
        event = json.loads(body)
    except ValueError:
        logger.warning("Ignored webhook with malformed body")
        return {"status": "ignored", "detail": "Malformed body"}

    event_type = event.get("event")
    outcome = EVENT_OUTCOMES.get(event_type)
    if outcome is None:
        logger.info("Ignored webhook event", webhook_event=event_type)
        return {"status": "ignored", "event": event_type}

    data = event.get("data") or {}
    reference = data.get("reference")
    if not reference:
        logger.warning("Ignored webhook without reference", webhook_event=event_type)
        return {"status": "ignored", "event": event_type}

    try:
        result = apply_outcome(
            order_number=reference,
            status=outcome,
            amount_minor=data.get("amount"),
            provider_reference=reference,
            failure_reason=data.get("gateway_response") if outcome == OutcomeStatus.FAILED else None,
            payload=data,
            paid_at=parse_timestamp(data.get("paid_at") or data.get("paidAt")),
            source=OutcomeSource.WEBHOOK,
            attempt_reference=reference,
        )
    except OrderNotFoundError:
        logger.warning("Webhook for unknown reference acknowledged", reference=reference, webhook_event=event_type)
        return {"status": "acknowledged", "event": event_type, "detail": "Unknown reference"}
    except ConflictError as exc:
        logger.error(
            "Webhook could not be reconciled, manual review required",
            reference=reference,
            webhook_event=event_type,
            error=exc.message,
        )
        return {"status": "acknowledged", "event": event_type, "detail": "Requires review"}

    return {"status": "processed", "event": event_type, "result": result.to_dict()}
