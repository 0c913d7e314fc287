"""Synchronous payment verification, triggered when the payer returns from checkout.

The gateway is queried before any Unit of Work is opened; only the outcome is
applied transactionally, through the reconciler. A gateway timeout is not a
failure: the caller is told verification is pending and may retry.
"""

import structlog
from protean.utils.globals import current_domain

from orderflow.gateway import get_gateway
from orderflow.gateway.port import OutcomeStatus
from orderflow.order.order import Order
from orderflow.payment.payment import Payment
from orderflow.payment.reconciliation import OutcomeSource, ReconciliationResult, apply_outcome
from orderflow.shared.errors import GatewayTimeoutError, OrderNotFoundError, VerificationPendingError

logger = structlog.get_logger(__name__)


def verify_payment(reference, source=OutcomeSource.VERIFY, customer_id=None) -> ReconciliationResult:
    """Ask the gateway for the outcome of the current attempt and apply it.

    With ``customer_id``, a payment belonging to someone else is reported as not found.
    """
    payment = current_domain.repository_for(Payment).by_reference(reference)
    if payment is None or (customer_id is not None and str(payment.customer_id) != str(customer_id)):
        raise OrderNotFoundError(reference)

    if payment.is_completed:
        order = current_domain.repository_for(Order).get(payment.order_id)
        return ReconciliationResult(
            order_number=order.order_number,
            outcome=OutcomeStatus.SUCCESS.value,
            applied=False,
            payment_status=payment.status,
            order_status=order.order_status,
            message="Payment already confirmed",
        )

    attempt_reference = payment.gateway_reference
    provider_reference = payment.provider_reference or attempt_reference
    try:
        outcome = get_gateway().verify(provider_reference)
    except GatewayTimeoutError:
        logger.warning("Verification timed out", reference=reference, provider_reference=provider_reference)
        raise VerificationPendingError(reference) from None

    logger.info(
        "Gateway verification result",
        reference=reference,
        provider_reference=provider_reference,
        status=outcome.status.value,
    )
    return apply_outcome(
        order_number=payment.transaction_reference,
        status=outcome.status,
        amount_minor=outcome.amount_minor,
        provider_reference=provider_reference,
        failure_reason=outcome.failure_reason,
        payload=outcome.raw,
        paid_at=outcome.paid_at,
        source=source,
        attempt_reference=attempt_reference,
    )
