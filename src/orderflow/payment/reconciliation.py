"""Payment reconciliation: apply a gateway outcome to an order and its payment.

Every confirmation path funnels into ``ApplyPaymentOutcome``: the payer's
browser returning through ``verify_payment``, the asynchronous gateway
webhook, and an administrator confirming an offline payment. Idempotency is
therefore a property of this one handler rather than of each caller.

Rules, evaluated inside a single Unit of Work:

- ``success`` for any attempt of the order completes a pending or failed
  payment and moves the order to (processing, paid). Stock was reserved at
  placement, so nothing else moves. A supplied amount must match the payment
  to the minor unit.
- ``success`` on an already completed payment is a no-op reported as success.
- ``failed`` applies only to the current attempt: an outcome whose
  ``attempt_reference`` is not the payment's ``gateway_reference`` belongs to
  a superseded attempt and is ignored. A current failure marks both sides
  failed. Stock stays reserved; releasing it is an explicit cancellation.
- Outcomes for refunded payments are logged and ignored.
- ``pending`` never transitions anything.
- A cancelled order keeps its status; a late success is recorded on the
  payment (and the order's payment status) so that it can be refunded.

Concurrent reconciliations of the same order are serialized by the aggregate
version check. Protean's command handlers retry a conflicting Unit of Work
(``server.version_retry``), so the loser re-reads the winner's state and
takes the no-op branch.
"""

import json
from dataclasses import asdict, dataclass

import structlog
from protean import handle
from protean.fields import DateTime, Integer, String, Text
from protean.utils.globals import current_domain

from orderflow.domain import orderflow
from orderflow.gateway.port import OutcomeStatus
from orderflow.order.order import Order, OrderStatus, PaymentStatus
from orderflow.payment.payment import Payment, PaymentRecordStatus
from orderflow.shared.errors import ConflictError, OrderNotFoundError
from orderflow.shared.money import to_minor_units

logger = structlog.get_logger(__name__)


class OutcomeSource:
    VERIFY = "verify"
    WEBHOOK = "webhook"
    ADMIN = "admin"


@dataclass(frozen=True)
class ReconciliationResult:
    order_number: str
    outcome: str
    applied: bool
    payment_status: str
    order_status: str
    message: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)


@orderflow.command(part_of="Payment")
class ApplyPaymentOutcome:
    order_number = String(required=True, max_length=60)  # Order number or an attempt's gateway reference
    status = String(required=True, choices=OutcomeStatus)
    attempt_reference = String(max_length=60)  # Gateway reference the outcome was reported for
    amount_minor = Integer()
    provider_reference = String(max_length=255)
    failure_reason = String(max_length=500)
    raw_payload = Text()  # JSON: raw provider data
    paid_at = DateTime()
    source = String(max_length=20, default=OutcomeSource.VERIFY)


def _result(order, payment, outcome, applied, message=None) -> ReconciliationResult:
    return ReconciliationResult(
        order_number=order.order_number,
        outcome=outcome.value,
        applied=applied,
        payment_status=payment.status,
        order_status=order.order_status,
        message=message,
    )


def _load(reference) -> tuple[Order, Payment]:
    order_repo = current_domain.repository_for(Order)
    payment_repo = current_domain.repository_for(Payment)

    payment = payment_repo.by_reference(reference)
    if payment is not None:
        return order_repo.get(payment.order_id), payment

    order = order_repo.by_number(reference)
    if order is None:
        raise OrderNotFoundError(reference)
    payment = payment_repo.for_order(order.id)
    if payment is None:
        raise OrderNotFoundError(reference)
    return order, payment


def _decoded(raw_payload):
    return json.loads(raw_payload) if raw_payload else None


@orderflow.command_handler(part_of=Payment)
class PaymentReconciler:
    @handle(ApplyPaymentOutcome)
    def apply_payment_outcome(self, command):
        order, payment = _load(command.order_number)
        outcome = OutcomeStatus(command.status)
        log = logger.bind(
            order_number=order.order_number,
            outcome=outcome.value,
            source=command.source,
            attempt_reference=command.attempt_reference,
            payment_status=payment.status,
            order_status=order.order_status,
        )

        if outcome == OutcomeStatus.PENDING:
            log.info("Payment still pending at gateway")
            return _result(order, payment, outcome, applied=False, message="Payment is still pending")

        if outcome == OutcomeStatus.SUCCESS:
            return self._apply_success(command, order, payment, outcome, log)
        return self._apply_failure(command, order, payment, outcome, log)

    def _apply_success(self, command, order, payment, outcome, log):
        current = PaymentRecordStatus(payment.status)
        if current == PaymentRecordStatus.COMPLETED:
            log.info("Duplicate success outcome ignored")
            return _result(order, payment, outcome, applied=False, message="Payment already confirmed")
        if current == PaymentRecordStatus.REFUNDED:
            log.warning("Success outcome for refunded payment ignored")
            return _result(order, payment, outcome, applied=False, message=f"Payment is {payment.status}")

        expected_minor = to_minor_units(payment.amount)
        if command.amount_minor is not None and command.amount_minor != expected_minor:
            log.error(
                "Payment amount mismatch",
                expected_minor=expected_minor,
                received_minor=command.amount_minor,
            )
            raise ConflictError(f"Paid amount {command.amount_minor} does not match expected amount {expected_minor}")

        payment.complete(
            provider_reference=command.provider_reference,
            paid_at=command.paid_at,
            payload=_decoded(command.raw_payload),
            source=command.source,
        )
        if OrderStatus(order.order_status) == OrderStatus.CANCELLED:
            order.record_late_payment(payment.paid_at)
            log.warning("Payment received for cancelled order, refund required")
        else:
            order.mark_paid(payment.paid_at)

        current_domain.repository_for(Payment).add(payment)
        current_domain.repository_for(Order).add(order)
        log.info("Payment confirmed", paid_at=str(payment.paid_at), attempt=payment.attempt_count)
        return _result(order, payment, outcome, applied=True)

    def _apply_failure(self, command, order, payment, outcome, log):
        if command.attempt_reference and command.attempt_reference != payment.gateway_reference:
            log.warning("Failure outcome for superseded attempt ignored", current_reference=payment.gateway_reference)
            return _result(order, payment, outcome, applied=False, message="Outcome is for a superseded attempt")
        if PaymentRecordStatus(payment.status) != PaymentRecordStatus.PENDING:
            log.warning("Failure outcome for non-pending payment ignored")
            return _result(order, payment, outcome, applied=False, message=f"Payment is {payment.status}")

        payment.fail(reason=command.failure_reason, payload=_decoded(command.raw_payload))
        if PaymentStatus(order.payment_status) == PaymentStatus.PENDING:
            order.mark_payment_failed(payment.failure_reason)

        current_domain.repository_for(Payment).add(payment)
        current_domain.repository_for(Order).add(order)
        log.info("Payment failed", reason=payment.failure_reason)
        return _result(order, payment, outcome, applied=True, message=payment.failure_reason)


def apply_outcome(
    order_number,
    status,
    amount_minor=None,
    provider_reference=None,
    failure_reason=None,
    payload=None,
    paid_at=None,
    source=OutcomeSource.VERIFY,
    attempt_reference=None,
) -> ReconciliationResult:
    """Run ``ApplyPaymentOutcome`` for one reported outcome."""
    command = ApplyPaymentOutcome(
        order_number=order_number,
        status=OutcomeStatus(status).value,
        attempt_reference=attempt_reference,
        amount_minor=amount_minor,
        provider_reference=provider_reference,
        failure_reason=failure_reason,
        raw_payload=json.dumps(payload, default=str) if payload is not None else None,
        paid_at=paid_at,
        source=source,
    )
    return current_domain.process(command, asynchronous=False)
