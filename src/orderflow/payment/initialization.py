"""Gateway checkout initialization for pending gateway orders.

The order and its stock reservation are already committed when this runs.
The gateway call itself happens outside any Unit of Work; only its result is
recorded transactionally. A gateway failure therefore leaves the order pending
and safe to retry, and a repeated call for an order that already has a live
checkout session returns that session without calling the gateway again.
"""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from orderflow.config import settings
from orderflow.domain import orderflow
from orderflow.gateway import get_gateway
from orderflow.order.order import Order, OrderStatus, PaymentMethod
from orderflow.payment.payment import Payment, PaymentRecordStatus
from orderflow.shared.errors import ConflictError, IllegalTransitionError, OrderNotFoundError
from orderflow.shared.money import to_minor_units

logger = structlog.get_logger(__name__)


@orderflow.command(part_of="Payment")
class ReopenPayment:
    """Open a new payment attempt after the previous one failed."""

    payment_id = Identifier(required=True)


@orderflow.command(part_of="Payment")
class RecordCheckoutSession:
    payment_id = Identifier(required=True)
    authorization_url = String(required=True, max_length=1000)
    access_code = String(max_length=255)
    provider_reference = String(required=True, max_length=255)


@orderflow.command_handler(part_of=Payment)
class CheckoutSessionHandler:
    @handle(ReopenPayment)
    def reopen_payment(self, command):
        payment_repo = current_domain.repository_for(Payment)
        order_repo = current_domain.repository_for(Order)

        payment = payment_repo.get(command.payment_id)
        order = order_repo.get(payment.order_id)

        order.reopen_payment()
        payment.retry()

        order_repo.add(order)
        payment_repo.add(payment)
        logger.info(
            "Payment reopened for retry",
            order_number=order.order_number,
            attempt=payment.attempt_count,
            gateway_reference=payment.gateway_reference,
        )

    @handle(RecordCheckoutSession)
    def record_checkout_session(self, command):
        repo = current_domain.repository_for(Payment)
        payment = repo.get(command.payment_id)
        if payment.has_checkout_session:
            return
        payment.record_initialization(
            authorization_url=command.authorization_url,
            access_code=command.access_code,
            provider_reference=command.provider_reference,
        )
        repo.add(payment)


def _session_view(order, payment, reused) -> dict:
    return {
        "order_id": str(order.id),
        "order_number": order.order_number,
        "reference": payment.gateway_reference,
        "authorization_url": payment.authorization_url,
        "access_code": payment.access_code,
        "amount": payment.amount,
        "reused": reused,
    }


def initialize_gateway_payment(order_number, customer_id, email=None) -> dict:
    """Open (or reuse) the gateway checkout session for a customer's pending order."""
    order = current_domain.repository_for(Order).by_number(order_number)
    if order is None or str(order.customer_id) != str(customer_id):
        raise OrderNotFoundError(order_number)
    if order.payment_method != PaymentMethod.GATEWAY.value:
        raise ValidationError({"payment_method": ["Order is not payable through the gateway"]})
    if OrderStatus(order.order_status) != OrderStatus.PENDING:
        raise IllegalTransitionError(order.order_status, "payment", "order is no longer awaiting payment")

    payment_repo = current_domain.repository_for(Payment)
    payment = payment_repo.for_order(order.id)
    if payment is None:
        raise OrderNotFoundError(order_number)

    status = PaymentRecordStatus(payment.status)
    if status == PaymentRecordStatus.COMPLETED:
        raise ConflictError("Order is already paid")
    if status == PaymentRecordStatus.REFUNDED:
        raise ConflictError("Order payment was refunded")
    if payment.has_checkout_session:
        logger.info("Reusing checkout session", order_number=order.order_number)
        return _session_view(order, payment, reused=True)
    if status == PaymentRecordStatus.FAILED:
        current_domain.process(ReopenPayment(payment_id=str(payment.id)), asynchronous=False)
        payment = payment_repo.get(payment.id)

    payer_email = email or order.customer_email
    if not payer_email:
        raise ValidationError({"email": ["An email address is required for gateway payments"]})

    result = get_gateway().initialize(
        reference=payment.gateway_reference,
        amount_minor=to_minor_units(payment.amount),
        email=payer_email,
        callback_url=settings.gateway_callback_url,
        metadata={
            "order_id": str(order.id),
            "order_number": order.order_number,
            "customer_id": str(order.customer_id),
        },
    )

    current_domain.process(
        RecordCheckoutSession(
            payment_id=str(payment.id),
            authorization_url=result.authorization_url,
            access_code=result.access_code,
            provider_reference=result.provider_reference,
        ),
        asynchronous=False,
    )
    payment = payment_repo.get(payment.id)
    logger.info(
        "Gateway checkout initialized",
        order_number=order.order_number,
        gateway_reference=payment.gateway_reference,
        attempt=payment.attempt_count,
    )
    return _session_view(order, payment, reused=False)
