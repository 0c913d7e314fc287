"""Order lifecycle: cancellation, fulfilment progression, refunds and expiry.

Each transition reads the order, validates the edge against its current
status and writes the result inside one Unit of Work, so two conflicting
administrative requests cannot both succeed. Stock is returned through the
inventory guard at most once per order; the ``stock_released`` flag is set
in the same transition that releases it.
"""

from datetime import UTC, datetime, timedelta

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from orderflow.config import settings
from orderflow.domain import orderflow
from orderflow.gateway import get_gateway
from orderflow.inventory.guard import release
from orderflow.order.order import CancellationActor, Order, OrderStatus, PaymentMethod, PaymentStatus
from orderflow.payment.payment import Payment
from orderflow.payment.reconciliation import OutcomeSource, apply_outcome
from orderflow.shared.errors import IllegalTransitionError, NotFoundError, OrderflowError
from orderflow.shared.money import to_minor_units

logger = structlog.get_logger(__name__)

_OFFLINE_METHODS = {PaymentMethod.BANK_TRANSFER.value, PaymentMethod.CASH_ON_DELIVERY.value}


@orderflow.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    customer_id = Identifier()  # Set when a customer cancels; restricts to own orders
    reason = String(max_length=500)
    cancelled_by = String(choices=CancellationActor, default=CancellationActor.CUSTOMER.value)


@orderflow.command(part_of="Order")
class UpdateOrderStatus:
    order_id = Identifier(required=True)
    status = String(required=True, choices=OrderStatus)
    tracking_number = String(max_length=255)
    notes = Text()


@orderflow.command(part_of="Order")
class RefundPayment:
    payment_id = Identifier(required=True)
    amount = Float()
    reason = String(max_length=500)
    upstream_accepted = Boolean(default=False)


@orderflow.command(part_of="Order")
class ExpireStalePendingOrders:
    """Cancel unpaid pending orders older than the grace period."""

    older_than_minutes = Integer()
    as_of = DateTime()  # Optional: defaults to now


def _release_once(order: Order) -> int:
    if order.stock_released:
        return 0
    units = release(order.order_number, order.items)
    order.mark_stock_released()
    return units


def _cancel(order: Order, reason, cancelled_by) -> None:
    order.cancel(reason=reason, cancelled_by=cancelled_by)
    units = _release_once(order)
    logger.info(
        "Order cancelled",
        order_number=order.order_number,
        cancelled_by=cancelled_by,
        units_released=units,
    )


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


@orderflow.command_handler(part_of=Order)
class OrderLifecycleHandler:
    @handle(CancelOrder)
    def cancel_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        if command.customer_id and str(order.customer_id) != str(command.customer_id):
            raise NotFoundError("Order", str(command.order_id))

        _cancel(order, command.reason, command.cancelled_by or CancellationActor.CUSTOMER.value)
        repo.add(order)
        return str(order.id)

    @handle(UpdateOrderStatus)
    def update_order_status(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        target = OrderStatus(command.status)
        current = OrderStatus(order.order_status)

        if target == OrderStatus.CANCELLED and current != OrderStatus.CANCELLED:
            _cancel(order, command.notes or "Cancelled by administrator", CancellationActor.ADMIN.value)
        elif target == OrderStatus.SHIPPED and current != OrderStatus.SHIPPED:
            order.ship(command.tracking_number)
        elif target == OrderStatus.DELIVERED and current != OrderStatus.DELIVERED:
            order.deliver()
        elif target != current:
            raise IllegalTransitionError(current.value, target.value, "only payment confirmation moves an order here")

        if command.tracking_number and order.tracking_number != command.tracking_number:
            order.set_tracking_number(command.tracking_number)
        if command.notes and target != OrderStatus.CANCELLED:
            order.append_note(command.notes)

        repo.add(order)
        logger.info(
            "Order status updated",
            order_number=order.order_number,
            previous_status=current.value,
            order_status=order.order_status,
        )
        return str(order.id)

    @handle(RefundPayment)
    def refund_payment(self, command):
        payment_repo = current_domain.repository_for(Payment)
        order_repo = current_domain.repository_for(Order)
        payment = payment_repo.get(command.payment_id)
        order = order_repo.get(payment.order_id)

        refunded = payment.refund(
            amount=command.amount,
            reason=command.reason,
            upstream_accepted=bool(command.upstream_accepted),
        )
        order.mark_refunded(refunded)
        units = _release_once(order)

        payment_repo.add(payment)
        order_repo.add(order)
        logger.info(
            "Payment refunded",
            order_number=order.order_number,
            amount=refunded,
            upstream_accepted=bool(command.upstream_accepted),
            units_released=units,
        )
        return str(payment.id)

    @handle(ExpireStalePendingOrders)
    def expire_stale_pending_orders(self, command):
        as_of = _as_utc(command.as_of) if command.as_of else datetime.now(UTC)
        minutes = (
            settings.pending_order_grace_minutes if command.older_than_minutes is None else command.older_than_minutes
        )
        cutoff = as_of - timedelta(minutes=minutes)

        logger.info("Checking for stale pending orders", cutoff=cutoff.isoformat(), older_than_minutes=minutes)

        pending = current_domain.repository_for(Order).matching(order_status=OrderStatus.PENDING.value)
        stale = [
            order
            for order in pending
            if order.payment_status in (PaymentStatus.PENDING.value, PaymentStatus.FAILED.value)
            and order.created_at
            and _as_utc(order.created_at) < cutoff
        ]
        if not stale:
            logger.info("No stale pending orders found")
            return 0

        expired = 0
        for order in stale:
            try:
                current_domain.process(
                    CancelOrder(
                        order_id=str(order.id),
                        reason=f"Payment not received within {minutes} minutes",
                        cancelled_by=CancellationActor.SYSTEM.value,
                    ),
                    asynchronous=False,
                )
                expired += 1
            except (ValidationError, OrderflowError) as exc:
                logger.warning("Failed to expire order", order_number=order.order_number, error=str(exc))

        logger.info("Stale order expiry complete", expired_count=expired)
        return expired


# ---------------------------------------------------------------------------
# Orchestrations that call the gateway outside the Unit of Work
# ---------------------------------------------------------------------------
def refund_payment(payment_id, amount=None, reason=None) -> str:
    """Refund a completed payment: upstream first (best effort), then local bookkeeping."""
    payment = current_domain.repository_for(Payment).get(payment_id)
    order = current_domain.repository_for(Order).get(payment.order_id)

    # Both aggregates validate before anything is sent upstream
    refund_amount = payment.refundable_amount(amount)
    order.assert_refundable()

    upstream_accepted = False
    if payment.is_gateway and payment.provider_reference:
        try:
            outcome = get_gateway().refund(payment.provider_reference, to_minor_units(refund_amount))
            upstream_accepted = outcome.accepted
            if not outcome.accepted:
                logger.error(
                    "Gateway declined refund, manual follow-up required",
                    order_number=order.order_number,
                    message=outcome.message,
                )
        except OrderflowError as exc:
            logger.error(
                "Gateway refund failed, manual follow-up required",
                order_number=order.order_number,
                error=exc.message,
            )

    return current_domain.process(
        RefundPayment(
            payment_id=str(payment.id),
            amount=float(refund_amount),
            reason=reason,
            upstream_accepted=upstream_accepted,
        ),
        asynchronous=False,
    )


def confirm_offline_payment(order_id, transaction_reference=None, note=None):
    """Confirm a bank-transfer or cash-on-delivery payment through the reconciler."""
    order = current_domain.repository_for(Order).get(order_id)
    if order.payment_method not in _OFFLINE_METHODS:
        raise ValidationError({"payment_method": ["Only bank transfer and cash on delivery payments can be confirmed"]})

    return apply_outcome(
        order_number=order.order_number,
        status="success",
        provider_reference=transaction_reference or order.order_number,
        payload={
            "confirmed_by": "admin",
            "transaction_reference": transaction_reference,
            "note": note,
            "confirmed_at": datetime.now(UTC).isoformat(),
        },
        source=OutcomeSource.ADMIN,
    )
