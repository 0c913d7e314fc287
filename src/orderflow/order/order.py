"""Order aggregate: the immutable record of a purchase.

Items, totals and addresses are frozen when the order is placed. After that
only the status pair, tracking number, notes and the compensation bookkeeping
change.

State machine over ``order_status``:
    PENDING → PROCESSING → SHIPPED → DELIVERED
    PENDING | PROCESSING → CANCELLED

``payment_status`` moves independently:
    PENDING → PAID → REFUNDED
    PENDING → FAILED → PENDING (retry)

CANCELLED and DELIVERED are terminal order states.
"""

from datetime import UTC, datetime
from enum import Enum

from protean import invariant
from protean.fields import (
    Boolean,
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from orderflow.domain import orderflow
from orderflow.order.events import (
    OrderCancelled,
    OrderDelivered,
    OrderPaid,
    OrderPaymentFailed,
    OrderPlaced,
    OrderRefunded,
    OrderShipped,
)
from orderflow.shared.errors import IllegalTransitionError
from orderflow.shared.line_items import ItemType, assert_single_reference
from orderflow.shared.money import as_amount, line_total, sum_lines


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentMethod(Enum):
    GATEWAY = "gateway"
    BANK_TRANSFER = "bank_transfer"
    CASH_ON_DELIVERY = "cash_on_delivery"


class CancellationActor(Enum):
    CUSTOMER = "Customer"
    ADMIN = "Admin"
    SYSTEM = "System"


_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),  # Terminal
    OrderStatus.CANCELLED: set(),  # Terminal
}

_VALID_PAYMENT_TRANSITIONS = {
    PaymentStatus.PENDING: {PaymentStatus.PAID, PaymentStatus.FAILED},
    PaymentStatus.FAILED: {PaymentStatus.PENDING, PaymentStatus.PAID},  # retry or late success
    PaymentStatus.PAID: {PaymentStatus.REFUNDED},
    PaymentStatus.REFUNDED: set(),
}

_CANCELLABLE_STATES = {OrderStatus.PENDING, OrderStatus.PROCESSING}


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@orderflow.value_object(part_of="Order")
class Address:
    """Shipping or billing address snapshot captured at checkout."""

    street = String(max_length=255)
    city = String(max_length=100)
    state = String(max_length=100)
    country = String(max_length=100)
    postal_code = String(max_length=20)
    phone = String(max_length=30)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@orderflow.entity(part_of="Order")
class OrderItem:
    """A frozen copy of a cart line: name and price as they were at checkout."""

    item_type = String(required=True, choices=ItemType)
    product_id = Identifier()
    service_variant_id = Identifier()
    name = String(required=True, max_length=255)
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(required=True, min_value=0.0)
    line_total = Float(required=True, min_value=0.0)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@orderflow.aggregate
class Order:
    order_number = String(required=True, max_length=50, unique=True)
    customer_id = Identifier(required=True)
    customer_email = String(max_length=255)
    items = HasMany(OrderItem)
    subtotal = Float(default=0.0)
    total = Float(default=0.0)
    shipping_address = ValueObject(Address)
    billing_address = ValueObject(Address)
    payment_method = String(required=True, choices=PaymentMethod)
    payment_status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    order_status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    notes = Text()
    tracking_number = String(max_length=255)
    stock_released = Boolean(default=False)
    cancellation_reason = String(max_length=500)
    cancelled_by = String(max_length=50)
    paid_at = DateTime()
    delivered_at = DateTime()
    cancelled_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def every_line_references_exactly_one_item(self):
        for item in self.items or []:
            assert_single_reference(item.product_id, item.service_variant_id)

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        order_number,
        customer_id,
        customer_email,
        items_data,
        shipping_address,
        billing_address,
        payment_method,
        notes=None,
    ):
        """Create a pending order from checkout data.

        Args:
            items_data: List of dicts with item_type, product_id,
                        service_variant_id, name, quantity, unit_price.
            shipping_address: Dict with street, city, state, country,
                              postal_code, phone.
            billing_address: Same shape as shipping_address.
        """
        now = datetime.now(UTC)
        items = [
            OrderItem(
                item_type=data["item_type"],
                product_id=data.get("product_id"),
                service_variant_id=data.get("service_variant_id"),
                name=data["name"],
                quantity=data["quantity"],
                unit_price=as_amount(data["unit_price"]),
                line_total=float(line_total(data["quantity"], data["unit_price"])),
            )
            for data in items_data
        ]
        subtotal = float(sum_lines(items))

        order = cls(
            order_number=order_number,
            customer_id=str(customer_id),
            customer_email=customer_email,
            subtotal=subtotal,
            total=subtotal,
            shipping_address=Address(**shipping_address),
            billing_address=Address(**billing_address),
            payment_method=payment_method,
            payment_status=PaymentStatus.PENDING.value,
            order_status=OrderStatus.PENDING.value,
            notes=notes,
            stock_released=False,
            created_at=now,
            updated_at=now,
        )
        order.add_items(items)

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order_number,
                customer_id=str(customer_id),
                payment_method=payment_method,
                item_count=sum(item.quantity for item in items),
                total=subtotal,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # State transition helpers
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target: OrderStatus) -> None:
        current = OrderStatus(self.order_status)
        if target not in _VALID_TRANSITIONS.get(current, set()):
            raise IllegalTransitionError(current.value, target.value)

    def _assert_can_transition_payment(self, target: PaymentStatus) -> None:
        current = PaymentStatus(self.payment_status)
        if target not in _VALID_PAYMENT_TRANSITIONS.get(current, set()):
            raise IllegalTransitionError(current.value, target.value, "payment status")

    @property
    def is_terminal(self) -> bool:
        return OrderStatus(self.order_status) in (OrderStatus.CANCELLED, OrderStatus.DELIVERED)

    # -------------------------------------------------------------------
    # Payment
    # -------------------------------------------------------------------
    def mark_paid(self, paid_at=None) -> None:
        """Record confirmed payment: (pending, pending or failed) → (processing, paid)."""
        self._assert_can_transition_payment(PaymentStatus.PAID)
        self._assert_can_transition(OrderStatus.PROCESSING)

        now = datetime.now(UTC)
        self.payment_status = PaymentStatus.PAID.value
        self.order_status = OrderStatus.PROCESSING.value
        self.paid_at = paid_at or now
        self.updated_at = now

        self.raise_(
            OrderPaid(
                order_id=str(self.id),
                order_number=self.order_number,
                total=self.total,
                paid_at=self.paid_at,
            )
        )

    def record_late_payment(self, paid_at=None) -> None:
        """Record a payment that arrived after cancellation without reopening the order."""
        self._assert_can_transition_payment(PaymentStatus.PAID)

        now = datetime.now(UTC)
        self.payment_status = PaymentStatus.PAID.value
        self.paid_at = paid_at or now
        self.updated_at = now

    def mark_payment_failed(self, reason=None) -> None:
        self._assert_can_transition_payment(PaymentStatus.FAILED)

        now = datetime.now(UTC)
        self.payment_status = PaymentStatus.FAILED.value
        self.updated_at = now

        self.raise_(
            OrderPaymentFailed(
                order_id=str(self.id),
                order_number=self.order_number,
                reason=reason,
                failed_at=now,
            )
        )

    def reopen_payment(self) -> None:
        """Allow another payment attempt after a failure."""
        if OrderStatus(self.order_status) != OrderStatus.PENDING:
            raise IllegalTransitionError(self.order_status, PaymentStatus.PENDING.value, "order is no longer pending")
        self._assert_can_transition_payment(PaymentStatus.PENDING)
        self.payment_status = PaymentStatus.PENDING.value
        self.updated_at = datetime.now(UTC)

    def assert_refundable(self) -> None:
        if OrderStatus(self.order_status) == OrderStatus.DELIVERED:
            raise IllegalTransitionError(self.order_status, PaymentStatus.REFUNDED.value, "order already delivered")
        self._assert_can_transition_payment(PaymentStatus.REFUNDED)

    def mark_refunded(self, amount: float) -> None:
        """Close the order after its payment was refunded: → (cancelled, refunded)."""
        self.assert_refundable()

        now = datetime.now(UTC)
        self.payment_status = PaymentStatus.REFUNDED.value
        if OrderStatus(self.order_status) != OrderStatus.CANCELLED:
            self.order_status = OrderStatus.CANCELLED.value
            self.cancelled_at = now
            self.cancelled_by = CancellationActor.ADMIN.value
            self.cancellation_reason = self.cancellation_reason or "Refunded"
        self.updated_at = now

        self.raise_(
            OrderRefunded(
                order_id=str(self.id),
                order_number=self.order_number,
                amount=amount,
                refunded_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Fulfilment
    # -------------------------------------------------------------------
    def cancel(self, reason=None, cancelled_by=CancellationActor.CUSTOMER.value) -> None:
        current = OrderStatus(self.order_status)
        if current not in _CANCELLABLE_STATES:
            raise IllegalTransitionError(current.value, OrderStatus.CANCELLED.value)

        now = datetime.now(UTC)
        self.order_status = OrderStatus.CANCELLED.value
        self.cancellation_reason = reason
        self.cancelled_by = cancelled_by
        self.cancelled_at = now
        self.updated_at = now

        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                order_number=self.order_number,
                reason=reason,
                cancelled_by=cancelled_by,
                cancelled_at=now,
            )
        )

    def mark_stock_released(self) -> None:
        self.stock_released = True
        self.updated_at = datetime.now(UTC)

    def ship(self, tracking_number=None) -> None:
        self._assert_can_transition(OrderStatus.SHIPPED)

        now = datetime.now(UTC)
        self.order_status = OrderStatus.SHIPPED.value
        if tracking_number:
            self.tracking_number = tracking_number
        self.updated_at = now

        self.raise_(
            OrderShipped(
                order_id=str(self.id),
                order_number=self.order_number,
                tracking_number=self.tracking_number,
                shipped_at=now,
            )
        )

    def deliver(self) -> None:
        self._assert_can_transition(OrderStatus.DELIVERED)

        now = datetime.now(UTC)
        self.order_status = OrderStatus.DELIVERED.value
        self.delivered_at = now
        self.updated_at = now

        self.raise_(
            OrderDelivered(
                order_id=str(self.id),
                order_number=self.order_number,
                delivered_at=now,
            )
        )

    def append_note(self, note) -> None:
        if not note:
            return
        self.notes = f"{self.notes} | {note}" if self.notes else note
        self.updated_at = datetime.now(UTC)

    def set_tracking_number(self, tracking_number) -> None:
        self.tracking_number = tracking_number
        self.updated_at = datetime.now(UTC)
