"""Domain events for the Order aggregate."""

from protean.fields import DateTime, Float, Identifier, Integer, String

from orderflow.domain import orderflow


@orderflow.event(part_of="Order")
class OrderPlaced:
    """A cart was converted into an order and its stock reserved."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    customer_id = Identifier(required=True)
    payment_method = String(required=True)
    item_count = Integer(required=True)
    total = Float(required=True)
    placed_at = DateTime(required=True)


@orderflow.event(part_of="Order")
class OrderPaid:
    """Payment for the order was confirmed and the order moved to processing."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    total = Float(required=True)
    paid_at = DateTime(required=True)


@orderflow.event(part_of="Order")
class OrderPaymentFailed:
    """The payment attempt for the order failed; the order stays open."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    reason = String()
    failed_at = DateTime(required=True)


@orderflow.event(part_of="Order")
class OrderCancelled:
    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    reason = String()
    cancelled_by = String(required=True)
    cancelled_at = DateTime(required=True)


@orderflow.event(part_of="Order")
class OrderShipped:
    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    tracking_number = String()
    shipped_at = DateTime(required=True)


@orderflow.event(part_of="Order")
class OrderDelivered:
    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    delivered_at = DateTime(required=True)


@orderflow.event(part_of="Order")
class OrderRefunded:
    """The order's payment was refunded and the order closed."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    amount = Float(required=True)
    refunded_at = DateTime(required=True)
