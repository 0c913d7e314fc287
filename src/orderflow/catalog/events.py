"""Stock movement events for the Product aggregate.

Every change to a product's stock counter is recorded as one of these facts,
keyed by the order number that caused it.
"""

from protean.fields import DateTime, Identifier, Integer, String

from orderflow.domain import orderflow


@orderflow.event(part_of="Product")
class StockReserved:
    """Stock was decremented for an order at placement time."""

    __version__ = 1

    product_id = Identifier(required=True)
    order_number = String(required=True)
    quantity = Integer(required=True)
    previous_stock = Integer(required=True)
    new_stock = Integer(required=True)
    reserved_at = DateTime(required=True)


@orderflow.event(part_of="Product")
class StockReleased:
    """Stock was returned after cancellation, refund or expiry of an order."""

    __version__ = 1

    product_id = Identifier(required=True)
    order_number = String(required=True)
    quantity = Integer(required=True)
    previous_stock = Integer(required=True)
    new_stock = Integer(required=True)
    released_at = DateTime(required=True)
