"""Polymorphic line-item references shared by carts and orders.

A line points at exactly one purchasable thing: a physical product or a
service variant. Both ``CartItem`` and ``OrderItem`` enforce this through
``assert_single_reference`` before anything is persisted.
"""

from enum import Enum

from protean.exceptions import ValidationError


class ItemType(Enum):
    PRODUCT = "product"
    SERVICE = "service"


def assert_single_reference(product_id, service_variant_id) -> ItemType:
    """Return the line's item type, or raise if not exactly one reference is set."""
    if product_id and service_variant_id:
        raise ValidationError({"item": ["Provide either a product or a service variant, not both"]})
    if not product_id and not service_variant_id:
        raise ValidationError({"item": ["Either a product or a service variant is required"]})
    return ItemType.PRODUCT if product_id else ItemType.SERVICE


def reference_of(line) -> str:
    """The catalogue identifier a line points at."""
    return str(line.product_id or line.service_variant_id)
