"""Cart commands and handler.

Every handler resolves the customer's cart (opening it on first access),
applies one mutation and persists the cart with its recomputed totals in the
same Unit of Work. Stock checks here are advisory; checkout re-validates them
when stock is actually reserved.
"""

import structlog
from protean import handle
from protean.fields import Identifier, Integer
from protean.utils.globals import current_domain

from orderflow.cart.cart import Cart
from orderflow.catalog.lookup import active_product, active_variant
from orderflow.domain import orderflow
from orderflow.shared.errors import InsufficientStockError
from orderflow.shared.line_items import ItemType, assert_single_reference

logger = structlog.get_logger(__name__)


@orderflow.command(part_of="Cart")
class OpenCart:
    """Return the customer's cart, creating it on first access."""

    customer_id = Identifier(required=True)


@orderflow.command(part_of="Cart")
class AddToCart:
    customer_id = Identifier(required=True)
    product_id = Identifier()
    service_variant_id = Identifier()
    quantity = Integer(default=1)


@orderflow.command(part_of="Cart")
class UpdateCartQuantity:
    customer_id = Identifier(required=True)
    line_id = Identifier(required=True)
    quantity = Integer(required=True)


@orderflow.command(part_of="Cart")
class RemoveFromCart:
    customer_id = Identifier(required=True)
    line_id = Identifier(required=True)


@orderflow.command(part_of="Cart")
class ClearCart:
    customer_id = Identifier(required=True)


def _check_stock(product, requested: int) -> None:
    if not product.has_stock_for(requested):
        raise InsufficientStockError(product.name, requested, product.stock or 0)


@orderflow.command_handler(part_of=Cart)
class ManageCartHandler:
    @handle(OpenCart)
    def open_cart(self, command):
        cart = current_domain.repository_for(Cart).get_or_create(command.customer_id)
        return str(cart.id)

    @handle(AddToCart)
    def add_to_cart(self, command):
        item_type = assert_single_reference(command.product_id, command.service_variant_id)
        repo = current_domain.repository_for(Cart)
        cart = repo.get_or_create(command.customer_id)

        if item_type == ItemType.PRODUCT:
            product = active_product(command.product_id)
            _check_stock(product, cart.quantity_of(command.product_id) + (command.quantity or 0))
            unit_price = product.price
        else:
            variant, _ = active_variant(command.service_variant_id)
            unit_price = variant.price

        line = cart.add_item(
            quantity=command.quantity,
            unit_price=unit_price,
            product_id=command.product_id,
            service_variant_id=command.service_variant_id,
        )
        repo.add(cart)

        logger.info(
            "Added item to cart",
            cart_id=str(cart.id),
            line_id=str(line.id),
            item_type=item_type.value,
            quantity=line.quantity,
        )
        return str(cart.id)

    @handle(UpdateCartQuantity)
    def update_cart_quantity(self, command):
        repo = current_domain.repository_for(Cart)
        cart = repo.get_or_create(command.customer_id)

        line = cart.find_line(command.line_id)
        if line is not None and line.product_id and (command.quantity or 0) >= 1:
            _check_stock(active_product(line.product_id), command.quantity)

        cart.update_quantity(command.line_id, command.quantity)
        repo.add(cart)
        return str(cart.id)

    @handle(RemoveFromCart)
    def remove_from_cart(self, command):
        repo = current_domain.repository_for(Cart)
        cart = repo.get_or_create(command.customer_id)
        cart.remove_item(command.line_id)
        repo.add(cart)
        return str(cart.id)

    @handle(ClearCart)
    def clear_cart(self, command):
        repo = current_domain.repository_for(Cart)
        cart = repo.get_or_create(command.customer_id)
        cart.clear()
        repo.add(cart)
        return str(cart.id)
