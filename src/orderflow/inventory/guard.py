"""Inventory guard: the only code path that moves product stock.

``reserve_for_order`` runs inside the Unit of Work that creates the order, so
the availability check and the decrement commit or roll back together with
the order row. It validates every line before touching any counter, which
keeps a partial reservation from ever being staged.

``release`` is the compensating action for cancellation, refund and expiry.
It is not idempotent by itself; the order's ``stock_released`` flag is what
guarantees it runs at most once per order.

Service-variant lines carry no stock and are skipped by both operations.
"""

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from orderflow.catalog.product import Product
from orderflow.shared.errors import InsufficientStockError, NotFoundError

logger = structlog.get_logger(__name__)


def _physical_quantities(lines) -> dict[str, int]:
    """Total requested quantity per product, in first-seen order."""
    quantities: dict[str, int] = {}
    for line in lines:
        if not line.product_id:
            continue
        key = str(line.product_id)
        quantities[key] = quantities.get(key, 0) + line.quantity
    return quantities


def reserve_for_order(order_number: str, lines) -> list[Product]:
    """Check and decrement stock for every physical line.

    Raises ``InsufficientStockError`` naming the first short product. Nothing
    is decremented unless every product can cover its requested quantity.
    """
    repo = current_domain.repository_for(Product)
    quantities = _physical_quantities(lines)

    products = []
    for product_id, requested in quantities.items():
        try:
            product = repo.get(product_id)
        except ObjectNotFoundError:
            raise NotFoundError("Product", product_id) from None
        if not product.is_active:
            raise NotFoundError("Product", product_id)
        if not product.has_stock_for(requested):
            logger.warning(
                "Stock check failed",
                order_number=order_number,
                product_id=product_id,
                requested=requested,
                available=product.stock,
            )
            raise InsufficientStockError(product.name, requested, product.stock or 0)
        products.append((product, requested))

    for product, requested in products:
        product.reserve(requested, order_number)
        repo.add(product)

    logger.info(
        "Reserved stock",
        order_number=order_number,
        products=len(products),
        units=sum(requested for _, requested in products),
    )
    return [product for product, _ in products]


def release(order_number: str, lines) -> int:
    """Return the ordered quantities to stock. Returns the number of units released."""
    repo = current_domain.repository_for(Product)
    released = 0
    for product_id, quantity in _physical_quantities(lines).items():
        try:
            product = repo.get(product_id)
        except ObjectNotFoundError:
            logger.error(
                "Cannot release stock for missing product",
                order_number=order_number,
                product_id=product_id,
                quantity=quantity,
            )
            continue
        product.release(quantity, order_number)
        repo.add(product)
        released += quantity

    logger.info("Released stock", order_number=order_number, units=released)
    return released
