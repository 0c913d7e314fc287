"""Checkout: turn the customer's cart into an order.

``PlaceOrder`` runs in a single Unit of Work. It inserts the order under a
freshly generated order number, reserves stock through the inventory guard,
inserts the pending payment and clears the cart. Any failure along the way
rolls all of it back, so there is never an order without its stock
reservation or a reservation without its order.

Gateway checkouts stop here with a pending order. Opening the gateway session
is a separate step (``orderflow.payment.initialization``) so that a gateway
outage never undoes an order whose stock is already held.
"""

import json

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from orderflow.cart.cart import Cart
from orderflow.cart.snapshot import snapshot_cart
from orderflow.catalog.lookup import active_product, active_variant
from orderflow.config import settings
from orderflow.domain import orderflow
from orderflow.inventory.guard import reserve_for_order
from orderflow.order.numbering import MAX_ATTEMPTS, generate_order_number
from orderflow.order.order import Order, PaymentMethod
from orderflow.payment.payment import Payment
from orderflow.shared.errors import ConflictError, InsufficientStockError
from orderflow.shared.line_items import ItemType
from orderflow.shared.money import sum_lines, to_decimal

logger = structlog.get_logger(__name__)

_ADDRESS_FIELDS = ("street", "city", "state", "country", "postal_code", "phone")
_REQUIRED_SHIPPING_FIELDS = ("street", "city", "phone")


@orderflow.command(part_of="Order")
class PlaceOrder:
    customer_id = Identifier(required=True)
    customer_email = String(max_length=255)
    shipping_address = Text(required=True)  # JSON: address dict
    billing_address = Text()  # JSON: defaults to the shipping address
    payment_method = String(required=True, choices=PaymentMethod)
    notes = Text()


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------
def _load_address(raw) -> dict:
    if raw is None or raw == "":
        return {}
    data = json.loads(raw) if isinstance(raw, str) else raw
    return {key: data.get(key) for key in _ADDRESS_FIELDS}


def _validated_addresses(shipping_raw, billing_raw) -> tuple[dict, dict]:
    shipping = _load_address(shipping_raw)
    missing = [name for name in _REQUIRED_SHIPPING_FIELDS if not (shipping.get(name) or "").strip()]
    if missing:
        raise ValidationError({"shipping_address": [f"{name} is required" for name in missing]})

    billing = _load_address(billing_raw)
    if not any(billing.values()):
        billing = dict(shipping)
    return shipping, billing


def _line_name(line) -> str:
    if line.product_id:
        return active_product(line.product_id).name
    variant, service = active_variant(line.service_variant_id)
    return f"{service.name} - {variant.name}"


def ensure_orderable(cart: Cart | None) -> dict:
    """Validate a cart for checkout and return its snapshot.

    Raises ``ValidationError`` for an empty or zero-value cart,
    ``NotFoundError`` for a missing or inactive reference and
    ``InsufficientStockError`` for a short product line.
    """
    if cart is None or cart.is_empty:
        raise ValidationError({"cart": ["Cart is empty"]})

    snapshot = snapshot_cart(cart)
    for line in snapshot["items"]:
        if line["orderable"]:
            continue
        if line["product_id"]:
            product = active_product(line["product_id"])
            raise InsufficientStockError(product.name, line["quantity"], product.stock or 0)
        active_variant(line["service_variant_id"])

    if to_decimal(cart.total) <= 0:
        raise ValidationError({"cart": ["Cart total must be greater than zero"]})
    return snapshot


def checkout_summary(customer_id) -> dict:
    """Validate the customer's cart and return the totals checkout would charge."""
    cart = current_domain.repository_for(Cart).for_customer(customer_id)
    snapshot = ensure_orderable(cart)
    return {
        "items": snapshot["items"],
        "item_count": snapshot["item_count"],
        "subtotal": float(sum_lines(cart.items)),
        "total": float(sum_lines(cart.items)),
        "currency": settings.currency,
    }


def payment_instructions(order: Order) -> dict | None:
    """Static instructions for offline payment methods; ``None`` for gateway orders."""
    method = PaymentMethod(order.payment_method)
    if method == PaymentMethod.BANK_TRANSFER:
        return {
            "payment_method": method.value,
            "bank_name": settings.bank_name,
            "account_number": settings.bank_account_number,
            "account_name": settings.bank_account_name,
            "amount": order.total,
            "currency": settings.currency,
            "reference": order.order_number,
            "instructions": (
                f"Please transfer exactly {order.total:.2f} {settings.currency} to the account above "
                f"and use {order.order_number} as your payment reference."
            ),
        }
    if method == PaymentMethod.CASH_ON_DELIVERY:
        return {
            "payment_method": method.value,
            "amount": order.total,
            "currency": settings.currency,
            "reference": order.order_number,
            "instructions": f"Please have {order.total:.2f} {settings.currency} ready when your order is delivered.",
        }
    return None


# ---------------------------------------------------------------------------
# Handler
# ---------------------------------------------------------------------------
def _add_with_unique_number(build_order) -> Order:
    """Persist a new order, regenerating its number on collision."""
    repo = current_domain.repository_for(Order)
    for attempt in range(1, MAX_ATTEMPTS + 1):
        order_number = generate_order_number()
        if repo.number_exists(order_number):
            logger.warning("Order number collision", order_number=order_number, attempt=attempt)
            continue

        order = build_order(order_number)
        try:
            repo.add(order)
        except ValidationError as exc:
            if "order_number" not in exc.messages:
                raise
            logger.warning("Order number collision", order_number=order_number, attempt=attempt)
            continue
        return order

    raise ConflictError(f"Could not allocate a unique order number after {MAX_ATTEMPTS} attempts")


@orderflow.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        method = PaymentMethod(command.payment_method)
        if method == PaymentMethod.GATEWAY and not command.customer_email:
            raise ValidationError({"customer_email": ["An email address is required for gateway payments"]})

        shipping, billing = _validated_addresses(command.shipping_address, command.billing_address)

        cart_repo = current_domain.repository_for(Cart)
        cart = cart_repo.for_customer(command.customer_id)
        ensure_orderable(cart)

        items_data = [
            {
                "item_type": line.item_type,
                "product_id": str(line.product_id) if line.item_type == ItemType.PRODUCT.value else None,
                "service_variant_id": (
                    str(line.service_variant_id) if line.item_type == ItemType.SERVICE.value else None
                ),
                "name": _line_name(line),
                "quantity": line.quantity,
                "unit_price": line.unit_price,
            }
            for line in cart.items
        ]

        order = _add_with_unique_number(
            lambda order_number: Order.place(
                order_number=order_number,
                customer_id=command.customer_id,
                customer_email=command.customer_email,
                items_data=items_data,
                shipping_address=shipping,
                billing_address=billing,
                payment_method=method.value,
                notes=command.notes,
            )
        )

        reserve_for_order(order.order_number, order.items)

        payment = Payment.create(
            order_id=order.id,
            customer_id=command.customer_id,
            order_number=order.order_number,
            amount=order.total,
            payment_method=method.value,
        )
        current_domain.repository_for(Payment).add(payment)

        cart.clear()
        cart_repo.add(cart)

        logger.info(
            "Order placed",
            order_id=str(order.id),
            order_number=order.order_number,
            customer_id=str(command.customer_id),
            payment_method=method.value,
            total=order.total,
        )
        return str(order.id)
