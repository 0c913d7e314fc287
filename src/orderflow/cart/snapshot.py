"""Read-only cart view joined against the catalogue.

Lines whose product or variant has disappeared or been deactivated since they
were added stay in the view, flagged ``orderable=False`` with a reason, so
checkout can reject them by name instead of silently dropping them.
"""

from orderflow.cart.cart import Cart
from orderflow.catalog.lookup import find_product, find_variant
from orderflow.shared.money import line_total


def _product_line(line) -> dict:
    product = find_product(line.product_id)
    view = {
        "name": product.name if product else None,
        "current_price": product.price if product else None,
        "available_stock": product.stock if product else 0,
        "service_name": None,
    }
    if product is None:
        return {**view, "orderable": False, "reason": "Product no longer exists"}
    if not product.is_active:
        return {**view, "orderable": False, "reason": f"{product.name} is no longer available"}
    if not product.has_stock_for(line.quantity):
        return {
            **view,
            "orderable": False,
            "reason": f"Only {product.stock} units of {product.name} available",
        }
    return {**view, "orderable": True, "reason": None}


def _service_line(line) -> dict:
    variant, service = find_variant(line.service_variant_id)
    view = {
        "name": variant.name if variant else None,
        "current_price": variant.price if variant else None,
        "available_stock": None,
        "service_name": service.name if service else None,
    }
    if variant is None:
        return {**view, "orderable": False, "reason": "Service variant no longer exists"}
    if not variant.is_active:
        return {**view, "orderable": False, "reason": f"{variant.name} is no longer available"}
    if service is None or not service.is_active:
        return {**view, "orderable": False, "reason": "The parent service is no longer available"}
    return {**view, "orderable": True, "reason": None}


def snapshot_cart(cart: Cart) -> dict:
    lines = []
    for line in cart.items:
        joined = _product_line(line) if line.product_id else _service_line(line)
        lines.append(
            {
                "line_id": str(line.id),
                "item_type": line.item_type,
                "product_id": str(line.product_id) if line.product_id else None,
                "service_variant_id": str(line.service_variant_id) if line.service_variant_id else None,
                "quantity": line.quantity,
                "unit_price": line.unit_price,
                "line_total": float(line_total(line.quantity, line.unit_price)),
                **joined,
            }
        )

    return {
        "cart_id": str(cart.id),
        "customer_id": str(cart.customer_id),
        "items": lines,
        "item_count": sum(line["quantity"] for line in lines),
        "subtotal": cart.subtotal or 0.0,
        "total": cart.total or 0.0,
        "orderable": bool(lines) and all(line["orderable"] for line in lines),
    }
