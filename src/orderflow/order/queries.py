"""Read-side helpers: order and payment views for the API."""

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from orderflow.order.order import Order
from orderflow.payment.payment import Payment
from orderflow.shared.errors import NotFoundError


def _address(address) -> dict | None:
    if address is None:
        return None
    return {
        "street": address.street,
        "city": address.city,
        "state": address.state,
        "country": address.country,
        "postal_code": address.postal_code,
        "phone": address.phone,
    }


def payment_view(payment: Payment) -> dict:
    return {
        "payment_id": str(payment.id),
        "order_id": str(payment.order_id),
        "customer_id": str(payment.customer_id),
        "amount": payment.amount,
        "payment_method": payment.payment_method,
        "status": payment.status,
        "transaction_reference": payment.transaction_reference,
        "gateway_reference": payment.gateway_reference,
        "provider_reference": payment.provider_reference,
        "authorization_url": payment.authorization_url,
        "failure_reason": payment.failure_reason,
        "refund_reason": payment.refund_reason,
        "refunded_amount": payment.refunded_amount,
        "attempt_count": payment.attempt_count,
        "paid_at": payment.paid_at,
        "refunded_at": payment.refunded_at,
        "created_at": payment.created_at,
    }


def order_view(order: Order, payment: Payment | None = None) -> dict:
    return {
        "order_id": str(order.id),
        "order_number": order.order_number,
        "customer_id": str(order.customer_id),
        "customer_email": order.customer_email,
        "items": [
            {
                "item_id": str(item.id),
                "item_type": item.item_type,
                "product_id": str(item.product_id) if item.product_id else None,
                "service_variant_id": str(item.service_variant_id) if item.service_variant_id else None,
                "name": item.name,
                "quantity": item.quantity,
                "unit_price": item.unit_price,
                "line_total": item.line_total,
            }
            for item in order.items
        ],
        "subtotal": order.subtotal,
        "total": order.total,
        "shipping_address": _address(order.shipping_address),
        "billing_address": _address(order.billing_address),
        "payment_method": order.payment_method,
        "payment_status": order.payment_status,
        "order_status": order.order_status,
        "notes": order.notes,
        "tracking_number": order.tracking_number,
        "cancellation_reason": order.cancellation_reason,
        "cancelled_by": order.cancelled_by,
        "paid_at": order.paid_at,
        "delivered_at": order.delivered_at,
        "cancelled_at": order.cancelled_at,
        "created_at": order.created_at,
        "payment": payment_view(payment) if payment else None,
    }


def get_order(order_id, customer_id=None) -> Order:
    """Load an order; with ``customer_id`` set, another customer's order is reported missing."""
    try:
        order = current_domain.repository_for(Order).get(str(order_id))
    except ObjectNotFoundError:
        raise NotFoundError("Order", str(order_id)) from None
    if customer_id is not None and str(order.customer_id) != str(customer_id):
        raise NotFoundError("Order", str(order_id))
    return order


def get_payment(payment_id, customer_id=None) -> Payment:
    try:
        payment = current_domain.repository_for(Payment).get(str(payment_id))
    except ObjectNotFoundError:
        raise NotFoundError("Payment", str(payment_id)) from None
    if customer_id is not None and str(payment.customer_id) != str(customer_id):
        raise NotFoundError("Payment", str(payment_id))
    return payment


def payment_for_order(order_id, customer_id=None) -> Payment:
    order = get_order(order_id, customer_id)
    payment = current_domain.repository_for(Payment).for_order(order.id)
    if payment is None:
        raise NotFoundError("Payment", str(order_id))
    return payment


def order_detail(order_id, customer_id=None) -> dict:
    order = get_order(order_id, customer_id)
    payment = current_domain.repository_for(Payment).for_order(order.id)
    return order_view(order, payment)


def order_detail_by_number(order_number, customer_id=None) -> dict:
    order = current_domain.repository_for(Order).by_number(order_number)
    if order is None or (customer_id is not None and str(order.customer_id) != str(customer_id)):
        raise NotFoundError("Order", str(order_number))
    return order_detail(order.id)


def list_orders(customer_id=None, order_status=None, payment_status=None, payment_method=None) -> list[dict]:
    orders = current_domain.repository_for(Order).matching(
        customer_id=str(customer_id) if customer_id else None,
        order_status=order_status,
        payment_status=payment_status,
        payment_method=payment_method,
    )
    return [order_view(order) for order in orders]


def list_payments(customer_id=None, status=None, payment_method=None) -> list[dict]:
    payments = current_domain.repository_for(Payment).matching(
        customer_id=str(customer_id) if customer_id else None,
        status=status,
        payment_method=payment_method,
    )
    return [payment_view(payment) for payment in payments]
