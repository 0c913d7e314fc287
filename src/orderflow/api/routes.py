"""FastAPI routes for carts, checkout, orders, payments and administration.

Routes that reach the domain are plain functions: command handlers block on
the database and the payment gateway, so FastAPI runs them in its threadpool.
Only the webhook reads the raw request body asynchronously.
"""

import json
from datetime import date

from fastapi import APIRouter, Depends, Header, Request
from protean.utils.globals import current_domain

from orderflow.api.dependencies import current_customer, require_admin
from orderflow.api.schemas import (
    AddCartItemRequest,
    CancelOrderRequest,
    CartResponse,
    CheckoutRequest,
    CheckoutSummaryResponse,
    ConfirmPaymentRequest,
    ExpirePendingRequest,
    ExpirePendingResponse,
    GatewaySessionResponse,
    InitializeGatewayRequest,
    OrderPlacedResponse,
    OrderResponse,
    PaymentResponse,
    ReconciliationResponse,
    RefundPaymentRequest,
    UpdateCartItemRequest,
    UpdateOrderStatusRequest,
    WebhookResponse,
)
from orderflow.cart.cart import Cart
from orderflow.cart.items import AddToCart, ClearCart, OpenCart, RemoveFromCart, UpdateCartQuantity
from orderflow.cart.snapshot import snapshot_cart
from orderflow.order.lifecycle import (
    CancelOrder,
    ExpireStalePendingOrders,
    UpdateOrderStatus,
    confirm_offline_payment,
    refund_payment,
)
from orderflow.order.order import CancellationActor, PaymentMethod
from orderflow.order.placement import PlaceOrder, checkout_summary, payment_instructions
from orderflow.order.queries import (
    get_order,
    get_payment,
    list_orders,
    list_payments,
    order_detail,
    order_detail_by_number,
    payment_for_order,
    payment_view,
)
from orderflow.payment.initialization import initialize_gateway_payment
from orderflow.payment.verification import verify_payment
from orderflow.payment.webhook import handle_webhook
from orderflow.reporting.statistics import order_stats, payment_stats


def _cart_snapshot(cart_id) -> dict:
    return snapshot_cart(current_domain.repository_for(Cart).get(cart_id))


# ---------------------------------------------------------------------------
# Cart Router
# ---------------------------------------------------------------------------
cart_router = APIRouter(prefix="/cart", tags=["cart"])


@cart_router.get("", response_model=CartResponse)
def get_cart(customer_id: str = Depends(current_customer)) -> CartResponse:
    """Return the customer's cart, creating it on first access."""
    cart_id = current_domain.process(OpenCart(customer_id=customer_id), asynchronous=False)
    return CartResponse(**_cart_snapshot(cart_id))


@cart_router.post("/items", status_code=201, response_model=CartResponse)
def add_cart_item(body: AddCartItemRequest, customer_id: str = Depends(current_customer)) -> CartResponse:
    command = AddToCart(
        customer_id=customer_id,
        product_id=body.product_id,
        service_variant_id=body.service_variant_id,
        quantity=body.quantity,
    )
    cart_id = current_domain.process(command, asynchronous=False)
    return CartResponse(**_cart_snapshot(cart_id))


@cart_router.put("/items/{line_id}", response_model=CartResponse)
def update_cart_item(
    line_id: str,
    body: UpdateCartItemRequest,
    customer_id: str = Depends(current_customer),
) -> CartResponse:
    command = UpdateCartQuantity(customer_id=customer_id, line_id=line_id, quantity=body.quantity)
    cart_id = current_domain.process(command, asynchronous=False)
    return CartResponse(**_cart_snapshot(cart_id))


@cart_router.delete("/items/{line_id}", response_model=CartResponse)
def remove_cart_item(line_id: str, customer_id: str = Depends(current_customer)) -> CartResponse:
    command = RemoveFromCart(customer_id=customer_id, line_id=line_id)
    cart_id = current_domain.process(command, asynchronous=False)
    return CartResponse(**_cart_snapshot(cart_id))


@cart_router.delete("", response_model=CartResponse)
def clear_cart(customer_id: str = Depends(current_customer)) -> CartResponse:
    cart_id = current_domain.process(ClearCart(customer_id=customer_id), asynchronous=False)
    return CartResponse(**_cart_snapshot(cart_id))


# ---------------------------------------------------------------------------
# Checkout Router
# ---------------------------------------------------------------------------
checkout_router = APIRouter(prefix="/checkout", tags=["checkout"])


def _place_order(body: CheckoutRequest, customer_id: str, method: PaymentMethod) -> str:
    command = PlaceOrder(
        customer_id=customer_id,
        customer_email=body.customer_email,
        shipping_address=json.dumps(body.shipping_address.model_dump()),
        billing_address=json.dumps(body.billing_address.model_dump()) if body.billing_address else None,
        payment_method=method.value,
        notes=body.notes,
    )
    return current_domain.process(command, asynchronous=False)


def _placed_response(order_id: str) -> OrderPlacedResponse:
    order = get_order(order_id)
    return OrderPlacedResponse(
        order_id=str(order.id),
        order_number=order.order_number,
        total=order.total,
        order_status=order.order_status,
        payment_status=order.payment_status,
        payment_instructions=payment_instructions(order),
    )


@checkout_router.get("/summary", response_model=CheckoutSummaryResponse)
def get_checkout_summary(customer_id: str = Depends(current_customer)) -> CheckoutSummaryResponse:
    """Validate the cart against current stock and return the totals checkout would charge."""
    return CheckoutSummaryResponse(**checkout_summary(customer_id))


@checkout_router.post("/bank-transfer", status_code=201, response_model=OrderPlacedResponse)
def checkout_bank_transfer(
    body: CheckoutRequest,
    customer_id: str = Depends(current_customer),
) -> OrderPlacedResponse:
    order_id = _place_order(body, customer_id, PaymentMethod.BANK_TRANSFER)
    return _placed_response(order_id)


@checkout_router.post("/cash-on-delivery", status_code=201, response_model=OrderPlacedResponse)
def checkout_cash_on_delivery(
    body: CheckoutRequest,
    customer_id: str = Depends(current_customer),
) -> OrderPlacedResponse:
    order_id = _place_order(body, customer_id, PaymentMethod.CASH_ON_DELIVERY)
    return _placed_response(order_id)


@checkout_router.post("/gateway/initialize", response_model=GatewaySessionResponse)
def initialize_gateway(
    body: InitializeGatewayRequest,
    customer_id: str = Depends(current_customer),
) -> GatewaySessionResponse:
    """Open a gateway checkout session.

    With ``order_number`` the session is (re)opened for an existing pending
    order. Otherwise the cart is placed as a gateway order first; if the
    gateway is then unavailable, the order stays pending and can be retried
    by number.
    """
    order_number = body.order_number
    if not order_number:
        checkout = CheckoutRequest(
            customer_email=body.customer_email or body.email,
            shipping_address=body.shipping_address or {},
            billing_address=body.billing_address,
            notes=body.notes,
        )
        order_number = get_order(_place_order(checkout, customer_id, PaymentMethod.GATEWAY)).order_number

    session = initialize_gateway_payment(order_number, customer_id, email=body.email or body.customer_email)
    return GatewaySessionResponse(**session)


@checkout_router.get("/gateway/verify/{reference}", response_model=ReconciliationResponse)
def verify_gateway_payment(
    reference: str,
    customer_id: str = Depends(current_customer),
) -> ReconciliationResponse:
    """Verify the caller's own payment after the gateway redirect."""
    result = verify_payment(reference, customer_id=customer_id)
    return ReconciliationResponse(**result.to_dict())


@checkout_router.post("/gateway/webhook", response_model=WebhookResponse)
async def gateway_webhook(
    request: Request,
    x_paystack_signature: str | None = Header(default=None),
) -> WebhookResponse:
    """Receive a gateway webhook. The signature covers the raw body, so it is read unparsed."""
    body = await request.body()
    return WebhookResponse(**handle_webhook(body, x_paystack_signature))


# ---------------------------------------------------------------------------
# Order Router (customer)
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.get("", response_model=list[OrderResponse])
def list_my_orders(customer_id: str = Depends(current_customer)) -> list[OrderResponse]:
    return [OrderResponse(**view) for view in list_orders(customer_id=customer_id)]


@order_router.get("/number/{order_number}", response_model=OrderResponse)
def get_my_order_by_number(order_number: str, customer_id: str = Depends(current_customer)) -> OrderResponse:
    return OrderResponse(**order_detail_by_number(order_number, customer_id=customer_id))


@order_router.get("/{order_id}", response_model=OrderResponse)
def get_my_order(order_id: str, customer_id: str = Depends(current_customer)) -> OrderResponse:
    return OrderResponse(**order_detail(order_id, customer_id=customer_id))


@order_router.post("/{order_id}/cancel", response_model=OrderResponse)
def cancel_my_order(
    order_id: str,
    body: CancelOrderRequest | None = None,
    customer_id: str = Depends(current_customer),
) -> OrderResponse:
    get_order(order_id, customer_id=customer_id)
    command = CancelOrder(
        order_id=order_id,
        customer_id=customer_id,
        reason=body.reason if body else None,
        cancelled_by=CancellationActor.CUSTOMER.value,
    )
    current_domain.process(command, asynchronous=False)
    return OrderResponse(**order_detail(order_id))


# ---------------------------------------------------------------------------
# Payment Router (customer)
# ---------------------------------------------------------------------------
payment_router = APIRouter(prefix="/payments", tags=["payments"])


@payment_router.get("", response_model=list[PaymentResponse])
def list_my_payments(customer_id: str = Depends(current_customer)) -> list[PaymentResponse]:
    return [PaymentResponse(**view) for view in list_payments(customer_id=customer_id)]


@payment_router.get("/order/{order_id}", response_model=PaymentResponse)
def get_my_order_payment(order_id: str, customer_id: str = Depends(current_customer)) -> PaymentResponse:
    return PaymentResponse(**payment_view(payment_for_order(order_id, customer_id=customer_id)))


@payment_router.get("/{payment_id}", response_model=PaymentResponse)
def get_my_payment(payment_id: str, customer_id: str = Depends(current_customer)) -> PaymentResponse:
    return PaymentResponse(**payment_view(get_payment(payment_id, customer_id=customer_id)))


# ---------------------------------------------------------------------------
# Admin Router
# ---------------------------------------------------------------------------
admin_router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


@admin_router.get("/orders", response_model=list[OrderResponse])
def admin_list_orders(
    order_status: str | None = None,
    payment_status: str | None = None,
    payment_method: str | None = None,
    customer_id: str | None = None,
) -> list[OrderResponse]:
    views = list_orders(
        customer_id=customer_id,
        order_status=order_status,
        payment_status=payment_status,
        payment_method=payment_method,
    )
    return [OrderResponse(**view) for view in views]


@admin_router.get("/orders/stats")
def admin_order_stats(start_date: date | None = None, end_date: date | None = None) -> dict:
    return order_stats(start_date=start_date, end_date=end_date)


@admin_router.put("/orders/{order_id}/status", response_model=OrderResponse)
def admin_update_order_status(order_id: str, body: UpdateOrderStatusRequest) -> OrderResponse:
    get_order(order_id)
    command = UpdateOrderStatus(
        order_id=order_id,
        status=body.status,
        tracking_number=body.tracking_number,
        notes=body.notes,
    )
    current_domain.process(command, asynchronous=False)
    return OrderResponse(**order_detail(order_id))


@admin_router.post("/orders/{order_id}/confirm-payment", response_model=ReconciliationResponse)
def admin_confirm_payment(order_id: str, body: ConfirmPaymentRequest | None = None) -> ReconciliationResponse:
    get_order(order_id)
    result = confirm_offline_payment(
        order_id,
        transaction_reference=body.transaction_reference if body else None,
        note=body.notes if body else None,
    )
    return ReconciliationResponse(**result.to_dict())


@admin_router.get("/payments", response_model=list[PaymentResponse])
def admin_list_payments(status: str | None = None, payment_method: str | None = None) -> list[PaymentResponse]:
    return [PaymentResponse(**view) for view in list_payments(status=status, payment_method=payment_method)]


@admin_router.get("/payments/stats")
def admin_payment_stats(start_date: date | None = None, end_date: date | None = None) -> dict:
    return payment_stats(start_date=start_date, end_date=end_date)


@admin_router.post("/payments/{payment_id}/verify", response_model=ReconciliationResponse)
def admin_verify_payment(payment_id: str) -> ReconciliationResponse:
    payment = get_payment(payment_id)
    result = verify_payment(payment.transaction_reference)
    return ReconciliationResponse(**result.to_dict())


@admin_router.post("/payments/{payment_id}/refund", response_model=PaymentResponse)
def admin_refund_payment(payment_id: str, body: RefundPaymentRequest | None = None) -> PaymentResponse:
    get_payment(payment_id)
    refund_payment(
        payment_id,
        amount=body.amount if body else None,
        reason=body.reason if body else None,
    )
    return PaymentResponse(**payment_view(get_payment(payment_id)))


@admin_router.post("/maintenance/expire-pending", response_model=ExpirePendingResponse)
def admin_expire_pending(body: ExpirePendingRequest | None = None) -> ExpirePendingResponse:
    """Cancel unpaid pending orders past the grace period. Meant for a scheduler."""
    command = ExpireStalePendingOrders(older_than_minutes=body.older_than_minutes if body else None)
    expired = current_domain.process(command, asynchronous=False)
    return ExpirePendingResponse(expired_count=expired or 0)
