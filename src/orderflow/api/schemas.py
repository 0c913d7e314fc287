"""Pydantic request/response schemas for the orderflow API.

These are external contracts, kept separate from the internal Protean
commands. Quantities and addresses are validated by the domain so that their
errors surface as 400s with the domain's own messages.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class AddressSchema(BaseModel):
    street: str | None = None
    city: str | None = None
    state: str | None = None
    country: str | None = None
    postal_code: str | None = None
    phone: str | None = None


class CartLineSchema(BaseModel):
    line_id: str
    item_type: str
    product_id: str | None = None
    service_variant_id: str | None = None
    name: str | None = None
    service_name: str | None = None
    quantity: int
    unit_price: float
    current_price: float | None = None
    line_total: float
    available_stock: int | None = None
    orderable: bool
    reason: str | None = None


# ---------------------------------------------------------------------------
# Cart
# ---------------------------------------------------------------------------
class AddCartItemRequest(BaseModel):
    product_id: str | None = None
    service_variant_id: str | None = None
    quantity: int = 1

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"product_id": "prod-001", "quantity": 2},
                {"service_variant_id": "var-001", "quantity": 1},
            ]
        }
    }


class UpdateCartItemRequest(BaseModel):
    quantity: int


class CartResponse(BaseModel):
    cart_id: str
    customer_id: str
    items: list[CartLineSchema]
    item_count: int
    subtotal: float
    total: float
    orderable: bool


class CheckoutSummaryResponse(BaseModel):
    items: list[CartLineSchema]
    item_count: int
    subtotal: float
    total: float
    currency: str


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------
class CheckoutRequest(BaseModel):
    customer_email: str | None = None
    shipping_address: AddressSchema
    billing_address: AddressSchema | None = None
    notes: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "customer_email": "ada@example.com",
                    "shipping_address": {
                        "street": "12 Marina Road",
                        "city": "Lagos",
                        "state": "Lagos",
                        "country": "Nigeria",
                        "postal_code": "101001",
                        "phone": "+2348000000000",
                    },
                    "notes": "Leave with the concierge",
                }
            ]
        }
    }


class InitializeGatewayRequest(CheckoutRequest):
    """Either ``order_number`` of an existing pending order, or checkout data for a new one."""

    order_number: str | None = None
    email: str | None = None
    shipping_address: AddressSchema | None = None


class OrderPlacedResponse(BaseModel):
    order_id: str
    order_number: str
    total: float
    order_status: str
    payment_status: str
    payment_instructions: dict[str, Any] | None = None


class GatewaySessionResponse(BaseModel):
    order_id: str
    order_number: str
    reference: str
    authorization_url: str
    access_code: str | None = None
    amount: float
    reused: bool


class ReconciliationResponse(BaseModel):
    order_number: str
    outcome: str
    applied: bool
    payment_status: str
    order_status: str
    message: str | None = None


class WebhookResponse(BaseModel):
    status: str
    event: str | None = None
    detail: str | None = None
    result: ReconciliationResponse | None = None


# ---------------------------------------------------------------------------
# Orders and payments
# ---------------------------------------------------------------------------
class OrderItemSchema(BaseModel):
    item_id: str
    item_type: str
    product_id: str | None = None
    service_variant_id: str | None = None
    name: str
    quantity: int
    unit_price: float
    line_total: float


class PaymentResponse(BaseModel):
    payment_id: str
    order_id: str
    customer_id: str
    amount: float
    payment_method: str
    status: str
    transaction_reference: str
    gateway_reference: str | None = None
    provider_reference: str | None = None
    authorization_url: str | None = None
    failure_reason: str | None = None
    refund_reason: str | None = None
    refunded_amount: float | None = None
    attempt_count: int | None = None
    paid_at: datetime | None = None
    refunded_at: datetime | None = None
    created_at: datetime | None = None


class OrderResponse(BaseModel):
    order_id: str
    order_number: str
    customer_id: str
    customer_email: str | None = None
    items: list[OrderItemSchema]
    subtotal: float
    total: float
    shipping_address: AddressSchema | None = None
    billing_address: AddressSchema | None = None
    payment_method: str
    payment_status: str
    order_status: str
    notes: str | None = None
    tracking_number: str | None = None
    cancellation_reason: str | None = None
    cancelled_by: str | None = None
    paid_at: datetime | None = None
    delivered_at: datetime | None = None
    cancelled_at: datetime | None = None
    created_at: datetime | None = None
    payment: PaymentResponse | None = None


class CancelOrderRequest(BaseModel):
    reason: str | None = None


class UpdateOrderStatusRequest(BaseModel):
    status: str
    tracking_number: str | None = None
    notes: str | None = None

    model_config = {
        "json_schema_extra": {"examples": [{"status": "shipped", "tracking_number": "TRK-0001"}]}
    }


class RefundPaymentRequest(BaseModel):
    amount: float | None = None
    reason: str | None = None


class ConfirmPaymentRequest(BaseModel):
    transaction_reference: str | None = None
    notes: str | None = None


class ExpirePendingRequest(BaseModel):
    older_than_minutes: int | None = None


class ExpirePendingResponse(BaseModel):
    expired_count: int
