"""Payment aggregate: one payment record per order.

``transaction_reference`` is the order number and is the idempotent lookup
key for every confirmation path. ``gateway_reference`` is the reference sent
to the gateway for the current attempt; it equals the order number on the
first attempt and gains an attempt suffix on retries, because gateways refuse
to reuse a reference whose transaction already failed.

State Machine:
    PENDING → COMPLETED → REFUNDED
    PENDING → FAILED → PENDING (retry)
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Identifier, Integer, String, Text

from orderflow.domain import orderflow
from orderflow.order.order import PaymentMethod
from orderflow.payment.events import (
    PaymentCompleted,
    PaymentFailed,
    PaymentInitialized,
    PaymentRefunded,
)
from orderflow.shared.errors import IllegalTransitionError
from orderflow.shared.money import as_amount, to_decimal


class PaymentRecordStatus(Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


_VALID_TRANSITIONS = {
    PaymentRecordStatus.PENDING: {PaymentRecordStatus.COMPLETED, PaymentRecordStatus.FAILED},
    PaymentRecordStatus.FAILED: {PaymentRecordStatus.PENDING, PaymentRecordStatus.COMPLETED},  # retry or late success
    PaymentRecordStatus.COMPLETED: {PaymentRecordStatus.REFUNDED},
    PaymentRecordStatus.REFUNDED: set(),  # Terminal
}


@orderflow.aggregate
class Payment:
    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    amount = Float(required=True, min_value=0.0)
    payment_method = String(required=True, choices=PaymentMethod)
    status = String(choices=PaymentRecordStatus, default=PaymentRecordStatus.PENDING.value)
    transaction_reference = String(required=True, max_length=50, unique=True)
    gateway_reference = String(max_length=60)
    provider_reference = String(max_length=255)
    authorization_url = String(max_length=1000)
    access_code = String(max_length=255)
    provider_payload = Text()
    failure_reason = String(max_length=500)
    refund_reason = String(max_length=500)
    refunded_amount = Float(default=0.0)
    attempt_count = Integer(default=1)
    paid_at = DateTime()
    refunded_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, order_id, customer_id, order_number, amount, payment_method):
        now = datetime.now(UTC)
        return cls(
            order_id=str(order_id),
            customer_id=str(customer_id),
            amount=as_amount(amount),
            payment_method=payment_method,
            status=PaymentRecordStatus.PENDING.value,
            transaction_reference=order_number,
            gateway_reference=order_number,
            attempt_count=1,
            refunded_amount=0.0,
            created_at=now,
            updated_at=now,
        )

    # -------------------------------------------------------------------
    # State transition helper
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target: PaymentRecordStatus) -> None:
        current = PaymentRecordStatus(self.status)
        if target not in _VALID_TRANSITIONS.get(current, set()):
            raise IllegalTransitionError(current.value, target.value, "payment")

    @property
    def is_pending(self) -> bool:
        return PaymentRecordStatus(self.status) == PaymentRecordStatus.PENDING

    @property
    def is_completed(self) -> bool:
        return PaymentRecordStatus(self.status) == PaymentRecordStatus.COMPLETED

    @property
    def is_gateway(self) -> bool:
        return self.payment_method == PaymentMethod.GATEWAY.value

    @property
    def has_checkout_session(self) -> bool:
        return self.is_pending and bool(self.authorization_url) and bool(self.provider_reference)

    def payload(self) -> dict:
        """The last raw provider payload, decoded."""
        return json.loads(self.provider_payload) if self.provider_payload else {}

    def _store_payload(self, payload) -> None:
        if payload is not None:
            self.provider_payload = payload if isinstance(payload, str) else json.dumps(payload, default=str)

    # -------------------------------------------------------------------
    # Gateway checkout session
    # -------------------------------------------------------------------
    def record_initialization(self, authorization_url, access_code, provider_reference) -> None:
        if not self.is_pending:
            raise IllegalTransitionError(self.status, "initialized", "only pending payments can be initialized")

        now = datetime.now(UTC)
        self.authorization_url = authorization_url
        self.access_code = access_code
        self.provider_reference = provider_reference
        self.updated_at = now

        self.raise_(
            PaymentInitialized(
                payment_id=str(self.id),
                order_id=str(self.order_id),
                gateway_reference=self.gateway_reference,
                provider_reference=provider_reference,
                attempt_number=self.attempt_count,
                initialized_at=now,
            )
        )

    def retry(self) -> None:
        """Reopen a failed payment for a new gateway attempt."""
        self._assert_can_transition(PaymentRecordStatus.PENDING)

        self.attempt_count = (self.attempt_count or 1) + 1
        self.status = PaymentRecordStatus.PENDING.value
        self.gateway_reference = f"{self.transaction_reference}-{self.attempt_count}"
        self.authorization_url = None
        self.access_code = None
        self.provider_reference = None
        self.failure_reason = None
        self.updated_at = datetime.now(UTC)

    # -------------------------------------------------------------------
    # Outcomes
    # -------------------------------------------------------------------
    def complete(self, provider_reference=None, paid_at=None, payload=None, source=None) -> None:
        self._assert_can_transition(PaymentRecordStatus.COMPLETED)

        now = datetime.now(UTC)
        self.status = PaymentRecordStatus.COMPLETED.value
        if provider_reference:
            self.provider_reference = provider_reference
        self.paid_at = paid_at or now
        self._store_payload(payload)
        self.updated_at = now

        self.raise_(
            PaymentCompleted(
                payment_id=str(self.id),
                order_id=str(self.order_id),
                transaction_reference=self.transaction_reference,
                provider_reference=self.provider_reference,
                amount=self.amount,
                source=source,
                paid_at=self.paid_at,
            )
        )

    def fail(self, reason=None, payload=None) -> None:
        self._assert_can_transition(PaymentRecordStatus.FAILED)

        now = datetime.now(UTC)
        self.status = PaymentRecordStatus.FAILED.value
        self.failure_reason = reason or "Payment failed"
        self._store_payload(payload)
        self.updated_at = now

        self.raise_(
            PaymentFailed(
                payment_id=str(self.id),
                order_id=str(self.order_id),
                transaction_reference=self.transaction_reference,
                reason=self.failure_reason,
                attempt_number=self.attempt_count or 1,
                failed_at=now,
            )
        )

    def refundable_amount(self, amount=None):
        """Validate a refund of ``amount`` (the full amount when omitted) and return it as a Decimal.

        Raises ``IllegalTransitionError`` unless the payment is completed and
        ``ValidationError`` unless the amount is positive and within the payment.
        """
        self._assert_can_transition(PaymentRecordStatus.REFUNDED)

        refund_amount = to_decimal(self.amount if amount is None else amount)
        if refund_amount <= 0:
            raise ValidationError({"amount": ["Refund amount must be positive"]})
        if refund_amount > to_decimal(self.amount):
            raise ValidationError(
                {"amount": [f"Refund amount ({refund_amount}) cannot exceed payment amount ({self.amount})"]}
            )
        return refund_amount

    def refund(self, amount=None, reason=None, upstream_accepted=False) -> float:
        """Book a refund locally. Returns the refunded amount."""
        refund_amount = self.refundable_amount(amount)

        now = datetime.now(UTC)
        self.status = PaymentRecordStatus.REFUNDED.value
        self.refunded_amount = float(refund_amount)
        self.refund_reason = reason
        self.refunded_at = now
        self.updated_at = now

        self.raise_(
            PaymentRefunded(
                payment_id=str(self.id),
                order_id=str(self.order_id),
                transaction_reference=self.transaction_reference,
                amount=self.refunded_amount,
                reason=reason,
                upstream_accepted=upstream_accepted,
                refunded_at=now,
            )
        )
        return self.refunded_amount
