"""Domain events for the Payment aggregate."""

from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String

from orderflow.domain import orderflow


@orderflow.event(part_of="Payment")
class PaymentInitialized:
    """The gateway issued a checkout session for this payment."""

    __version__ = 1

    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    gateway_reference = String(required=True)
    provider_reference = String()
    attempt_number = Integer(required=True)
    initialized_at = DateTime(required=True)


@orderflow.event(part_of="Payment")
class PaymentCompleted:
    __version__ = 1

    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    transaction_reference = String(required=True)
    provider_reference = String()
    amount = Float(required=True)
    source = String()
    paid_at = DateTime(required=True)


@orderflow.event(part_of="Payment")
class PaymentFailed:
    __version__ = 1

    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    transaction_reference = String(required=True)
    reason = String()
    attempt_number = Integer(required=True)
    failed_at = DateTime(required=True)


@orderflow.event(part_of="Payment")
class PaymentRefunded:
    __version__ = 1

    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    transaction_reference = String(required=True)
    amount = Float(required=True)
    reason = String()
    upstream_accepted = Boolean(default=False)
    refunded_at = DateTime(required=True)
