"""The process-wide payment gateway.

``settings.payment_gateway`` picks the adapter on first use: ``fake`` (the
default, for development and tests) or ``paystack``. Tests install their own
instance with ``set_gateway`` and drop it with ``reset_gateway``.
"""

from orderflow.config import settings
from orderflow.gateway.fake_adapter import FakeGateway
from orderflow.gateway.port import PaymentGateway

_active: PaymentGateway | None = None


def _build(name: str) -> PaymentGateway:
    if name == "paystack":
        from orderflow.gateway.paystack_adapter import PaystackGateway

        return PaystackGateway.from_settings()
    if name == "fake":
        return FakeGateway()
    raise ValueError(f"Unknown payment gateway: {name!r}")


def get_gateway() -> PaymentGateway:
    global _active
    if _active is None:
        _active = _build(settings.payment_gateway)
    return _active


def set_gateway(gateway: PaymentGateway) -> None:
    global _active
    _active = gateway


def reset_gateway() -> None:
    global _active
    _active = None
