"""Runtime settings read from the environment.

Protean's own configuration (providers, processing mode) lives in
``domain.toml``. These are the application-level knobs: gateway credentials,
checkout callback, offline payment instructions and the stale-order sweep.
"""

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    environment: str
    payment_gateway: str
    gateway_secret_key: str
    gateway_base_url: str
    gateway_timeout_seconds: float
    gateway_callback_url: str
    currency: str
    bank_name: str
    bank_account_number: str
    bank_account_name: str
    pending_order_grace_minutes: int

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


def load_settings() -> Settings:
    frontend_url = os.environ.get("FRONTEND_URL", "http://localhost:3000")
    return Settings(
        environment=os.environ.get("PROTEAN_ENV", "development"),
        payment_gateway=os.environ.get("PAYMENT_GATEWAY", "fake").lower(),
        gateway_secret_key=os.environ.get("PAYSTACK_SECRET_KEY", "sk_test_orderflow"),
        gateway_base_url=os.environ.get("PAYSTACK_BASE_URL", "https://api.paystack.co"),
        gateway_timeout_seconds=float(os.environ.get("GATEWAY_TIMEOUT_SECONDS", "10")),
        gateway_callback_url=os.environ.get("GATEWAY_CALLBACK_URL", f"{frontend_url}/checkout/verify"),
        currency=os.environ.get("CURRENCY", "NGN"),
        bank_name=os.environ.get("BANK_NAME", "First Bank of Nigeria"),
        bank_account_number=os.environ.get("BANK_ACCOUNT_NUMBER", "1234567890"),
        bank_account_name=os.environ.get("BANK_ACCOUNT_NAME", "Orderflow Ltd"),
        pending_order_grace_minutes=int(os.environ.get("PENDING_ORDER_GRACE_MINUTES", "1440")),
    )


settings = load_settings()
