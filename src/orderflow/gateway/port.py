"""Payment gateway port (abstract interface).

Defines the contract every gateway adapter implements. Amounts cross this
boundary in integer minor currency units; conversion to and from the decimal
amounts stored on aggregates happens in ``orderflow.shared.money``.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class OutcomeStatus(Enum):
    SUCCESS = "success"
    FAILED = "failed"
    PENDING = "pending"


@dataclass(frozen=True)
class InitializationResult:
    """A checkout session the payer can be redirected to."""

    authorization_url: str
    access_code: str | None
    provider_reference: str


@dataclass(frozen=True)
class TransactionOutcome:
    """The gateway's view of a transaction."""

    status: OutcomeStatus
    amount_minor: int | None = None
    paid_at: datetime | None = None
    failure_reason: str | None = None
    raw: dict = field(default_factory=dict)


@dataclass(frozen=True)
class RefundOutcome:
    accepted: bool
    message: str | None = None


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    @abstractmethod
    def initialize(
        self,
        reference: str,
        amount_minor: int,
        email: str,
        callback_url: str,
        metadata: dict | None = None,
    ) -> InitializationResult:
        """Open a checkout session for ``reference``."""
        ...

    @abstractmethod
    def verify(self, provider_reference: str) -> TransactionOutcome:
        """Look up the current status of a transaction."""
        ...

    @abstractmethod
    def refund(self, provider_reference: str, amount_minor: int) -> RefundOutcome:
        """Request a refund of a completed transaction."""
        ...

    @abstractmethod
    def verify_webhook_signature(self, body: bytes, signature: str | None) -> bool:
        """Verify that a webhook body is authentically from the gateway."""
        ...


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO-8601 timestamp as sent by gateways (``Z`` suffix allowed)."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
