"""Configurable fake payment gateway for development and testing.

Simulates a hosted-checkout gateway without any external calls. Tests drive it
with ``configure()`` and inspect ``calls``; webhooks are signed with the same
HMAC scheme as the real gateway, using ``secret``.
"""

from datetime import UTC, datetime
from uuid import uuid4

from orderflow.gateway.port import (
    InitializationResult,
    OutcomeStatus,
    PaymentGateway,
    RefundOutcome,
    TransactionOutcome,
)
from orderflow.gateway.signing import signature_matches
from orderflow.shared.errors import GatewayTimeoutError, UpstreamError


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    def __init__(self, secret: str = "fake-webhook-secret") -> None:
        self.secret = secret
        self.verify_status: OutcomeStatus = OutcomeStatus.SUCCESS
        self.failure_reason: str = "Declined"
        self.refund_accepted: bool = True
        self.fail_with: str | None = None  # "timeout" or "error"
        self.amount_override: int | None = None
        self.calls: list[dict] = []
        self._sessions: dict[str, dict] = {}

    def configure(
        self,
        verify_status: OutcomeStatus | str = OutcomeStatus.SUCCESS,
        failure_reason: str = "Declined",
        refund_accepted: bool = True,
        fail_with: str | None = None,
        amount_override: int | None = None,
    ) -> None:
        """Configure gateway behavior at runtime."""
        self.verify_status = OutcomeStatus(verify_status)
        self.failure_reason = failure_reason
        self.refund_accepted = refund_accepted
        self.fail_with = fail_with
        self.amount_override = amount_override

    def _maybe_fail(self, operation: str) -> None:
        if self.fail_with == "timeout":
            raise GatewayTimeoutError(operation, 0.0)
        if self.fail_with == "error":
            raise UpstreamError(f"Payment gateway {operation} failed")

    def initialize(self, reference, amount_minor, email, callback_url, metadata=None) -> InitializationResult:
        self.calls.append(
            {
                "method": "initialize",
                "reference": reference,
                "amount_minor": amount_minor,
                "email": email,
                "callback_url": callback_url,
                "metadata": metadata,
            }
        )
        self._maybe_fail("initialize")

        access_code = f"fake_access_{uuid4().hex[:10]}"
        self._sessions[reference] = {"amount_minor": amount_minor, "email": email}
        return InitializationResult(
            authorization_url=f"https://checkout.fake-gateway.test/{access_code}",
            access_code=access_code,
            provider_reference=reference,
        )

    def verify(self, provider_reference) -> TransactionOutcome:
        self.calls.append({"method": "verify", "provider_reference": provider_reference})
        self._maybe_fail("verify")

        session = self._sessions.get(provider_reference, {})
        amount_minor = self.amount_override if self.amount_override is not None else session.get("amount_minor")
        raw = {
            "reference": provider_reference,
            "status": self.verify_status.value,
            "amount": amount_minor,
        }
        if self.verify_status == OutcomeStatus.SUCCESS:
            return TransactionOutcome(
                status=OutcomeStatus.SUCCESS,
                amount_minor=amount_minor,
                paid_at=datetime.now(UTC),
                raw=raw,
            )
        if self.verify_status == OutcomeStatus.FAILED:
            return TransactionOutcome(
                status=OutcomeStatus.FAILED,
                amount_minor=amount_minor,
                failure_reason=self.failure_reason,
                raw=raw,
            )
        return TransactionOutcome(status=OutcomeStatus.PENDING, amount_minor=amount_minor, raw=raw)

    def refund(self, provider_reference, amount_minor) -> RefundOutcome:
        self.calls.append({"method": "refund", "provider_reference": provider_reference, "amount_minor": amount_minor})
        self._maybe_fail("refund")

        if self.refund_accepted:
            return RefundOutcome(accepted=True, message="Refund queued")
        return RefundOutcome(accepted=False, message=self.failure_reason)

    def verify_webhook_signature(self, body, signature) -> bool:
        return signature_matches(body, signature, self.secret)
