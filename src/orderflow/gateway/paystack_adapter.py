"""Paystack payment gateway adapter.

Talks to the Paystack REST API with ``requests``. Every call carries a bounded
timeout; a timeout surfaces as ``GatewayTimeoutError`` and any other transport
or API failure as ``UpstreamError``. Raw responses are kept on the returned
outcome for auditing but never leave the payment record.
"""

import requests
import structlog

from orderflow.config import settings
from orderflow.gateway.port import (
    InitializationResult,
    OutcomeStatus,
    PaymentGateway,
    RefundOutcome,
    TransactionOutcome,
    parse_timestamp,
)
from orderflow.gateway.signing import signature_matches
from orderflow.shared.errors import GatewayTimeoutError, UpstreamError

logger = structlog.get_logger(__name__)

_STATUS_MAP = {
    "success": OutcomeStatus.SUCCESS,
    "failed": OutcomeStatus.FAILED,
    "reversed": OutcomeStatus.FAILED,
    "abandoned": OutcomeStatus.PENDING,
    "ongoing": OutcomeStatus.PENDING,
    "pending": OutcomeStatus.PENDING,
    "processing": OutcomeStatus.PENDING,
    "queued": OutcomeStatus.PENDING,
}


class PaystackGateway(PaymentGateway):
    """Production gateway adapter for Paystack."""

    def __init__(
        self,
        secret_key: str,
        base_url: str = "https://api.paystack.co",
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ) -> None:
        self.secret_key = secret_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_settings(cls) -> "PaystackGateway":
        return cls(
            secret_key=settings.gateway_secret_key,
            base_url=settings.gateway_base_url,
            timeout=settings.gateway_timeout_seconds,
        )

    def _request(self, operation: str, method: str, path: str, payload: dict | None = None) -> dict:
        url = f"{self.base_url}{path}"
        headers = {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/json",
        }
        try:
            response = self.session.request(method, url, json=payload, headers=headers, timeout=self.timeout)
        except requests.Timeout:
            logger.warning("Gateway call timed out", operation=operation, timeout=self.timeout)
            raise GatewayTimeoutError(operation, self.timeout) from None
        except requests.RequestException as exc:
            logger.error("Gateway call failed", operation=operation, error=str(exc))
            raise UpstreamError(f"Payment gateway {operation} failed") from exc

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.status_code >= 400 or not body.get("status"):
            logger.error(
                "Gateway rejected request",
                operation=operation,
                status_code=response.status_code,
                message=body.get("message"),
            )
            raise UpstreamError(f"Payment gateway {operation} failed")
        return body

    def initialize(self, reference, amount_minor, email, callback_url, metadata=None) -> InitializationResult:
        body = self._request(
            "initialize",
            "POST",
            "/transaction/initialize",
            {
                "email": email,
                "amount": amount_minor,
                "reference": reference,
                "callback_url": callback_url,
                "metadata": metadata or {},
            },
        )
        data = body.get("data") or {}
        return InitializationResult(
            authorization_url=data["authorization_url"],
            access_code=data.get("access_code"),
            provider_reference=data.get("reference", reference),
        )

    def verify(self, provider_reference) -> TransactionOutcome:
        body = self._request("verify", "GET", f"/transaction/verify/{provider_reference}")
        data = body.get("data") or {}
        status = _STATUS_MAP.get(str(data.get("status", "")).lower(), OutcomeStatus.PENDING)
        return TransactionOutcome(
            status=status,
            amount_minor=data.get("amount"),
            paid_at=parse_timestamp(data.get("paid_at") or data.get("paidAt")),
            failure_reason=data.get("gateway_response") if status == OutcomeStatus.FAILED else None,
            raw=data,
        )

    def refund(self, provider_reference, amount_minor) -> RefundOutcome:
        body = self._request("refund", "POST", "/refund", {"transaction": provider_reference, "amount": amount_minor})
        return RefundOutcome(accepted=True, message=body.get("message"))

    def verify_webhook_signature(self, body, signature) -> bool:
        return signature_matches(body, signature, self.secret_key)
