"""Domain errors surfaced to callers.

Input validation keeps using ``protean.exceptions.ValidationError``; the
classes below cover the remaining outcomes the HTTP layer maps to status
codes (see ``orderflow.api.errors``).
"""


class OrderflowError(Exception):
    """Base exception for all orderflow errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NotFoundError(OrderflowError):
    """Raised when a cart, order, payment, product or variant is absent or inactive."""

    def __init__(self, kind: str, identifier: str | None = None):
        self.kind = kind
        self.identifier = identifier
        msg = f"{kind} not found"
        if identifier:
            msg = f"{kind} not found: {identifier}"
        super().__init__(msg)


class OrderNotFoundError(NotFoundError):
    """Raised when no order matches a payment reference."""

    def __init__(self, reference: str):
        self.reference = reference
        super().__init__("Order", reference)


class ConflictError(OrderflowError):
    """Raised when a request conflicts with the current state of the data."""


class InsufficientStockError(ConflictError):
    """Raised when a product cannot cover the requested quantity."""

    def __init__(self, product: str, requested: int, available: int):
        self.product = product
        self.requested = requested
        self.available = available
        super().__init__(f"Insufficient stock for {product}: {available} available, {requested} requested")


class IllegalTransitionError(ConflictError):
    """Raised when an order or payment cannot move to the requested status."""

    def __init__(self, current: str, target: str, detail: str | None = None):
        self.current = current
        self.target = target
        msg = f"Cannot transition from {current} to {target}"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)


class UpstreamError(OrderflowError):
    """Raised when the payment gateway call fails."""


class GatewayTimeoutError(UpstreamError):
    """Raised when the payment gateway does not answer within the timeout."""

    def __init__(self, operation: str, timeout: float):
        self.operation = operation
        self.timeout = timeout
        super().__init__(f"Payment gateway {operation} timed out after {timeout}s")


class VerificationPendingError(OrderflowError):
    """Raised when a payment cannot be verified yet and the caller should retry."""

    def __init__(self, reference: str):
        self.reference = reference
        super().__init__(f"Verification pending for {reference}, please retry")


class AuthenticityError(OrderflowError):
    """Raised when an inbound webhook fails signature verification."""

    def __init__(self):
        super().__init__("Invalid webhook signature")
