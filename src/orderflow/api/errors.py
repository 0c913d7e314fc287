"""Map orderflow errors onto HTTP responses.

Protean's own exceptions (``ValidationError`` and friends) keep the mapping
from ``protean.integrations.fastapi``; these handlers cover the rest. Upstream
payloads are never echoed back, only our own messages.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.exceptions import ExpectedVersionError
from protean.integrations.fastapi import register_exception_handlers

from orderflow.shared.errors import (
    AuthenticityError,
    ConflictError,
    InsufficientStockError,
    NotFoundError,
    UpstreamError,
    VerificationPendingError,
)


async def _not_found(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"error": exc.message})


async def _insufficient_stock(request: Request, exc: InsufficientStockError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={
            "error": exc.message,
            "product": exc.product,
            "requested": exc.requested,
            "available": exc.available,
        },
    )


async def _conflict(request: Request, exc: ConflictError) -> JSONResponse:
    return JSONResponse(status_code=409, content={"error": exc.message})


async def _concurrent_update(request: Request, exc: ExpectedVersionError) -> JSONResponse:
    # Reached only after the command handler exhausted its own version retries.
    return JSONResponse(status_code=409, content={"error": "The resource was modified concurrently, please retry"})


async def _upstream(request: Request, exc: UpstreamError) -> JSONResponse:
    return JSONResponse(status_code=502, content={"error": "Payment provider unavailable, please try again"})


async def _verification_pending(request: Request, exc: VerificationPendingError) -> JSONResponse:
    return JSONResponse(
        status_code=202,
        content={"status": "pending", "reference": exc.reference, "detail": exc.message},
    )


async def _authenticity(request: Request, exc: AuthenticityError) -> JSONResponse:
    # Transport-level ack; no order lookup happened.
    return JSONResponse(status_code=200, content={"status": "rejected"})


def register_error_handlers(app: FastAPI) -> None:
    register_exception_handlers(app)
    app.add_exception_handler(NotFoundError, _not_found)
    app.add_exception_handler(InsufficientStockError, _insufficient_stock)
    app.add_exception_handler(ConflictError, _conflict)
    app.add_exception_handler(ExpectedVersionError, _concurrent_update)
    app.add_exception_handler(UpstreamError, _upstream)
    app.add_exception_handler(VerificationPendingError, _verification_pending)
    app.add_exception_handler(AuthenticityError, _authenticity)
