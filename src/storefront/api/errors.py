"""HTTP mapping for Storefront-specific errors.

Protean's ``register_exception_handlers`` covers the generic cases
(ValidationError → 400, ObjectNotFoundError → 404). The handlers here take
precedence for the subclasses that need a different status.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers

from storefront.exceptions import (
    InsufficientStock,
    InvalidTransition,
    PaymentInitError,
    ReservationCompensationFailure,
)

logger = structlog.get_logger(__name__)


async def insufficient_stock_handler(request: Request, exc: InsufficientStock) -> JSONResponse:
    return JSONResponse(
        status_code=409,
        content={
            "error": "insufficient_stock",
            "variant_id": str(exc.variant_id),
            "requested": exc.requested,
            "available": exc.available,
        },
    )


async def invalid_transition_handler(request: Request, exc: InvalidTransition) -> JSONResponse:
    return JSONResponse(
        status_code=409,
        content={
            "error": "invalid_transition",
            "order_id": exc.order_id,
            "detail": f"Cannot transition from {exc.current} to {exc.target}",
        },
    )


async def payment_init_handler(request: Request, exc: PaymentInitError) -> JSONResponse:
    # Provider detail stays in the logs
    return JSONResponse(
        status_code=502,
        content={"error": "payment_unavailable", "detail": "Payment could not be started"},
    )


async def compensation_failure_handler(request: Request, exc: ReservationCompensationFailure) -> JSONResponse:
    logger.critical("api.compensation_failure", path=request.url.path, variants=len(exc.entries))
    return JSONResponse(
        status_code=500,
        content={"error": "internal_error", "detail": "Checkout could not be completed"},
    )


def register_storefront_handlers(app: FastAPI) -> None:
    register_exception_handlers(app)
    app.add_exception_handler(InsufficientStock, insufficient_stock_handler)
    app.add_exception_handler(InvalidTransition, invalid_transition_handler)
    app.add_exception_handler(PaymentInitError, payment_init_handler)
    app.add_exception_handler(ReservationCompensationFailure, compensation_failure_handler)
