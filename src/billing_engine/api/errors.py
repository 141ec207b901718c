"""Exception handlers mapping billing errors to JSON error envelopes.

Every error response has the shape::

    {"error": "<code>", "message": "<text>", "details": {...}}

``details`` is omitted when empty.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from fastapi import status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from billing_engine.core.exceptions import (
    BillingError,
    BillingValidationError,
    ConcurrentModificationError,
    InsufficientStockError,
    NotFoundError,
)

if TYPE_CHECKING:
    from fastapi import FastAPI, Request

logger = logging.getLogger(__name__)


def error_response(
    status_code: int,
    error: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    content: dict[str, Any] = {"error": error, "message": message}
    if details:
        content["details"] = jsonable_encoder(details)
    return JSONResponse(status_code=status_code, content=content)


def _not_found_code(exc: NotFoundError) -> str:
    return f"{exc.resource.replace(' ', '_')}_not_found"


def register_exception_handlers(app: FastAPI, *, debug: bool = False) -> None:
    """Install the billing error handlers on *app*.

    Args:
        app: Application to configure
        debug: Include internal error details in 500 responses
    """

    async def handle_billing_error(request: Request, exc: BillingError) -> JSONResponse:
        if isinstance(exc, BillingValidationError):
            logger.info("Rejected %s %s: %s", request.method, request.url.path, exc.message)
            return error_response(
                422,
                "validation_error",
                exc.message,
                {"field": exc.field, "reason": exc.reason, **exc.details},
            )

        if isinstance(exc, NotFoundError):
            logger.info("Not found on %s %s: %s", request.method, request.url.path, exc.message)
            return error_response(
                status.HTTP_404_NOT_FOUND,
                _not_found_code(exc),
                exc.message,
                {"resource": exc.resource, "id": exc.identifier, **exc.details},
            )

        if isinstance(exc, InsufficientStockError):
            logger.warning("Insufficient stock: %s", exc.message)
            return error_response(
                status.HTTP_409_CONFLICT,
                "insufficient_stock",
                exc.message,
                {
                    "productId": exc.product_id,
                    "requested": exc.requested,
                    "available": exc.available,
                },
            )

        if isinstance(exc, ConcurrentModificationError):
            logger.warning("Concurrent modification: %s", exc.message)
            return error_response(
                status.HTTP_409_CONFLICT,
                "concurrent_modification",
                exc.message,
                {"itemId": exc.item_id, "expectedQuantity": exc.expected_quantity},
            )

        # StorageError and anything else in the family.
        logger.error("Billing error: %s", exc.message, exc_info=exc)
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "internal_error",
            "An unexpected error occurred",
            # Only expose internal details when debug mode is on
            {"reason": exc.message, **exc.details} if debug else {},
        )

    async def handle_request_validation(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return error_response(
            422,
            "validation_error",
            "Request validation failed",
            {"errors": exc.errors()},
        )

    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unexpected error on %s %s: %s",
            request.method, request.url.path, exc, exc_info=exc,
        )
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "internal_error",
            "An unexpected error occurred",
            {"reason": str(exc)} if debug else {},
        )

    app.add_exception_handler(BillingError, handle_billing_error)  # type: ignore[arg-type]
    app.add_exception_handler(
        RequestValidationError, handle_request_validation  # type: ignore[arg-type]
    )
    app.add_exception_handler(Exception, handle_unexpected)


__all__ = ["error_response", "register_exception_handlers"]
