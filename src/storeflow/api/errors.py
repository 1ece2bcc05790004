"""HTTP mapping for the classified storeflow errors.

Protean's handlers cover the base classes (``ValidationError`` → 400,
``ObjectNotFoundError`` → 404). The subclasses below get their own status
codes; Starlette resolves a handler by walking the exception's MRO, so the
most specific registration wins.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers

from storeflow.errors import (
    FulfillmentError,
    InsufficientStockError,
    InvalidStateError,
    InvalidTransitionError,
    NotFoundError,
    ReservationConflictError,
    UnauthorizedError,
    error_messages,
)

logger = structlog.get_logger(__name__)

STATUS_CODES = {
    NotFoundError: 404,
    UnauthorizedError: 403,
    InvalidStateError: 409,
    InsufficientStockError: 409,
    ReservationConflictError: 409,
    InvalidTransitionError: 409,
}


def _classified_handler(status_code):
    async def handler(request: Request, exc: Exception) -> JSONResponse:
        return JSONResponse(
            status_code=status_code,
            content={"error": error_messages(exc), "error_type": type(exc).__name__},
        )

    return handler


async def _fulfillment_error_handler(request: Request, exc: FulfillmentError) -> JSONResponse:
    logger.error(
        "Fulfillment failed",
        path=request.url.path,
        error=exc.message,
        cause=repr(exc.cause) if exc.cause else None,
    )
    return JSONResponse(
        status_code=500,
        content={"error": {"_error": [exc.message]}, "error_type": type(exc).__name__},
    )


def register_error_handlers(app: FastAPI) -> None:
    register_exception_handlers(app)
    for exc_class, status_code in STATUS_CODES.items():
        app.add_exception_handler(exc_class, _classified_handler(status_code))
    app.add_exception_handler(FulfillmentError, _fulfillment_error_handler)
