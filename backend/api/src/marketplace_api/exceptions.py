"""FastAPI exception handlers for converting BookingError to HTTP responses.

The ErrorCode-to-HTTP status mapping:
- 400 Bad Request: invalid input, illegal transitions, malformed payloads
- 401 Unauthorized: caller identity missing
- 403 Forbidden: caller is not a party to the booking
- 404 Not Found: booking or listing absent
- 409 Conflict: booking kept changing while being updated
- 502/503/504: payment gateway failures (gateways redeliver on non-2xx)

Usage:
    from marketplace_api.exceptions import register_exception_handlers
    register_exception_handlers(app)
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_401_UNAUTHORIZED,
    HTTP_403_FORBIDDEN,
    HTTP_404_NOT_FOUND,
    HTTP_409_CONFLICT,
    HTTP_500_INTERNAL_SERVER_ERROR,
    HTTP_502_BAD_GATEWAY,
    HTTP_503_SERVICE_UNAVAILABLE,
    HTTP_504_GATEWAY_TIMEOUT,
)

from marketplace_api.models.common import format_validation_errors
from marketplace_core.models.errors import BookingError, ErrorCode

logger = logging.getLogger(__name__)

ERROR_CODE_TO_HTTP_STATUS: dict[ErrorCode, int] = {
    ErrorCode.BOOKING_NOT_FOUND: HTTP_404_NOT_FOUND,
    ErrorCode.LISTING_NOT_FOUND: HTTP_404_NOT_FOUND,
    ErrorCode.INVALID_INPUT: HTTP_400_BAD_REQUEST,
    ErrorCode.INVALID_TRANSITION: HTTP_400_BAD_REQUEST,
    ErrorCode.CONCURRENT_MODIFICATION: HTTP_409_CONFLICT,
    ErrorCode.AUTH_REQUIRED: HTTP_401_UNAUTHORIZED,
    ErrorCode.UNAUTHORIZED: HTTP_403_FORBIDDEN,
    ErrorCode.MALFORMED_PAYLOAD: HTTP_400_BAD_REQUEST,
    ErrorCode.UPSTREAM_ERROR: HTTP_502_BAD_GATEWAY,
    ErrorCode.UPSTREAM_TIMEOUT: HTTP_504_GATEWAY_TIMEOUT,
    ErrorCode.GATEWAY_NOT_CONFIGURED: HTTP_503_SERVICE_UNAVAILABLE,
}


def get_http_status_for_error(code: ErrorCode) -> int:
    """HTTP status for an ErrorCode, 400 if not explicitly mapped."""
    return ERROR_CODE_TO_HTTP_STATUS.get(code, HTTP_400_BAD_REQUEST)


async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    """Convert a BookingError into its ErrorResponse body."""
    status_code = get_http_status_for_error(exc.code)
    if status_code >= HTTP_500_INTERNAL_SERVER_ERROR:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=status_code,
        content=exc.to_error_response().model_dump(mode="json"),
    )


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report request validation failures as 400 with field details."""
    return JSONResponse(
        status_code=HTTP_400_BAD_REQUEST,
        content=format_validation_errors(list(exc.errors())).model_dump(mode="json"),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI app."""
    app.add_exception_handler(BookingError, booking_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_error_handler)  # type: ignore[arg-type]
