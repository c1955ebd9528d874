"""Standard error codes for booking lifecycle operations.

All services raise BookingError with one of these codes; the API layer maps
each code to an HTTP status and renders an ErrorResponse body.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


class ErrorCode(str, Enum):
    """Standard error codes."""

    # Lookup errors
    BOOKING_NOT_FOUND = "ERR_001"
    LISTING_NOT_FOUND = "ERR_002"

    # Validation / lifecycle errors
    INVALID_INPUT = "ERR_003"
    INVALID_TRANSITION = "ERR_004"
    CONCURRENT_MODIFICATION = "ERR_005"

    # Authorization errors
    AUTH_REQUIRED = "ERR_AUTH_001"
    UNAUTHORIZED = "ERR_AUTH_002"

    # Gateway / webhook errors
    MALFORMED_PAYLOAD = "ERR_GW_001"
    UPSTREAM_ERROR = "ERR_GW_002"
    UPSTREAM_TIMEOUT = "ERR_GW_003"
    GATEWAY_NOT_CONFIGURED = "ERR_GW_004"


# Human-readable error messages
ERROR_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.BOOKING_NOT_FOUND: "Booking not found",
    ErrorCode.LISTING_NOT_FOUND: "Listing not found",
    ErrorCode.INVALID_INPUT: "Invalid or missing input",
    ErrorCode.INVALID_TRANSITION: "Booking cannot change to the requested status",
    ErrorCode.CONCURRENT_MODIFICATION: "Booking was modified concurrently",
    ErrorCode.AUTH_REQUIRED: "Authentication required to perform this action",
    ErrorCode.UNAUTHORIZED: "User not authorized for this booking",
    ErrorCode.MALFORMED_PAYLOAD: "Webhook payload could not be interpreted",
    ErrorCode.UPSTREAM_ERROR: "Payment gateway returned an error",
    ErrorCode.UPSTREAM_TIMEOUT: "Payment gateway did not answer in time",
    ErrorCode.GATEWAY_NOT_CONFIGURED: "Payment gateway is not configured",
}

# Recovery suggestions for API clients
ERROR_RECOVERY: dict[ErrorCode, str] = {
    ErrorCode.BOOKING_NOT_FOUND: "Verify the booking ID",
    ErrorCode.LISTING_NOT_FOUND: "Verify the listing ID",
    ErrorCode.INVALID_INPUT: "Check the request body and try again",
    ErrorCode.INVALID_TRANSITION: "Reload the booking to see its current status",
    ErrorCode.CONCURRENT_MODIFICATION: "Retry the request",
    ErrorCode.AUTH_REQUIRED: "Sign in and try again",
    ErrorCode.UNAUTHORIZED: "Only the client or owner of the booking can do this",
    ErrorCode.MALFORMED_PAYLOAD: "Check the gateway webhook configuration",
    ErrorCode.UPSTREAM_ERROR: "Try again or contact support",
    ErrorCode.UPSTREAM_TIMEOUT: "The gateway will redeliver the notification",
    ErrorCode.GATEWAY_NOT_CONFIGURED: "Configure gateway credentials in system settings",
}


class ErrorResponse(BaseModel):
    """Standard error body returned by the API."""

    model_config = ConfigDict(strict=True)

    success: bool = False
    error_code: ErrorCode
    message: str
    recovery: str
    details: Optional[dict[str, Any]] = None


class BookingError(Exception):
    """Exception raised by booking lifecycle operations.

    Args:
        code: The error code
        details: Optional additional context about the error
        message: Optional one-line reason overriding the default message
    """

    def __init__(
        self,
        code: ErrorCode,
        details: Optional[dict[str, Any]] = None,
        message: Optional[str] = None,
    ):
        self.code = code
        self.message = message or ERROR_MESSAGES[code]
        self.recovery = ERROR_RECOVERY[code]
        self.details = details
        super().__init__(self.message)

    def to_error_response(self) -> ErrorResponse:
        """Convert this exception to an ErrorResponse body."""
        return ErrorResponse(
            error_code=self.code,
            message=self.message,
            recovery=self.recovery,
            details=self.details,
        )
