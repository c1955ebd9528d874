"""Errors raised by the payment gateway REST clients."""

from marketplace_core.models.errors import BookingError, ErrorCode


class GatewayServiceError(Exception):
    """Raised when a gateway call fails or returns an unusable response."""

    def __init__(
        self,
        message: str,
        gateway: str,
        status_code: int | None = None,
    ) -> None:
        """Initialize with message, gateway name and optional HTTP status.

        Args:
            message: Human-readable error message.
            gateway: Gateway name (mercadopago, mobbex).
            status_code: HTTP status returned by the gateway, if any.
        """
        super().__init__(message)
        self.gateway = gateway
        self.status_code = status_code

    def to_booking_error(self) -> BookingError:
        return BookingError(
            ErrorCode.UPSTREAM_ERROR,
            details={"gateway": self.gateway, "status_code": self.status_code},
            message=str(self),
        )


class GatewayTimeoutError(GatewayServiceError):
    """Raised when a gateway does not answer within the configured timeout."""

    def to_booking_error(self) -> BookingError:
        return BookingError(
            ErrorCode.UPSTREAM_TIMEOUT,
            details={"gateway": self.gateway},
            message=str(self),
        )
