"""Pydantic models for the marketplace booking core."""

from .booking import Booking, CancellationPolicy, Listing, PaymentData
from .enums import (
    CANCELLABLE_STATUSES,
    TERMINAL_STATUSES,
    BookingStatus,
    CancelledBy,
    CanonicalPaymentStatus,
    NotificationType,
    PaymentGateway,
    TransitionType,
    WebhookProcessingResult,
)
from .errors import (
    ERROR_MESSAGES,
    ERROR_RECOVERY,
    BookingError,
    ErrorCode,
    ErrorResponse,
)
from .notification import Notification, notification_dedup_id
from .payment_event import (
    MercadoPagoNotification,
    MercadoPagoPayment,
    MobbexWebhookPayload,
    PaymentEvent,
)
from .webhook_event import PaymentWebhookEvent, WebhookResult

__all__ = [
    # Enums
    "BookingStatus",
    "CANCELLABLE_STATUSES",
    "TERMINAL_STATUSES",
    "CancelledBy",
    "CanonicalPaymentStatus",
    "NotificationType",
    "PaymentGateway",
    "TransitionType",
    "WebhookProcessingResult",
    # Booking
    "Booking",
    "CancellationPolicy",
    "Listing",
    "PaymentData",
    # Payments
    "MercadoPagoNotification",
    "MercadoPagoPayment",
    "MobbexWebhookPayload",
    "PaymentEvent",
    "PaymentWebhookEvent",
    "WebhookResult",
    # Notifications
    "Notification",
    "notification_dedup_id",
    # Errors
    "BookingError",
    "ErrorCode",
    "ErrorResponse",
    "ERROR_MESSAGES",
    "ERROR_RECOVERY",
]
