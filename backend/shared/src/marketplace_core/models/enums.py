"""Enumeration types for marketplace booking models."""

from enum import Enum


class BookingStatus(str, Enum):
    """Status of a booking."""

    REQUESTED = "requested"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    PENDING_PAYMENT = "pending_payment"
    PAID = "paid"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


TERMINAL_STATUSES: frozenset[BookingStatus] = frozenset(
    {BookingStatus.DECLINED, BookingStatus.CANCELLED, BookingStatus.COMPLETED}
)

# "accepted" is deliberately absent: a booking must stay requested or reach a
# payment-bearing state before it can be cancelled.
CANCELLABLE_STATUSES: frozenset[BookingStatus] = frozenset(
    {BookingStatus.REQUESTED, BookingStatus.PENDING_PAYMENT, BookingStatus.PAID}
)


class CancelledBy(str, Enum):
    """Party requesting a cancellation."""

    CLIENT = "client"
    OWNER = "owner"


class CanonicalPaymentStatus(str, Enum):
    """Gateway-independent payment outcome."""

    APPROVED = "approved"
    PENDING = "pending"
    REJECTED = "rejected"


class PaymentGateway(str, Enum):
    """Supported payment gateways."""

    MERCADOPAGO = "mercadopago"
    MOBBEX = "mobbex"


class TransitionType(str, Enum):
    """Kind of booking transition, used to key notifications."""

    REQUEST = "request"
    ACCEPT = "accept"
    DECLINE = "decline"
    START_PAYMENT = "start_payment"
    PAYMENT_APPROVED = "payment_approved"
    PAYMENT_REJECTED = "payment_rejected"
    CANCEL = "cancel"
    COMPLETE = "complete"


class NotificationType(str, Enum):
    """Type of user notification."""

    BOOKING_REQUEST = "booking_request"
    BOOKING_ACCEPTED = "booking_accepted"
    BOOKING_DECLINED = "booking_declined"
    PAYMENT_PENDING = "payment_pending"
    PAYMENT_COMPLETED = "payment_completed"
    PAYMENT_FAILED = "payment_failed"
    BOOKING_CANCELLED_BY_CLIENT = "booking_cancelled_by_client"
    BOOKING_CANCELLED_BY_OWNER = "booking_cancelled_by_owner"
    BOOKING_COMPLETED = "booking_completed"


class WebhookProcessingResult(str, Enum):
    """Outcome of processing a single webhook delivery."""

    APPLIED = "applied"
    RECORDED = "recorded"
    DUPLICATE = "duplicate"
    IGNORED = "ignored"
    SKIPPED = "skipped"
    ERROR = "error"
