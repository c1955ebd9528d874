"""MercadoPago payment normalization."""

from typing import Any

from marketplace_core.models.enums import CanonicalPaymentStatus, PaymentGateway
from marketplace_core.models.errors import BookingError, ErrorCode
from marketplace_core.models.payment_event import MercadoPagoPayment, PaymentEvent

# Anything not listed maps to PENDING.
MERCADOPAGO_STATUS_MAP: dict[str, CanonicalPaymentStatus] = {
    "approved": CanonicalPaymentStatus.APPROVED,
    "pending": CanonicalPaymentStatus.PENDING,
    "authorized": CanonicalPaymentStatus.PENDING,
    "in_process": CanonicalPaymentStatus.PENDING,
    "in_mediation": CanonicalPaymentStatus.PENDING,
    "rejected": CanonicalPaymentStatus.REJECTED,
    "cancelled": CanonicalPaymentStatus.REJECTED,
}


def map_mercadopago_status(status: str | None) -> CanonicalPaymentStatus:
    if not status:
        return CanonicalPaymentStatus.PENDING
    return MERCADOPAGO_STATUS_MAP.get(status.lower(), CanonicalPaymentStatus.PENDING)


def normalize_mercadopago_payment(raw_payment: Any) -> PaymentEvent:
    """Normalize a MercadoPago payment resource.

    The booking ID travels in ``external_reference``.

    Raises:
        BookingError: MALFORMED_PAYLOAD if the booking reference or payment ID
            cannot be recovered
    """
    if not isinstance(raw_payment, dict):
        raise BookingError(
            ErrorCode.MALFORMED_PAYLOAD,
            details={"gateway": PaymentGateway.MERCADOPAGO.value},
            message="MercadoPago payment is not a JSON object",
        )

    payment = MercadoPagoPayment.model_validate(raw_payment)
    if not payment.external_reference or not payment.id:
        raise BookingError(
            ErrorCode.MALFORMED_PAYLOAD,
            details={"gateway": PaymentGateway.MERCADOPAGO.value, "payment_id": payment.id},
            message="MercadoPago payment has no external_reference",
        )

    return PaymentEvent(
        booking_reference=payment.external_reference,
        gateway=PaymentGateway.MERCADOPAGO,
        gateway_status=payment.status,
        canonical_status=map_mercadopago_status(payment.status),
        gateway_payment_id=payment.id,
        amount=payment.transaction_amount,
        currency=payment.currency_id,
        status_detail=payment.status_detail,
        payment_method=payment.payment_type_id,
        raw_payload=raw_payment,
    )
