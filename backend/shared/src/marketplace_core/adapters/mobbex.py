"""Mobbex webhook normalization."""

from typing import Any

from marketplace_core.models.enums import CanonicalPaymentStatus, PaymentGateway
from marketplace_core.models.errors import BookingError, ErrorCode
from marketplace_core.models.payment_event import MobbexWebhookPayload, PaymentEvent

BOOKING_REFERENCE_PREFIX = "booking_"

MOBBEX_APPROVED_CODES = frozenset({200, 3})
MOBBEX_REJECTED_CODES = frozenset({400, 2})


def map_mobbex_status(code: int | None) -> CanonicalPaymentStatus:
    """Map a Mobbex status code; unknown codes map to PENDING."""
    if code in MOBBEX_APPROVED_CODES:
        return CanonicalPaymentStatus.APPROVED
    if code in MOBBEX_REJECTED_CODES:
        return CanonicalPaymentStatus.REJECTED
    return CanonicalPaymentStatus.PENDING


def booking_id_from_reference(reference: str | None) -> str | None:
    """Strip the ``booking_`` prefix from a checkout reference."""
    if not reference:
        return None
    if reference.startswith(BOOKING_REFERENCE_PREFIX):
        reference = reference[len(BOOKING_REFERENCE_PREFIX):]
    return reference or None


def parse_mobbex_webhook(raw_payload: Any) -> MobbexWebhookPayload:
    if not isinstance(raw_payload, dict):
        raise BookingError(
            ErrorCode.MALFORMED_PAYLOAD,
            details={"gateway": PaymentGateway.MOBBEX.value},
            message="Mobbex webhook body is not a JSON object",
        )
    return MobbexWebhookPayload.from_payload(raw_payload)


def normalize_mobbex_webhook(raw_payload: Any) -> PaymentEvent:
    """Normalize a Mobbex webhook body.

    Accepts both the nested ``data.checkout`` / ``data.payment`` shape and the
    legacy flat shape. When Mobbex sends no transaction ID the idempotency key
    falls back to ``mobbex:<booking>:<checkout id>:<status code>``, so each
    checkout attempt on the same booking gets its own key.

    Raises:
        BookingError: MALFORMED_PAYLOAD if the booking reference cannot be recovered
    """
    payload = parse_mobbex_webhook(raw_payload)
    booking_id = booking_id_from_reference(payload.reference)
    if not booking_id:
        raise BookingError(
            ErrorCode.MALFORMED_PAYLOAD,
            details={"gateway": PaymentGateway.MOBBEX.value},
            message="Mobbex webhook has no booking reference",
        )

    payment_id = payload.transaction_id or ":".join(
        [
            "mobbex",
            booking_id,
            payload.checkout_id or "none",
            str(payload.status_code) if payload.status_code is not None else "none",
        ]
    )

    return PaymentEvent(
        booking_reference=booking_id,
        gateway=PaymentGateway.MOBBEX,
        gateway_status=str(payload.status_code) if payload.status_code is not None else None,
        canonical_status=map_mobbex_status(payload.status_code),
        gateway_payment_id=payment_id,
        amount=payload.total,
        currency=payload.currency,
        status_detail=payload.status_text,
        payment_method=payload.payment_method,
        raw_payload=raw_payload,
    )
