"""Gateway webhook payloads and the normalized PaymentEvent."""

from decimal import Decimal, InvalidOperation
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .enums import CanonicalPaymentStatus, PaymentGateway


def _lenient_str(value: Any) -> str | None:
    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    return text or None


def _lenient_decimal(value: Any) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    return amount if amount.is_finite() else None


def _lenient_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


class MercadoPagoNotification(BaseModel):
    """Envelope POSTed by MercadoPago; carries only the payment ID."""

    model_config = ConfigDict(extra="ignore")

    type: str | None = None
    action: str | None = None
    data_id: str | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "MercadoPagoNotification":
        data = payload.get("data")
        data_id = data.get("id") if isinstance(data, dict) else None
        return cls(
            type=_lenient_str(payload.get("type") or payload.get("topic")),
            action=_lenient_str(payload.get("action")),
            data_id=_lenient_str(data_id),
        )


class MercadoPagoPayment(BaseModel):
    """Payment resource returned by the MercadoPago payments API."""

    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    status: str | None = None
    status_detail: str | None = None
    external_reference: str | None = None
    transaction_amount: Decimal | None = None
    currency_id: str | None = None
    payment_type_id: str | None = None

    @field_validator(
        "id", "status", "status_detail", "external_reference", "currency_id",
        "payment_type_id",
        mode="before",
    )
    @classmethod
    def _strings(cls, value: Any) -> str | None:
        return _lenient_str(value)

    @field_validator("transaction_amount", mode="before")
    @classmethod
    def _amount(cls, value: Any) -> Decimal | None:
        return _lenient_decimal(value)


class MobbexWebhookPayload(BaseModel):
    """Mobbex webhook body, flattened from its nested or legacy flat shape."""

    model_config = ConfigDict(extra="ignore")

    type: str | None = None
    reference: str | None = None
    checkout_id: str | None = None
    status_code: int | None = None
    status_text: str | None = None
    transaction_id: str | None = None
    total: Decimal | None = None
    currency: str | None = None
    payment_method: str | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "MobbexWebhookPayload":
        data = payload.get("data") if isinstance(payload.get("data"), dict) else {}
        checkout = data.get("checkout") if isinstance(data.get("checkout"), dict) else {}
        payment = data.get("payment") if isinstance(data.get("payment"), dict) else {}
        payment_status = payment.get("status") if isinstance(payment.get("status"), dict) else {}
        flat_status = payload.get("status") if isinstance(payload.get("status"), dict) else {}
        source = payment.get("source") if isinstance(payment.get("source"), dict) else {}

        status_code = _lenient_int(payment_status.get("code"))
        if status_code is None:
            status_code = _lenient_int(flat_status.get("code"))

        return cls(
            type=_lenient_str(payload.get("type")),
            reference=_lenient_str(checkout.get("reference") or payload.get("reference")),
            checkout_id=_lenient_str(checkout.get("uid") or checkout.get("id")),
            status_code=status_code,
            status_text=_lenient_str(payment_status.get("text") or flat_status.get("text")),
            transaction_id=_lenient_str(payment.get("id") or payload.get("transactionId")),
            total=_lenient_decimal(payment.get("total", checkout.get("total"))),
            currency=_lenient_str(
                (payment.get("currency") or {}).get("code")
                if isinstance(payment.get("currency"), dict)
                else payment.get("currency")
            ),
            payment_method=_lenient_str(source.get("type") or payload.get("type")),
        )


class PaymentEvent(BaseModel):
    """A gateway webhook normalized to the gateway-independent shape.

    ``gateway_payment_id`` is the idempotency key for replays.
    """

    booking_reference: str = Field(..., min_length=1, description="Booking ID")
    gateway: PaymentGateway
    gateway_status: str | None = Field(default=None, description="Raw gateway status")
    canonical_status: CanonicalPaymentStatus
    gateway_payment_id: str = Field(..., min_length=1)
    amount: Decimal | None = None
    currency: str | None = None
    status_detail: str | None = None
    payment_method: str | None = None
    raw_payload: dict[str, Any] = Field(default_factory=dict)
