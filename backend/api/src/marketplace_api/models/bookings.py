"""Booking request/response bodies."""

from datetime import date
from decimal import Decimal

from pydantic import ConfigDict, Field, field_serializer

from marketplace_core.models.booking import Booking
from marketplace_core.models.enums import BookingStatus, CancelledBy, PaymentGateway
from marketplace_api.models.common import ApiModel


class BookingCreateRequest(ApiModel):
    """Client booking intent for a published listing."""

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "postId": "POST-001",
                    "startDate": "2026-01-10",
                    "endDate": "2026-01-15",
                    "totalAmount": 1000,
                    "currency": "ARS",
                    "guestCount": 2,
                }
            ]
        },
    )

    post_id: str = Field(..., min_length=1)
    start_date: date
    end_date: date
    total_amount: Decimal = Field(..., ge=0)
    currency: str = Field(..., min_length=3, max_length=3)
    guest_count: int = Field(..., gt=0)


class CancelRequest(ApiModel):
    """Body of ``POST /bookings/{id}/cancel``."""

    cancelled_by: CancelledBy = Field(..., description="'client' or 'owner'")


class CheckoutRequest(ApiModel):
    """Body of ``POST /bookings/{id}/checkout``."""

    gateway: PaymentGateway
    return_url: str | None = None


class BookingResponse(ApiModel):
    """Public view of a booking."""

    booking_id: str
    post_id: str
    client_id: str
    owner_id: str
    status: BookingStatus
    start_date: date
    end_date: date
    total_amount: Decimal
    currency: str
    guest_count: int
    penalty_amount: Decimal | None = None
    cancelled_by: CancelledBy | None = None
    gateway: PaymentGateway | None = None
    checkout_id: str | None = None
    version: int

    @field_serializer("total_amount", "penalty_amount")
    def _money(self, value: Decimal | None) -> float | None:
        return float(value) if value is not None else None

    @classmethod
    def from_booking(cls, booking: Booking) -> "BookingResponse":
        return cls.model_validate(booking.model_dump(include=set(cls.model_fields)))


class CancellationResponse(ApiModel):
    """Cancellation result with the penalty charged."""

    success: bool = True
    booking_id: str
    status: BookingStatus
    penalty_amount: Decimal
    days_before_booking: int
    message: str

    @field_serializer("penalty_amount")
    def _money(self, value: Decimal) -> float:
        return float(value)


class CheckoutResponse(ApiModel):
    """A created checkout the client can be redirected to."""

    booking_id: str
    status: BookingStatus
    gateway: PaymentGateway
    checkout_id: str
    checkout_url: str
