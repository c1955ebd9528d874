"""Booking and listing models."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field, model_validator

from .enums import BookingStatus, CancelledBy, CanonicalPaymentStatus, PaymentGateway


class CancellationPolicy(BaseModel):
    """A cancellation window of a listing.

    Cancelling with ``days_quantity`` days or fewer left before the start
    date costs ``penalty_percentage`` percent of the booking total.
    """

    days_quantity: int = Field(..., ge=0, description="Window size in days")
    penalty_percentage: Decimal = Field(
        ..., ge=0, le=100, description="Penalty as a percentage of the total"
    )


class Listing(BaseModel):
    """The subset of a published listing (post) the booking core reads."""

    post_id: str = Field(..., description="Listing ID")
    owner_id: str = Field(..., description="Publisher of the listing")
    title: str = Field(..., description="Listing title")
    cancellation_policies: list[CancellationPolicy] = Field(default_factory=list)
    owner_tax_id: str | None = Field(
        default=None, description="Publisher CUIT, enables split payments"
    )


class PaymentData(BaseModel):
    """Snapshot of the last payment status reported by a gateway."""

    gateway: PaymentGateway
    payment_id: str = Field(..., description="Gateway payment/transaction ID")
    status: CanonicalPaymentStatus
    gateway_status: str | None = Field(default=None, description="Raw gateway status")
    status_detail: str | None = None
    amount: Decimal | None = None
    currency: str | None = None
    payment_method: str | None = None
    processed_at: datetime


class Booking(BaseModel):
    """A booking of a listing by a client.

    Mutated only through BookingStateMachine. ``version`` is incremented on
    every write and guards the compare-and-swap update.
    """

    booking_id: str = Field(..., description="Unique booking ID")
    post_id: str = Field(..., description="Booked listing")
    client_id: str
    owner_id: str
    status: BookingStatus = BookingStatus.REQUESTED
    start_date: date
    end_date: date
    total_amount: Decimal = Field(..., ge=0)
    currency: str = Field(..., min_length=3, max_length=3, description="ISO 4217 code")
    guest_count: int = Field(..., gt=0)
    penalty_amount: Decimal | None = Field(default=None, ge=0)
    cancelled_by: CancelledBy | None = None
    payment_data: PaymentData | None = None
    gateway: PaymentGateway | None = None
    checkout_id: str | None = None
    accepted_at: datetime | None = None
    declined_at: datetime | None = None
    paid_at: datetime | None = None
    cancelled_at: datetime | None = None
    completed_at: datetime | None = None
    version: int = Field(default=0, ge=0)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @model_validator(mode="after")
    def _check_invariants(self) -> "Booking":
        if self.start_date >= self.end_date:
            raise ValueError("start_date must be before end_date")
        if self.client_id == self.owner_id:
            raise ValueError("a user may not book their own listing")
        return self

    @property
    def last_payment_id(self) -> str | None:
        return self.payment_data.payment_id if self.payment_data else None

    @classmethod
    def from_item(cls, item: dict[str, Any]) -> "Booking":
        """Build a Booking from a DynamoDB item."""
        return cls.model_validate(item)
