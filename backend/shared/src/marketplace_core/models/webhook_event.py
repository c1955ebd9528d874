"""Payment webhook audit record."""

from datetime import datetime

from pydantic import BaseModel, Field

from .enums import CanonicalPaymentStatus, PaymentGateway, WebhookProcessingResult


class PaymentWebhookEvent(BaseModel):
    """Log of a received payment webhook delivery.

    Used for:
    - Auditing: track all webhook deliveries per gateway
    - Debugging: investigate payment reconciliation issues
    """

    event_key: str = Field(
        ...,
        description="gateway:payment_id:canonical_status",
        examples=["mercadopago:1234567890:approved"],
    )
    gateway: PaymentGateway
    processed_at: datetime
    payload_hash: str = Field(..., description="SHA-256 hash of the raw payload")
    booking_id: str | None = None
    payment_id: str | None = None
    canonical_status: CanonicalPaymentStatus | None = None
    processing_result: WebhookProcessingResult
    error_message: str | None = None


class WebhookResult(BaseModel):
    """Outcome of handling one webhook delivery."""

    processing_result: WebhookProcessingResult
    booking_id: str | None = None
    payment_id: str | None = None
    booking_status: str | None = None
    message: str | None = None
