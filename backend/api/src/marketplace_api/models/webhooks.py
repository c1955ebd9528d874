"""Webhook acknowledgement body."""

from marketplace_core.models.enums import WebhookProcessingResult
from marketplace_core.models.webhook_event import WebhookResult
from marketplace_api.models.common import ApiModel


class WebhookResponse(ApiModel):
    """Acknowledgement returned to the gateway."""

    received: bool = True
    processing_result: WebhookProcessingResult
    booking_id: str | None = None
    payment_id: str | None = None
    booking_status: str | None = None
    message: str | None = None

    @classmethod
    def from_result(cls, result: WebhookResult) -> "WebhookResponse":
        return cls(**result.model_dump())
