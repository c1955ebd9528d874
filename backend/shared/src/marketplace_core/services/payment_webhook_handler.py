"""Webhook processing for MercadoPago and Mobbex.

Business logic for payment webhooks, kept separate from HTTP routing:
parse → (fetch authoritative status) → normalize → apply → audit.

Transient gateway failures propagate as BookingError so the route answers
with a non-2xx status and the gateway redelivers. Deliveries that can never
succeed (no booking reference, unknown booking) are audited and
acknowledged.
"""

import datetime as dt
import hashlib
import json
import logging
from typing import Any, Callable

from botocore.exceptions import ClientError

from marketplace_core.adapters.mercadopago import normalize_mercadopago_payment
from marketplace_core.adapters.mobbex import normalize_mobbex_webhook, parse_mobbex_webhook
from marketplace_core.config import GatewayConfig
from marketplace_core.models.enums import PaymentGateway, WebhookProcessingResult
from marketplace_core.models.errors import BookingError, ErrorCode
from marketplace_core.models.payment_event import MercadoPagoNotification, PaymentEvent
from marketplace_core.models.webhook_event import PaymentWebhookEvent, WebhookResult
from marketplace_core.services.booking_state_machine import BookingStateMachine
from marketplace_core.services.dynamodb import DynamoDBService, to_dynamodb_item
from marketplace_core.services.gateway_errors import GatewayServiceError
from marketplace_core.services.mercadopago_client import MercadoPagoClient
from marketplace_core.services.mobbex_client import MobbexClient
from marketplace_core.utils.logging import log_webhook_event

logger = logging.getLogger(__name__)


def compute_payload_hash(payload: Any) -> str:
    """SHA-256 of the canonical JSON form of a payload."""
    return hashlib.sha256(
        json.dumps(payload, sort_keys=True, default=str).encode()
    ).hexdigest()


class PaymentWebhookHandler:
    """Applies gateway webhook deliveries to bookings."""

    WEBHOOK_EVENTS_TABLE = "payment-webhook-events"

    def __init__(
        self,
        state_machine: BookingStateMachine,
        db: DynamoDBService,
        config: GatewayConfig,
        *,
        mercadopago_factory: Callable[[GatewayConfig], MercadoPagoClient] = MercadoPagoClient,
        mobbex_factory: Callable[[GatewayConfig], MobbexClient] = MobbexClient,
    ) -> None:
        self._state_machine = state_machine
        self._db = db
        self._config = config
        self._mercadopago_factory = mercadopago_factory
        self._mobbex_factory = mobbex_factory

    # ------------------------------------------------------------------
    # Audit trail
    # ------------------------------------------------------------------

    def log_event(self, record: PaymentWebhookEvent) -> None:
        """Write an audit record. Audit failures never fail the delivery."""
        try:
            self._db.put_item(self.WEBHOOK_EVENTS_TABLE, to_dynamodb_item(record))
        except ClientError:
            logger.exception("Failed to write webhook audit record %s", record.event_key)

    def _finish(
        self,
        gateway: PaymentGateway,
        payload: Any,
        result: WebhookResult,
        *,
        event: PaymentEvent | None = None,
        event_key: str | None = None,
    ) -> WebhookResult:
        key = event_key or (
            f"{gateway.value}:{event.gateway_payment_id}:{event.canonical_status.value}"
            if event
            else f"{gateway.value}:unidentified"
        )
        error = result.message if result.processing_result == WebhookProcessingResult.ERROR else None
        self.log_event(
            PaymentWebhookEvent(
                event_key=key,
                gateway=gateway,
                processed_at=dt.datetime.now(dt.UTC),
                payload_hash=compute_payload_hash(payload),
                booking_id=result.booking_id,
                payment_id=result.payment_id,
                canonical_status=event.canonical_status if event else None,
                processing_result=result.processing_result,
                error_message=error,
            )
        )
        log_webhook_event(
            logger,
            gateway.value,
            key,
            booking_id=result.booking_id,
            payment_id=result.payment_id,
            result=result.processing_result.value,
            error=error,
            booking_status=result.booking_status,
        )
        return result

    # ------------------------------------------------------------------
    # Shared application step
    # ------------------------------------------------------------------

    def _apply(self, event: PaymentEvent, payload: Any) -> WebhookResult:
        try:
            outcome = self._state_machine.apply_payment_event(event)
        except BookingError as e:
            if e.code != ErrorCode.BOOKING_NOT_FOUND:
                self._finish(
                    event.gateway,
                    payload,
                    WebhookResult(
                        processing_result=WebhookProcessingResult.ERROR,
                        booking_id=event.booking_reference,
                        payment_id=event.gateway_payment_id,
                        message=e.message,
                    ),
                    event=event,
                )
                raise
            return self._finish(
                event.gateway,
                payload,
                WebhookResult(
                    processing_result=WebhookProcessingResult.ERROR,
                    booking_id=event.booking_reference,
                    payment_id=event.gateway_payment_id,
                    message=f"Booking {event.booking_reference} not found",
                ),
                event=event,
            )

        return self._finish(
            event.gateway,
            payload,
            WebhookResult(
                processing_result=outcome.result,
                booking_id=outcome.booking.booking_id,
                payment_id=event.gateway_payment_id,
                booking_status=outcome.booking.status.value,
                message=outcome.message,
            ),
            event=event,
        )

    def _malformed(self, gateway: PaymentGateway, payload: Any, error: BookingError) -> WebhookResult:
        return self._finish(
            gateway,
            payload,
            WebhookResult(
                processing_result=WebhookProcessingResult.ERROR,
                payment_id=(error.details or {}).get("payment_id"),
                message=error.message,
            ),
        )

    # ------------------------------------------------------------------
    # MercadoPago
    # ------------------------------------------------------------------

    def handle_mercadopago(self, payload: dict[str, Any]) -> WebhookResult:
        """Process a MercadoPago notification.

        MercadoPago only sends the payment ID; the payment itself is fetched
        from the API before normalizing.

        Raises:
            BookingError: GATEWAY_NOT_CONFIGURED, UPSTREAM_TIMEOUT or
                UPSTREAM_ERROR (the delivery should be retried)
        """
        gateway = PaymentGateway.MERCADOPAGO
        notification = MercadoPagoNotification.from_payload(payload)

        if notification.type != "payment":
            return self._finish(
                gateway,
                payload,
                WebhookResult(
                    processing_result=WebhookProcessingResult.SKIPPED,
                    message=f"Notification type {notification.type!r} not handled",
                ),
                event_key=f"{gateway.value}:{notification.type or 'unknown'}",
            )
        if not notification.data_id:
            return self._malformed(
                gateway,
                payload,
                BookingError(
                    ErrorCode.MALFORMED_PAYLOAD,
                    message="MercadoPago notification has no data.id",
                ),
            )

        client = self._mercadopago_factory(self._config)
        try:
            raw_payment = client.get_payment(notification.data_id)
        except GatewayServiceError as e:
            log_webhook_event(
                logger,
                gateway.value,
                notification.data_id,
                payment_id=notification.data_id,
                result="error",
                error=str(e),
            )
            raise e.to_booking_error() from e

        try:
            event = normalize_mercadopago_payment(raw_payment)
        except BookingError as e:
            return self._malformed(gateway, payload, e)
        return self._apply(event, payload)

    # ------------------------------------------------------------------
    # Mobbex
    # ------------------------------------------------------------------

    def _checkout_status_payload(
        self, checkout_id: str, reference: str | None, original: dict[str, Any]
    ) -> dict[str, Any]:
        """Rebuild a webhook-shaped body from the checkout status API."""
        client = self._mobbex_factory(self._config)
        try:
            checkout = client.get_checkout_status(checkout_id)
        except GatewayServiceError as e:
            log_webhook_event(
                logger,
                PaymentGateway.MOBBEX.value,
                checkout_id,
                result="error",
                error=str(e),
            )
            raise e.to_booking_error() from e

        payment = checkout.get("payment") if isinstance(checkout.get("payment"), dict) else {}
        if not payment:
            payment = {
                "status": checkout.get("status"),
                "total": checkout.get("total"),
                "currency": checkout.get("currency"),
            }
        return {
            "type": original.get("type"),
            "data": {
                "checkout": {
                    "uid": checkout.get("id") or checkout_id,
                    "reference": checkout.get("reference") or reference,
                    "total": checkout.get("total"),
                },
                "payment": payment,
            },
        }

    def handle_mobbex(self, payload: dict[str, Any]) -> WebhookResult:
        """Process a Mobbex webhook.

        The body normally carries the payment status. When it only names the
        checkout, the status is fetched from the checkout API first.

        Raises:
            BookingError: GATEWAY_NOT_CONFIGURED, UPSTREAM_TIMEOUT or
                UPSTREAM_ERROR (the delivery should be retried)
        """
        gateway = PaymentGateway.MOBBEX
        try:
            parsed = parse_mobbex_webhook(payload)
        except BookingError as e:
            return self._malformed(gateway, payload, e)

        body: dict[str, Any] = payload
        if parsed.status_code is None and parsed.checkout_id:
            body = self._checkout_status_payload(
                parsed.checkout_id, parsed.reference, payload
            )

        try:
            event = normalize_mobbex_webhook(body)
        except BookingError as e:
            return self._malformed(gateway, payload, e)
        return self._apply(event, payload)

