"""Payment gateway webhook endpoints.

These endpoints do not require caller identity; they receive notifications
from MercadoPago and Mobbex.

Any delivery that was processed, ignored or can never be processed is
acknowledged with 200. Non-2xx is returned only when the body is not JSON
or a transient failure occurred, so the gateway redelivers.
"""

import json
from typing import Any

from fastapi import APIRouter, Depends, Request
from starlette.status import HTTP_400_BAD_REQUEST

from marketplace_api.dependencies import get_webhook_handler
from marketplace_api.models.webhooks import WebhookResponse
from marketplace_core.models.errors import BookingError, ErrorCode
from marketplace_core.services.payment_webhook_handler import PaymentWebhookHandler
from marketplace_core.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["webhooks"])

GATEWAY_ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    HTTP_400_BAD_REQUEST: {"description": "Body is not a JSON object"},
    409: {"description": "Booking changed concurrently; redeliver"},
    502: {"description": "Gateway API error; redeliver"},
    503: {"description": "Gateway not configured; redeliver"},
    504: {"description": "Gateway API timed out; redeliver"},
}


async def _json_body(request: Request, gateway: str) -> dict[str, Any]:
    raw = await request.body()
    if not raw:
        return {}
    try:
        body = json.loads(raw)
    except ValueError as e:
        logger.warning("Unparseable %s webhook body", gateway)
        raise BookingError(
            ErrorCode.MALFORMED_PAYLOAD,
            details={"gateway": gateway},
            message="Webhook body is not valid JSON",
        ) from e
    if not isinstance(body, dict):
        raise BookingError(
            ErrorCode.MALFORMED_PAYLOAD,
            details={"gateway": gateway},
            message="Webhook body is not a JSON object",
        )
    return body


@router.post(
    "/webhooks/mercadopago",
    summary="MercadoPago payment notification",
    response_model=WebhookResponse,
    responses=GATEWAY_ERROR_RESPONSES,
)
async def mercadopago_webhook(
    request: Request,
    handler: PaymentWebhookHandler = Depends(get_webhook_handler),
) -> WebhookResponse:
    """Receive a MercadoPago notification.

    MercadoPago may send ``type``/``data.id`` in the JSON body or, for
    IPN-style deliveries, as ``topic``/``id`` query parameters.
    """
    payload = await _json_body(request, "mercadopago")
    params = request.query_params
    if not isinstance(payload.get("data"), dict):
        payment_id = params.get("data.id") or params.get("id")
        if payment_id:
            payload = {**payload, "data": {"id": payment_id}}
    if not (payload.get("type") or payload.get("topic")):
        topic = params.get("type") or params.get("topic")
        if topic:
            payload = {**payload, "type": topic}

    result = handler.handle_mercadopago(payload)
    return WebhookResponse.from_result(result)


@router.post(
    "/webhooks/mobbex",
    summary="Mobbex payment notification",
    response_model=WebhookResponse,
    responses=GATEWAY_ERROR_RESPONSES,
)
async def mobbex_webhook(
    request: Request,
    handler: PaymentWebhookHandler = Depends(get_webhook_handler),
) -> WebhookResponse:
    payload = await _json_body(request, "mobbex")
    result = handler.handle_mobbex(payload)
    return WebhookResponse.from_result(result)
