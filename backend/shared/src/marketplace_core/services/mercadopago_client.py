"""MercadoPago REST client.

Only the two calls the booking core needs: fetching a payment (webhooks
carry just its ID) and creating a checkout preference.
"""

import logging
from decimal import Decimal
from typing import Any

import httpx

from marketplace_core.config import GatewayConfig
from marketplace_core.models.enums import PaymentGateway
from marketplace_core.services.gateway_errors import GatewayServiceError, GatewayTimeoutError

logger = logging.getLogger(__name__)

MERCADOPAGO_API_URL = "https://api.mercadopago.com"
GATEWAY = PaymentGateway.MERCADOPAGO.value


class MercadoPagoClient:
    """Client for the MercadoPago payments and preferences APIs.

    Usage:
        client = MercadoPagoClient(config)
        payment = client.get_payment("1234567890")

    Args:
        config: Gateway configuration with active MercadoPago credentials
        transport: Optional httpx transport (tests use httpx.MockTransport)
        base_url: API root, overridable for sandboxes
    """

    def __init__(
        self,
        config: GatewayConfig,
        *,
        transport: httpx.BaseTransport | None = None,
        base_url: str = MERCADOPAGO_API_URL,
    ) -> None:
        self._credentials = config.mercadopago_credentials()
        self._timeout = config.request_timeout_seconds
        self._transport = transport
        self._base_url = base_url

    def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        headers = {
            "Authorization": f"Bearer {self._credentials.access_token}",
            "Content-Type": "application/json",
        }
        try:
            with httpx.Client(
                base_url=self._base_url,
                timeout=self._timeout,
                transport=self._transport,
                headers=headers,
            ) as client:
                response = client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            logger.warning("MercadoPago %s %s timed out after %ss", method, path, self._timeout)
            raise GatewayTimeoutError(
                f"MercadoPago did not answer within {self._timeout}s", GATEWAY
            ) from e
        except httpx.HTTPError as e:
            raise GatewayServiceError(f"MercadoPago request failed: {e}", GATEWAY) from e

        if response.status_code >= 400:
            logger.error(
                "MercadoPago %s %s returned %d: %s",
                method,
                path,
                response.status_code,
                response.text[:500],
            )
            raise GatewayServiceError(
                f"MercadoPago API error ({response.status_code})",
                GATEWAY,
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as e:
            raise GatewayServiceError("MercadoPago returned invalid JSON", GATEWAY) from e
        if not isinstance(body, dict):
            raise GatewayServiceError("MercadoPago returned an unexpected body", GATEWAY)
        return body

    def get_payment(self, payment_id: str) -> dict[str, Any]:
        """Fetch the authoritative payment resource.

        Raises:
            GatewayTimeoutError: If MercadoPago does not answer in time
            GatewayServiceError: On any other failure
        """
        return self._request("GET", f"/v1/payments/{payment_id}")

    def create_preference(
        self,
        *,
        booking_id: str,
        title: str,
        amount: Decimal,
        currency: str,
        notification_url: str,
        return_url: str,
        payer_email: str | None = None,
    ) -> dict[str, Any]:
        """Create a checkout preference for a booking.

        The booking ID is sent as ``external_reference`` so webhooks can be
        correlated back to the booking.

        Returns:
            Preference with ``id`` and ``init_point``
        """
        payload: dict[str, Any] = {
            "items": [
                {
                    "id": booking_id,
                    "title": title,
                    "quantity": 1,
                    "unit_price": float(amount),
                    "currency_id": currency,
                }
            ],
            "external_reference": booking_id,
            "notification_url": notification_url,
            "back_urls": {
                "success": return_url,
                "failure": return_url,
                "pending": return_url,
            },
            "auto_return": "approved",
        }
        if payer_email:
            payload["payer"] = {"email": payer_email}

        preference = self._request("POST", "/checkout/preferences", json=payload)
        logger.info(
            "Created MercadoPago preference %s for booking %s",
            preference.get("id"),
            booking_id,
        )
        return preference
