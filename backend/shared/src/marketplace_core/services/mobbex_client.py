"""Mobbex checkout REST client."""

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

import httpx

from marketplace_core.config import GatewayConfig
from marketplace_core.models.enums import PaymentGateway
from marketplace_core.services.gateway_errors import GatewayServiceError, GatewayTimeoutError

logger = logging.getLogger(__name__)

MOBBEX_CHECKOUT_URL = "https://api.mobbex.com/p/checkout"
CHECKOUT_TIMEOUT_MINUTES = 1440
GATEWAY = PaymentGateway.MOBBEX.value


class MobbexClient:
    """Client for the Mobbex checkout API.

    Mobbex wraps most responses as ``{"result": true, "data": {...}}``; the
    client returns the inner ``data`` object.

    Args:
        config: Gateway configuration with active Mobbex credentials
        transport: Optional httpx transport (tests use httpx.MockTransport)
        base_url: Checkout endpoint
    """

    def __init__(
        self,
        config: GatewayConfig,
        *,
        transport: httpx.BaseTransport | None = None,
        base_url: str = MOBBEX_CHECKOUT_URL,
    ) -> None:
        self._credentials = config.mobbex_credentials()
        self._timeout = config.request_timeout_seconds
        self._transport = transport
        self._base_url = base_url.rstrip("/")

    def _request(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        headers = {
            "x-api-key": self._credentials.api_key,
            "x-access-token": self._credentials.access_token,
            "Content-Type": "application/json",
        }
        try:
            with httpx.Client(
                timeout=self._timeout, transport=self._transport, headers=headers
            ) as client:
                response = client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            logger.warning("Mobbex %s %s timed out after %ss", method, url, self._timeout)
            raise GatewayTimeoutError(
                f"Mobbex did not answer within {self._timeout}s", GATEWAY
            ) from e
        except httpx.HTTPError as e:
            raise GatewayServiceError(f"Mobbex request failed: {e}", GATEWAY) from e

        if response.status_code == 401:
            raise GatewayServiceError(
                "Invalid Mobbex API credentials; check the system settings",
                GATEWAY,
                status_code=401,
            )
        if response.status_code >= 400:
            logger.error(
                "Mobbex %s %s returned %d: %s",
                method,
                url,
                response.status_code,
                response.text[:500],
            )
            raise GatewayServiceError(
                f"Mobbex API error ({response.status_code})",
                GATEWAY,
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as e:
            raise GatewayServiceError("Mobbex returned invalid JSON", GATEWAY) from e
        if isinstance(body, dict) and isinstance(body.get("data"), dict):
            body = body["data"]
        if not isinstance(body, dict):
            raise GatewayServiceError("Mobbex returned an unexpected body", GATEWAY)
        return body

    def get_checkout_status(self, checkout_id: str) -> dict[str, Any]:
        """Fetch a checkout and its payment status.

        Raises:
            GatewayTimeoutError: If Mobbex does not answer in time
            GatewayServiceError: On any other failure
        """
        return self._request("GET", f"{self._base_url}/{checkout_id}")

    def create_checkout(
        self,
        *,
        booking_id: str,
        description: str,
        amount: Decimal,
        currency: str,
        webhook_url: str,
        return_url: str,
        owner_tax_id: str | None = None,
    ) -> dict[str, Any]:
        """Create a checkout for a booking.

        When the listing owner's tax ID is known, the total is split between
        the owner and the marketplace entity, the marketplace keeping its
        configured fee.

        Returns:
            Checkout with ``id`` and ``url``
        """
        total = Decimal(amount).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        payload: dict[str, Any] = {
            "total": float(total),
            "description": description,
            "currency": currency,
            "reference": f"booking_{booking_id}",
            "test": self._credentials.test_mode,
            "return_url": return_url,
            "webhook": webhook_url,
            "timeout": CHECKOUT_TIMEOUT_MINUTES,
            "items": [
                {
                    "id": booking_id,
                    "description": description,
                    "total": float(total),
                    "quantity": 1,
                }
            ],
        }
        if owner_tax_id:
            payload["split"] = self._split(booking_id, total, owner_tax_id)

        checkout = self._request("POST", self._base_url, json=payload)
        logger.info("Created Mobbex checkout %s for booking %s", checkout.get("id"), booking_id)
        return checkout

    def _split(self, booking_id: str, total: Decimal, owner_tax_id: str) -> list[dict[str, Any]]:
        fee = (total * self._credentials.marketplace_fee_percent / Decimal(100)).quantize(
            Decimal("0.01"), rounding=ROUND_HALF_UP
        )
        split = [
            {
                "tax_id": owner_tax_id,
                "total": float(total),
                "reference": f"booking_{booking_id}_owner",
                "fee": float(fee),
            }
        ]
        if self._credentials.marketplace_entity:
            split[0]["entity"] = self._credentials.marketplace_entity
        return split
