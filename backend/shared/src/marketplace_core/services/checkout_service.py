"""Checkout creation: the gateway side of ``accepted → pending_payment``."""

import logging
from typing import Callable

from pydantic import BaseModel

from marketplace_core.config import GatewayConfig
from marketplace_core.models.booking import Booking
from marketplace_core.models.enums import BookingStatus, PaymentGateway
from marketplace_core.models.errors import BookingError, ErrorCode
from marketplace_core.services.booking_state_machine import BookingStateMachine
from marketplace_core.services.gateway_errors import GatewayServiceError
from marketplace_core.services.listing_store import ListingStore
from marketplace_core.services.mercadopago_client import MercadoPagoClient
from marketplace_core.services.mobbex_client import MobbexClient

logger = logging.getLogger(__name__)


class CheckoutResult(BaseModel):
    """A created gateway checkout and the booking it moved to pending_payment."""

    booking: Booking
    gateway: PaymentGateway
    checkout_id: str
    checkout_url: str


class CheckoutService:
    """Creates gateway checkouts for accepted bookings.

    Args:
        state_machine: Booking state machine
        listings: Listing store (title and owner tax ID)
        config: Gateway configuration
        mercadopago_factory: Builds a MercadoPago client from the config
        mobbex_factory: Builds a Mobbex client from the config
    """

    def __init__(
        self,
        state_machine: BookingStateMachine,
        listings: ListingStore,
        config: GatewayConfig,
        *,
        mercadopago_factory: Callable[[GatewayConfig], MercadoPagoClient] = MercadoPagoClient,
        mobbex_factory: Callable[[GatewayConfig], MobbexClient] = MobbexClient,
    ) -> None:
        self._state_machine = state_machine
        self._listings = listings
        self._config = config
        self._mercadopago_factory = mercadopago_factory
        self._mobbex_factory = mobbex_factory

    def _urls(self, booking_id: str, gateway: PaymentGateway, return_url: str | None) -> tuple[str, str]:
        base = self._config.public_base_url.rstrip("/")
        webhook_url = f"{base}/api/webhooks/{gateway.value}"
        return webhook_url, return_url or f"{base}/payment/complete?bookingId={booking_id}"

    def create_checkout(
        self,
        booking_id: str,
        gateway: PaymentGateway,
        actor_id: str,
        return_url: str | None = None,
    ) -> CheckoutResult:
        """Create a checkout with the chosen gateway and start the payment.

        Args:
            booking_id: Accepted booking
            gateway: Gateway to charge through
            actor_id: Caller; must be the listing owner
            return_url: Where the gateway sends the client afterwards

        Raises:
            BookingError: BOOKING_NOT_FOUND, UNAUTHORIZED, INVALID_TRANSITION,
                GATEWAY_NOT_CONFIGURED, UPSTREAM_ERROR or UPSTREAM_TIMEOUT
        """
        booking = self._state_machine.get_booking(booking_id)
        if booking.owner_id != actor_id:
            raise BookingError(ErrorCode.UNAUTHORIZED, details={"booking_id": booking_id})
        if booking.status != BookingStatus.ACCEPTED:
            raise BookingError(
                ErrorCode.INVALID_TRANSITION,
                details={"booking_id": booking_id, "current_status": booking.status.value},
                message="Only accepted bookings can be sent to checkout",
            )

        listing = self._listings.get_by_id(booking.post_id)
        title = listing.title if listing else f"Reserva {booking_id}"
        webhook_url, back_url = self._urls(booking_id, gateway, return_url)

        try:
            if gateway == PaymentGateway.MERCADOPAGO:
                preference = self._mercadopago_factory(self._config).create_preference(
                    booking_id=booking_id,
                    title=title,
                    amount=booking.total_amount,
                    currency=booking.currency,
                    notification_url=webhook_url,
                    return_url=back_url,
                )
                checkout_id = str(preference.get("id") or "")
                checkout_url = str(preference.get("init_point") or "")
            else:
                checkout = self._mobbex_factory(self._config).create_checkout(
                    booking_id=booking_id,
                    description=title,
                    amount=booking.total_amount,
                    currency=booking.currency,
                    webhook_url=webhook_url,
                    return_url=back_url,
                    owner_tax_id=listing.owner_tax_id if listing else None,
                )
                checkout_id = str(checkout.get("id") or "")
                checkout_url = str(checkout.get("url") or "")
        except GatewayServiceError as e:
            raise e.to_booking_error() from e

        if not checkout_id or not checkout_url:
            raise BookingError(
                ErrorCode.UPSTREAM_ERROR,
                details={"gateway": gateway.value},
                message=f"{gateway.value} returned a checkout without id or url",
            )

        outcome = self._state_machine.start_payment(
            booking_id,
            gateway=gateway,
            checkout_id=checkout_id,
            checkout_url=checkout_url,
            actor_id=actor_id,
        )
        return CheckoutResult(
            booking=outcome.booking,
            gateway=gateway,
            checkout_id=checkout_id,
            checkout_url=checkout_url,
        )
