"""Notification dispatch for booking transitions.

Each transition type maps to a fixed set of recipients. Notification IDs are
derived from (booking, transition, recipient, payment ID), so a redelivered
webhook or a retried write never produces a second copy.

Dispatch is best-effort relative to the booking write: failed writes are
retried a bounded number of times and then logged, never propagated.
"""

import datetime as dt
import logging
import time
from decimal import Decimal
from typing import Any, Callable

from marketplace_core.models.booking import Booking
from marketplace_core.models.enums import CancelledBy, NotificationType, TransitionType
from marketplace_core.models.notification import Notification, notification_dedup_id
from marketplace_core.models.payment_event import PaymentEvent
from marketplace_core.services.notification_store import NotificationStore
from marketplace_core.services.penalty import format_amount

logger = logging.getLogger(__name__)


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def build_notifications(
    transition: TransitionType,
    booking: Booking,
    listing_title: str,
    *,
    now: dt.datetime,
    cancelled_by: CancelledBy | None = None,
    penalty_amount: Decimal | None = None,
    payment_event: PaymentEvent | None = None,
    checkout_url: str | None = None,
    notify_client_on_payment: bool = True,
) -> list[Notification]:
    """Build the notifications a transition produces. Pure; nothing is stored.

    Args:
        transition: Transition that was just persisted
        booking: Booking as written by the transition
        listing_title: Title used in the messages
        now: Creation timestamp
        cancelled_by: Cancelling party (CANCEL only)
        penalty_amount: Penalty charged (CANCEL only)
        payment_event: Gateway event (PAYMENT_* only)
        checkout_url: Payment link (START_PAYMENT only)
        notify_client_on_payment: Also confirm approved payments to the client

    Returns:
        Zero or more notifications, one per recipient
    """
    payment_id = payment_event.gateway_payment_id if payment_event else None
    # Non-payment transitions can repeat after a payment retry, so the
    # booking version tells cycles apart.
    dedup_suffix = payment_id or f"v{booking.version}"
    base_data: dict[str, Any] = {"bookingId": booking.booking_id, "postId": booking.post_id}
    specs: list[tuple[str, NotificationType, str, str, dict[str, Any]]] = []

    if transition == TransitionType.REQUEST:
        specs.append((
            booking.owner_id,
            NotificationType.BOOKING_REQUEST,
            "Nueva solicitud de reserva",
            f'Recibiste una solicitud de reserva para "{listing_title}"',
            {"guestCount": booking.guest_count},
        ))
    elif transition == TransitionType.ACCEPT:
        specs.append((
            booking.client_id,
            NotificationType.BOOKING_ACCEPTED,
            "Reserva aceptada",
            f'Tu reserva para "{listing_title}" ha sido aceptada',
            {},
        ))
    elif transition == TransitionType.DECLINE:
        specs.append((
            booking.client_id,
            NotificationType.BOOKING_DECLINED,
            "Reserva rechazada",
            f'Tu reserva para "{listing_title}" ha sido rechazada',
            {},
        ))
    elif transition == TransitionType.START_PAYMENT:
        specs.append((
            booking.client_id,
            NotificationType.PAYMENT_PENDING,
            "Reserva aceptada - Pago pendiente",
            f'Tu reserva para "{listing_title}" ha sido aceptada. '
            "Completa el pago para confirmar.",
            {"checkoutUrl": checkout_url} if checkout_url else {},
        ))
    elif transition == TransitionType.PAYMENT_APPROVED:
        payment_data = _payment_data(booking, payment_event)
        specs.append((
            booking.owner_id,
            NotificationType.PAYMENT_COMPLETED,
            "Pago recibido",
            f'El pago para la reserva "{listing_title}" ha sido completado exitosamente.',
            payment_data,
        ))
        if notify_client_on_payment:
            specs.append((
                booking.client_id,
                NotificationType.PAYMENT_COMPLETED,
                "Pago confirmado",
                f'Tu pago para "{listing_title}" ha sido procesado exitosamente',
                payment_data,
            ))
    elif transition == TransitionType.PAYMENT_REJECTED:
        specs.append((
            booking.client_id,
            NotificationType.PAYMENT_FAILED,
            "Pago rechazado",
            f'Tu pago para "{listing_title}" fue rechazado. Por favor, intenta nuevamente',
            _payment_data(booking, payment_event),
        ))
    elif transition == TransitionType.CANCEL:
        if cancelled_by is None:
            raise ValueError("cancelled_by is required for CANCEL notifications")
        penalty = penalty_amount or Decimal("0")
        by_client = cancelled_by == CancelledBy.CLIENT
        notification_type = (
            NotificationType.BOOKING_CANCELLED_BY_CLIENT
            if by_client
            else NotificationType.BOOKING_CANCELLED_BY_OWNER
        )
        canceller_id = booking.client_id if by_client else booking.owner_id
        other_party_id = booking.owner_id if by_client else booking.client_id
        canceller_label = "El huésped" if by_client else "El anfitrión"
        cancel_data = {"cancelledBy": cancelled_by.value, "penaltyAmount": penalty}

        specs.append((
            other_party_id,
            notification_type,
            "Reserva cancelada",
            f'{canceller_label} ha cancelado la reserva para "{listing_title}"',
            cancel_data,
        ))
        suffix = (
            f" (Penalización: {format_amount(penalty, booking.currency)})" if penalty > 0 else ""
        )
        specs.append((
            canceller_id,
            notification_type,
            "Cancelación confirmada",
            f'Has cancelado exitosamente la reserva para "{listing_title}"{suffix}',
            cancel_data,
        ))
    elif transition == TransitionType.COMPLETE:
        specs.append((
            booking.client_id,
            NotificationType.BOOKING_COMPLETED,
            "Reserva completada",
            f'Tu reserva para "{listing_title}" ha finalizado',
            {},
        ))

    return [
        Notification(
            notification_id=notification_dedup_id(
                booking.booking_id, transition, recipient, dedup_suffix
            ),
            user_id=recipient,
            type=notification_type,
            title=title,
            message=message,
            data={**base_data, **extra},
            created_at=now,
        )
        for recipient, notification_type, title, message, extra in specs
    ]


def _payment_data(booking: Booking, event: PaymentEvent | None) -> dict[str, Any]:
    if event is None:
        return {}
    return {
        "amount": event.amount if event.amount is not None else booking.total_amount,
        "currency": event.currency or booking.currency,
        "paymentId": event.gateway_payment_id,
        "paymentStatus": event.gateway_status or event.canonical_status.value,
        "gateway": event.gateway.value,
    }


class NotificationDispatcher:
    """Builds and stores the notifications for a completed transition."""

    def __init__(
        self,
        store: NotificationStore,
        *,
        notify_client_on_payment: bool = True,
        max_attempts: int = 3,
        retry_delay_seconds: float = 0.2,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], dt.datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._notify_client_on_payment = notify_client_on_payment
        self._max_attempts = max_attempts
        self._retry_delay_seconds = retry_delay_seconds
        self._sleep = sleep
        self._clock = clock

    def dispatch(
        self,
        transition: TransitionType,
        booking: Booking,
        listing_title: str,
        **context: Any,
    ) -> list[Notification]:
        """Build and store notifications for a transition.

        Returns:
            Notifications that were newly written (duplicates are skipped)
        """
        notifications = build_notifications(
            transition,
            booking,
            listing_title,
            now=self._clock(),
            notify_client_on_payment=self._notify_client_on_payment,
            **context,
        )
        delivered = []
        for notification in notifications:
            if self._deliver(notification):
                delivered.append(notification)
        return delivered

    def _deliver(self, notification: Notification) -> bool:
        for attempt in range(1, self._max_attempts + 1):
            try:
                created = self._store.create(notification)
            except Exception as e:
                logger.warning(
                    "Notification %s write failed (attempt %d/%d): %s",
                    notification.notification_id,
                    attempt,
                    self._max_attempts,
                    e,
                )
                if attempt < self._max_attempts:
                    self._sleep(self._retry_delay_seconds * 2 ** (attempt - 1))
                continue

            if not created:
                logger.info(
                    "Notification %s already delivered, skipping",
                    notification.notification_id,
                )
            return created

        logger.error(
            "Giving up on notification %s (%s for user %s)",
            notification.notification_id,
            notification.type.value,
            notification.user_id,
        )
        return False
